"""
OurGroceries API wrapper.

Every list operation is a JSON command POSTed to the single /your-lists/
endpoint. Commands are authenticated by cookie + team id, and a command that
hits an expired session is retried once after a fresh login.
"""

from __future__ import annotations
import logging
from enum import Enum
from typing import Any, Iterable, Optional

import requests

from .errors import CommandError, OurGroceriesError
from .session import API_URL, DEFAULT_TIMEOUT, Credentials, SessionContext, SessionManager
from .types import (
    Command,
    Item,
    ShoppingList,
    get_item_name,
    get_item_note,
    match_list_by_name,
)

__all__ = [
    'OurGroceriesClient',
    'SESSION_EXPIRED_STATUSES',
]

# Statuses the service uses for an expired or rejected session
SESSION_EXPIRED_STATUSES = frozenset({400, 401})


class Attempt(Enum):
    """Position of a command call in the retry sequence."""

    INITIAL = "initial"
    AFTER_REAUTH = "after_reauth"


class OurGroceriesClient:
    """
    High-level OurGroceries client.

    Provides:
    - Lazy sign-in on first use
    - One transparent re-login when the session expires
    - Thin wrappers for the list/item commands
    """

    def __init__(
        self,
        username: str,
        password: str,
        http: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """
        Initialize the client.

        Args:
            username: OurGroceries account email address
            password: OurGroceries account password
            http: Optional requests session (shared connection pool)
            timeout: Per-request timeout in seconds

        Raises:
            ValueError: If username or password is empty
        """
        self.sessions = SessionManager(
            Credentials(username, password),
            http=http,
            timeout=timeout,
        )

    @property
    def authenticated(self) -> bool:
        return self.sessions.authenticated

    def invoke(self, command: Command, **params: Any) -> dict[str, Any]:
        """
        Execute one command, re-authenticating at most once.

        Args:
            command: Command to run
            **params: Command-specific payload fields

        Returns:
            Parsed JSON response

        Raises:
            AuthenticationError: Login failed
            CommandError: Non-2xx response (after the retry, for 400/401),
                or a 2xx body that is not JSON
            NetworkError: Transport failure
        """
        for attempt in (Attempt.INITIAL, Attempt.AFTER_REAUTH):
            context = self.sessions.ensure_authenticated()
            response = self._post_command(context, command, params)

            if 200 <= response.status_code < 300:
                return self._decode(command, response)

            status = response.status_code
            if attempt is Attempt.INITIAL and status in SESSION_EXPIRED_STATUSES:
                logging.debug(
                    "Command '%s' got %d, signing in again and retrying once",
                    command.value, status
                )
                self.sessions.invalidate(context.generation)
                continue

            raise CommandError(
                command.value,
                status,
                retried=attempt is Attempt.AFTER_REAUTH,
            )

        # Unreachable: the loop either returns or raises
        raise OurGroceriesError(f"API call '{command.value}' exhausted retries")

    @staticmethod
    def _decode(command: Command, response: requests.Response) -> dict[str, Any]:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise CommandError(
                command.value,
                response.status_code,
                reason="response is not JSON",
            ) from e

    def _post_command(
        self,
        context: SessionContext,
        command: Command,
        params: dict[str, Any],
    ) -> requests.Response:
        payload = {'command': command.value, 'teamId': context.team_id, **params}
        return self.sessions.request(
            'POST',
            API_URL,
            json=payload,
            headers={
                'Content-Type': 'application/json; charset=UTF-8',
                'Cookie': context.cookie_header,
            },
            allow_redirects=False,
        )

    def get_lists(self) -> list[ShoppingList]:
        """Get all shopping lists."""
        data = self.invoke(Command.GET_OVERVIEW)
        return data.get('shoppingLists') or []

    def get_list(self, list_id: str) -> dict[str, Any]:
        """Get the raw list object (items, categories and list metadata)."""
        data = self.invoke(Command.GET_LIST, listId=list_id)
        return data.get('list') or {}

    def get_list_items(self, list_id: str) -> list[Item]:
        """Get all items of a list, crossed-off ones included."""
        return self.get_list(list_id).get('items') or []

    def get_categories(self, list_id: str) -> list[dict[str, Any]]:
        """Get the categories of a list (empty if the list has none)."""
        return self.get_list(list_id).get('categories') or []

    def add_item_to_list(
        self,
        list_id: str,
        value: str,
        category_id: Optional[str] = None,
        auto_category: bool = False,
        note: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Insert one item into a list.

        An explicit category_id takes precedence over auto_category; at most
        one of the two is sent.
        """
        payload: dict[str, Any] = {'listId': list_id, 'value': value}
        if category_id:
            payload['categoryId'] = category_id
        elif auto_category:
            payload['autoCategory'] = True
        if note:
            payload['note'] = note
        return self.invoke(Command.INSERT_ITEM, **payload)

    def add_items_to_list(
        self,
        list_id: str,
        items: Iterable[Any],
        auto_category: bool = True,
    ) -> list[str]:
        """
        Insert several items in order.

        Args:
            list_id: Target list
            items: Bare names or {"name": ..., "note": ...} dicts
            auto_category: Let the service pick a category for each item

        Returns:
            Names of the items that were added
        """
        added = []
        for item in items:
            name = get_item_name(item)
            if not name:
                raise ValueError(f"Item has no name: {item!r}")
            self.add_item_to_list(
                list_id,
                name,
                auto_category=auto_category,
                note=get_item_note(item),
            )
            added.append(name)
        return added

    def remove_item_from_list(self, list_id: str, item_id: str) -> dict[str, Any]:
        return self.invoke(Command.DELETE_ITEM, listId=list_id, itemId=item_id)

    def toggle_item_crossed_off(
        self,
        list_id: str,
        item_id: str,
        crossed_off: bool,
    ) -> dict[str, Any]:
        return self.invoke(
            Command.SET_ITEM_CROSSED_OFF,
            listId=list_id,
            itemId=item_id,
            crossedOff=crossed_off,
        )

    def delete_all_crossed_off(self, list_id: str) -> dict[str, Any]:
        return self.invoke(Command.DELETE_ALL_CROSSED_OFF, listId=list_id)

    def find_list_by_name(self, name: str) -> Optional[ShoppingList]:
        """
        Find a list by name, case-insensitively.

        Exact matches win over substring matches. Returns None when nothing
        matches; callers decide whether that is an error.
        """
        return match_list_by_name(self.get_lists(), name)
