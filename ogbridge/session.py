"""
OurGroceries session management.

Implements the cookie-based sign-in handshake used by the OurGroceries web
app and keeps the resulting session (cookies + team id) for command calls.

Sign-in flow
============
  1. POST /sign-in   action=email-address   -> pre-auth cookies
  2. POST /sign-in   action=sign-in         -> 'ourgroceries-auth' cookie
  3. GET  /your-lists/                      -> HTML with g_teamId = "..."

Redirects are never followed: every intermediate response may set cookies
that the next step needs.
"""

from __future__ import annotations
import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

import requests

from .errors import AuthenticationError, NetworkError

BASE_URL = "https://www.ourgroceries.com"
SIGN_IN_URL = f"{BASE_URL}/sign-in"
API_URL = f"{BASE_URL}/your-lists/"

AUTH_COOKIE = "ourgroceries-auth"
DEFAULT_TIMEOUT = 20

_TEAM_ID_PATTERN = re.compile(r'g_teamId\s*=\s*"([^"]+)"')


@dataclass(frozen=True)
class Credentials:
    """OurGroceries account credentials."""

    username: str
    password: str = field(repr=False)

    def __post_init__(self) -> None:
        if not self.username or not self.password:
            raise ValueError("Username and password are required")


@dataclass
class Session:
    """Mutable session state, owned by exactly one SessionManager."""

    # cookie name -> "name=value"
    cookies: dict[str, str] = field(default_factory=dict)
    team_id: Optional[str] = None
    authenticated: bool = False
    # Bumped on every successful login
    generation: int = 0


@dataclass(frozen=True)
class SessionContext:
    """Consistent snapshot of an authenticated session, used for one command."""

    team_id: str
    cookie_header: str
    generation: int


def merge_set_cookie_headers(cookies: dict[str, str], headers: Iterable[str]) -> None:
    """
    Merge raw Set-Cookie header values into a cookie map.

    The cookie name is everything before the first '='. The stored value is
    the bare 'name=value' pair, with attributes after the first ';' dropped.
    Later values overwrite earlier ones for the same name.
    """
    for header in headers:
        name = header.split('=', 1)[0].strip()
        if not name:
            continue
        cookies[name] = header.split(';', 1)[0].strip()


def cookie_header(cookies: dict[str, str]) -> str:
    """Build a Cookie request header from a cookie map."""
    return "; ".join(cookies.values())


def get_set_cookie_headers(response: Any) -> list[str]:
    """
    Return every Set-Cookie header of a response, unjoined.

    requests folds repeated headers into one comma-separated string, which is
    ambiguous for cookies carrying an Expires date, so read them from the
    underlying urllib3 header dict instead.
    """
    raw_headers = getattr(response.raw, 'headers', None)
    if raw_headers is None:
        return []
    return list(raw_headers.getlist('Set-Cookie'))


def extract_team_id(html: str) -> str:
    """
    Extract the team id from the /your-lists/ page.

    The page embeds it as a JavaScript global: g_teamId = "abc123";

    Raises:
        AuthenticationError: If the assignment is missing, which means the
            page did not load as a signed-in user or its markup changed.
    """
    match = _TEAM_ID_PATTERN.search(html or '')
    if match is None:
        raise AuthenticationError("Login failed: could not extract teamId.")
    return match.group(1)


class SessionManager:
    """
    Owns the authenticated OurGroceries session.

    Login and invalidation are serialized through a lock, so concurrent
    callers waiting for a login share its outcome instead of each signing
    in again.
    """

    def __init__(
        self,
        credentials: Credentials,
        http: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.credentials = credentials
        self.http = http if http is not None else requests.Session()
        self.timeout = timeout
        self.session = Session()
        self._lock = threading.Lock()

    @property
    def authenticated(self) -> bool:
        return self.session.authenticated

    @property
    def team_id(self) -> Optional[str]:
        return self.session.team_id

    def ensure_authenticated(self) -> SessionContext:
        """
        Sign in unless already signed in.

        Returns:
            Snapshot of the session to build a command from

        Raises:
            AuthenticationError: Credentials rejected or page contract changed
            NetworkError: Transport failure during the handshake
        """
        with self._lock:
            if not self.session.authenticated:
                self._login()
            return SessionContext(
                team_id=self.session.team_id,
                cookie_header=cookie_header(self.session.cookies),
                generation=self.session.generation,
            )

    def invalidate(self, generation: Optional[int] = None) -> None:
        """
        Forget the current session. Idempotent.

        Args:
            generation: If given, only invalidate when the session is still
                the one from that login. A caller holding a stale context
                must not throw away a session another caller just created.
        """
        with self._lock:
            if generation is not None and generation != self.session.generation:
                logging.debug(
                    "Session already refreshed (generation %d -> %d), not invalidating",
                    generation, self.session.generation
                )
                return
            self._clear()

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        """Issue one HTTP request with the client timeout, mapping transport errors."""
        kwargs.setdefault('timeout', self.timeout)
        try:
            return self.http.request(method, url, **kwargs)
        except requests.RequestException as e:
            raise NetworkError(f"{method} {url} failed: {e}") from e

    def _clear(self) -> None:
        self.session.cookies.clear()
        self.session.team_id = None
        self.session.authenticated = False
        # Only the explicit Cookie header is authoritative
        self.http.cookies.clear()

    def _login(self) -> None:
        """Run the three-step handshake. Caller must hold the lock."""
        self._clear()
        cookies: dict[str, str] = {}
        username = self.credentials.username

        logging.debug("Signing in to OurGroceries as %s", username)

        # Step 1: email address
        response = self.request(
            'POST',
            SIGN_IN_URL,
            data={'emailAddress': username, 'action': 'email-address'},
            allow_redirects=False,
        )
        merge_set_cookie_headers(cookies, get_set_cookie_headers(response))

        # Step 2: password
        response = self.request(
            'POST',
            SIGN_IN_URL,
            data={
                'emailAddress': username,
                'password': self.credentials.password,
                'action': 'sign-in',
            },
            headers={'Cookie': cookie_header(cookies)},
            allow_redirects=False,
        )
        merge_set_cookie_headers(cookies, get_set_cookie_headers(response))

        if AUTH_COOKIE not in cookies:
            raise AuthenticationError(
                "Login failed: no auth cookie received. Check credentials."
            )

        # Step 3: team id from the lists page
        response = self.request(
            'GET',
            API_URL,
            headers={'Cookie': cookie_header(cookies)},
            allow_redirects=False,
        )
        merge_set_cookie_headers(cookies, get_set_cookie_headers(response))
        team_id = extract_team_id(response.text)

        self.session.cookies.update(cookies)
        self.session.team_id = team_id
        self.session.authenticated = True
        self.session.generation += 1
        logging.debug("Signed in to OurGroceries (team %s)", team_id)
