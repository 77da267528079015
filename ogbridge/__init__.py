"""
ogbridge - HTTP bridge for OurGroceries shopping lists.

Re-exports the public client API.
"""

from .api import OurGroceriesClient
from .errors import (
    AuthenticationError,
    CommandError,
    NetworkError,
    OurGroceriesError,
    SuggestionError,
)
from .types import Command, match_list_by_name

__version__ = "1.0.0"
__all__ = [
    "AuthenticationError",
    "Command",
    "CommandError",
    "NetworkError",
    "OurGroceriesClient",
    "OurGroceriesError",
    "SuggestionError",
    "match_list_by_name",
]
