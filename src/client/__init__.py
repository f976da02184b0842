"""Client package: the remote document store boundary."""

from client.base import (
    Client,
    ClientError,
    NotFound,
    matches_selector,
    parse_label_selector,
)
from client.http import HttpClient
from client.memory import InMemoryClient

__all__ = [
    "Client",
    "ClientError",
    "NotFound",
    "matches_selector",
    "parse_label_selector",
    "HttpClient",
    "InMemoryClient",
]
