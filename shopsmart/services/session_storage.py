"""
Key/value persistence used by the cart and auth session containers.

Containers only need get/set/remove of string values by key, so the same
state can live in the Flask session (server-rendered storefront), in memory
(tests, scripts) or anywhere else implementing the protocol.
"""
from typing import Dict, Optional, Protocol

from flask import session


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryStorage:
    """Dict-backed storage, lives as long as the object."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class FlaskSessionStorage:
    """Storage backed by the signed Flask session cookie of the current request."""

    def get(self, key: str) -> Optional[str]:
        return session.get(key)

    def set(self, key: str, value: str) -> None:
        session[key] = value
        session.modified = True

    def remove(self, key: str) -> None:
        session.pop(key, None)
