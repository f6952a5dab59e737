"""Client-side authentication state (token + user) over a KeyValueStorage."""
import json
import logging
from typing import Dict, Optional

from shopsmart.services.session_storage import KeyValueStorage

logger = logging.getLogger(__name__)

TOKEN_STORAGE_KEY = 'auth_token'
USER_STORAGE_KEY = 'auth_user'


class AuthSession:
    """
    Logged-in state of one client.

    Restores a previous login from storage on construction; anything
    incomplete or unreadable there means anonymous.
    """

    def __init__(self, storage: KeyValueStorage):
        self._storage = storage
        self.token: Optional[str] = None
        self.user: Optional[Dict] = None
        self.error: Optional[str] = None
        self._restore()

    def _restore(self) -> None:
        token = self._storage.get(TOKEN_STORAGE_KEY)
        raw_user = self._storage.get(USER_STORAGE_KEY)
        if not token or not raw_user:
            self.logout()
            return
        try:
            user = json.loads(raw_user)
        except ValueError as e:
            logger.error(f"[AUTH] Error loading auth state: {e}")
            self.logout()
            return
        if not isinstance(user, dict):
            logger.error(f"[AUTH] Stored user is not an object: {raw_user!r}")
            self.logout()
            return
        self.token = token
        self.user = user

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None and self.user is not None

    def login(self, token: str, user: Dict) -> None:
        self.token = token
        self.user = user
        self.error = None
        self._storage.set(TOKEN_STORAGE_KEY, token)
        self._storage.set(USER_STORAGE_KEY, json.dumps(user))

    def logout(self) -> None:
        self.token = None
        self.user = None
        self.error = None
        self._storage.remove(TOKEN_STORAGE_KEY)
        self._storage.remove(USER_STORAGE_KEY)

    def fail(self, message: str) -> None:
        """Record an authentication error without touching the login state."""
        self.error = message

    def clear_error(self) -> None:
        self.error = None

    def has_role(self, role: str) -> bool:
        return bool(self.user) and self.user.get('role') == role

    @property
    def is_admin(self) -> bool:
        return self.has_role('admin')

    def auth_header(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {'Authorization': f"Bearer {self.token}"}
