"""
Backend interface for the hosted auth / database / storage service.

Every browser session gets its own `Backend` connection: the connection
carries the signed-in identity, and the service scopes every table read,
insert and upload to it. Two adapters implement the interface:

- `LocalBackend` (Flask-SQLAlchemy + filesystem), for development and tests
- `SupabaseBackend` (supabase-py), for the hosted service
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"

SOIL_REPORTS_BUCKET = "soil-reports"


class BackendError(Exception):
    """A call into the backend failed; `message` is the service's own text."""

    def __init__(self, message):
        super().__init__(message)
        self.message = message


@dataclass
class Identity:
    id: str
    email: str
    user_metadata: Dict = field(default_factory=dict)


@dataclass
class BackendSession:
    access_token: str
    user: Identity


AuthCallback = Callable[[str, Optional[BackendSession]], None]


class Subscription:
    def __init__(self, unsubscribe: Callable[[], None]):
        self._unsubscribe = unsubscribe

    def unsubscribe(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None


class Backend:
    """One client connection to the backend-as-a-service."""

    # --- auth ---
    def sign_up(self, email: str, password: str, metadata: Dict) -> Optional[Identity]:
        raise NotImplementedError

    def sign_in_with_password(self, email: str, password: str) -> BackendSession:
        raise NotImplementedError

    def sign_out(self) -> None:
        raise NotImplementedError

    def get_session(self) -> Optional[BackendSession]:
        raise NotImplementedError

    def on_auth_state_change(self, callback: AuthCallback) -> Subscription:
        raise NotImplementedError

    # --- tables ---
    def select_one(self, table: str, column: str, value) -> Optional[Dict]:
        raise NotImplementedError

    def select(self, table: str, column: str, value) -> List[Dict]:
        """Rows where `column == value`, newest first."""
        raise NotImplementedError

    def insert(self, table: str, row: Dict) -> Dict:
        raise NotImplementedError

    # --- storage ---
    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        raise NotImplementedError

    def close(self) -> None:
        pass


def build_backend_factory(app) -> Callable[[], Backend]:
    """Return a zero-argument callable opening a new backend connection."""
    kind = app.config.get("BACKEND", "local").lower()

    if kind == "supabase":
        from agrosanga.backends.supabase_backend import SupabaseBackend

        url = app.config.get("SUPABASE_URL")
        key = app.config.get("SUPABASE_KEY")
        if not url or not key:
            raise RuntimeError("Supabase config missing: set SUPABASE_URL and SUPABASE_KEY")
        logger.info("Using hosted Supabase backend at %s", url)
        return lambda: SupabaseBackend.connect(url, key)

    if kind == "local":
        from agrosanga.backends.local import LocalBackend

        storage_root = app.config["STORAGE_ROOT"]
        logger.info("Using local backend (db=%s, storage=%s)",
                    app.config["SQLALCHEMY_DATABASE_URI"], storage_root)
        return lambda: LocalBackend(app, storage_root)

    raise RuntimeError(f"Unknown BACKEND {kind!r}; expected 'local' or 'supabase'")
