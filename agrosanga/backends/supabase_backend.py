"""
supabase_backend.py: Hosted backend through the supabase-py SDK
----------------------------------------------------------------

Each connection owns its own `supabase.Client`, so the session the SDK keeps
in memory (and the JWT it sends to PostgREST and Storage) belongs to exactly
one browser. Row ownership, unique mobile numbers and the bucket path rule
are enforced by the policies in supabase/migrations/.
"""

import logging
from contextlib import contextmanager

from supabase import Client, create_client

from agrosanga.backends import (
    Backend,
    BackendError,
    BackendSession,
    Identity,
    Subscription,
)

logger = logging.getLogger(__name__)


@contextmanager
def _service_call(what):
    try:
        yield
    except BackendError:
        raise
    except Exception as e:
        message = getattr(e, 'message', None) or str(e)
        logger.debug("Supabase %s failed: %s", what, message)
        raise BackendError(message) from e


def _identity(user):
    return Identity(id=str(user.id), email=user.email or "",
                    user_metadata=dict(user.user_metadata or {}))


def _session(session):
    if session is None or session.user is None:
        return None
    return BackendSession(access_token=session.access_token, user=_identity(session.user))


class SupabaseBackend(Backend):

    def __init__(self, client: Client):
        self._client = client
        self._subscriptions = []

    @classmethod
    def connect(cls, url, key):
        return cls(create_client(url, key))

    # ---------------- Auth ----------------
    def sign_up(self, email, password, metadata):
        with _service_call("sign_up"):
            response = self._client.auth.sign_up({
                "email": email,
                "password": password,
                "options": {"data": dict(metadata or {})},
            })
        return _identity(response.user) if response.user else None

    def sign_in_with_password(self, email, password):
        with _service_call("sign_in_with_password"):
            response = self._client.auth.sign_in_with_password({"email": email, "password": password})
        session = _session(response.session)
        if session is None:
            raise BackendError("Invalid login credentials")
        return session

    def sign_out(self):
        with _service_call("sign_out"):
            self._client.auth.sign_out()

    def get_session(self):
        with _service_call("get_session"):
            return _session(self._client.auth.get_session())

    def on_auth_state_change(self, callback):
        def relay(event, session):
            callback(str(event), _session(session))

        with _service_call("on_auth_state_change"):
            subscription = self._client.auth.on_auth_state_change(relay)
        self._subscriptions.append(subscription)

        def unsubscribe():
            subscription.unsubscribe()
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return Subscription(unsubscribe)

    # ---------------- Tables ----------------
    def select_one(self, table, column, value):
        with _service_call(f"select {table}"):
            response = self._client.table(table).select("*").eq(column, value).limit(1).execute()
        return response.data[0] if response.data else None

    def select(self, table, column, value):
        with _service_call(f"select {table}"):
            response = (self._client.table(table).select("*").eq(column, value)
                        .order("created_at", desc=True).execute())
        return list(response.data or [])

    def insert(self, table, row):
        with _service_call(f"insert {table}"):
            response = self._client.table(table).insert(row).execute()
        if not response.data:
            raise BackendError(f"Insert into {table} returned no data")
        return response.data[0]

    # ---------------- Storage ----------------
    def upload(self, bucket, path, data, content_type):
        with _service_call(f"upload {bucket}"):
            self._client.storage.from_(bucket).upload(path, data, {"content-type": content_type})
        return path

    def close(self):
        for subscription in list(self._subscriptions):
            subscription.unsubscribe()
        self._subscriptions.clear()
