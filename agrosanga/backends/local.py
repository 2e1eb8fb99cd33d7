"""
local.py: Self-contained backend over Flask-SQLAlchemy and the filesystem
--------------------------------------------------------------------------

Implements the same observable contract as the hosted service:

- accounts with hashed passwords, auth change events on sign-in/out
- row ownership: reads only see, and inserts only accept, rows whose
  `user_id` is the signed-in identity
- unique profile mobile numbers (database constraint)
- a private bucket whose object paths must start with the uploader's id
"""

import logging
import secrets
import threading
from pathlib import Path

from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from agrosanga.backends import (
    SIGNED_IN,
    SIGNED_OUT,
    SOIL_REPORTS_BUCKET,
    Backend,
    BackendError,
    BackendSession,
    Identity,
    Subscription,
)
from agrosanga.models import TABLES, Account, db, row_to_dict

logger = logging.getLogger(__name__)

OWNER_COLUMN = 'user_id'
MIN_PASSWORD_LENGTH = 6


def _identity(account):
    return Identity(id=account.id, email=account.email,
                    user_metadata=dict(account.user_metadata or {}))


class LocalBackend(Backend):

    def __init__(self, app, storage_root):
        self._app = app
        self._storage_root = Path(storage_root)
        self._session = None
        self._listeners = []
        self._lock = threading.Lock()

    # ---------------- Auth ----------------
    def sign_up(self, email, password, metadata):
        if len(password) < MIN_PASSWORD_LENGTH:
            raise BackendError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters.")

        with self._app.app_context():
            if Account.query.filter_by(email=email).first() is not None:
                raise BackendError("User already registered")

            account = Account(email=email,
                              password_hash=generate_password_hash(password),
                              user_metadata=dict(metadata or {}))
            db.session.add(account)
            try:
                db.session.commit()
            except IntegrityError:
                db.session.rollback()
                raise BackendError("User already registered")
            identity = _identity(account)

        logger.info("Account created for %s", email)
        self._start_session(identity)
        return identity

    def sign_in_with_password(self, email, password):
        with self._app.app_context():
            account = Account.query.filter_by(email=email).first()
            if account is None or not check_password_hash(account.password_hash, password):
                raise BackendError("Invalid login credentials")
            identity = _identity(account)
        return self._start_session(identity)

    def sign_out(self):
        with self._lock:
            previous, self._session = self._session, None
        if previous is not None:
            self._emit(SIGNED_OUT, None)

    def get_session(self):
        return self._session

    def on_auth_state_change(self, callback):
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return Subscription(unsubscribe)

    def _start_session(self, identity):
        session = BackendSession(access_token=secrets.token_urlsafe(32), user=identity)
        with self._lock:
            self._session = session
        self._emit(SIGNED_IN, session)
        return session

    def _emit(self, event, session):
        with self._lock:
            listeners = list(self._listeners)
        for callback in listeners:
            callback(event, session)

    # ---------------- Tables ----------------
    def _acting_id(self):
        session = self._session
        return session.user.id if session else None

    @staticmethod
    def _model(table):
        try:
            return TABLES[table]
        except KeyError:
            raise BackendError(f'relation "public.{table}" does not exist')

    def _owned_query(self, table, column, value):
        model = self._model(table)
        if not hasattr(model, column):
            raise BackendError(f"column {table}.{column} does not exist")
        return model.query.filter(getattr(model, column) == value,
                                  getattr(model, OWNER_COLUMN) == self._acting_id())

    def select_one(self, table, column, value):
        if self._acting_id() is None:
            return None
        with self._app.app_context():
            row = self._owned_query(table, column, value).first()
            return row_to_dict(row) if row is not None else None

    def select(self, table, column, value):
        if self._acting_id() is None:
            return []
        with self._app.app_context():
            model = self._model(table)
            rows = self._owned_query(table, column, value).order_by(model.created_at.desc()).all()
            return [row_to_dict(row) for row in rows]

    def insert(self, table, row):
        model = self._model(table)
        acting_id = self._acting_id()
        if acting_id is None or row.get(OWNER_COLUMN) != acting_id:
            raise BackendError(f'new row violates row-level security policy for table "{table}"')

        with self._app.app_context():
            try:
                record = model(**row)
            except TypeError as e:
                raise BackendError(str(e))
            db.session.add(record)
            try:
                db.session.commit()
            except IntegrityError as e:
                db.session.rollback()
                logger.debug("Insert into %s rejected: %s", table, e.orig)
                if "CHECK constraint" in str(e.orig):
                    raise BackendError(f'new row for relation "{table}" violates check constraint')
                raise BackendError(f'duplicate key value violates unique constraint on "{table}"')
            return row_to_dict(record)

    # ---------------- Storage ----------------
    def upload(self, bucket, path, data, content_type):
        if bucket != SOIL_REPORTS_BUCKET:
            raise BackendError("Bucket not found")

        parts = Path(path).parts
        acting_id = self._acting_id()
        if (acting_id is None or len(parts) < 2 or parts[0] != acting_id
                or any(part in ('..', '.') for part in parts)):
            raise BackendError("new row violates row-level security policy")

        target = self._storage_root / bucket / path
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(target, 'xb') as f:
                f.write(data)
        except FileExistsError:
            raise BackendError("The resource already exists")

        logger.info("Stored %s (%s, %d bytes)", path, content_type, len(data))
        return path

    def close(self):
        with self._lock:
            self._listeners.clear()
            self._session = None
