"""
auth.py: Per-browser session state container
---------------------------------------------

`AuthSession` mirrors one backend connection's auth state:

    unknown ──restore()/event──▶ anonymous ⇄ authenticated

Transitions come only from the backend's auth change events and the
outcome of sign_up / sign_in / sign_out. After every SIGNED_IN event a
profile lookup runs as a background task (`profile_task`); its failure is
logged and never affects the session.
"""

import enum
import logging
import threading
from dataclasses import dataclass, field
from typing import List, Optional

from agrosanga.backends import SIGNED_IN, BackendError

logger = logging.getLogger(__name__)

SYNTHETIC_EMAIL_DOMAIN = "agrosanga.local"


def synthetic_email(mobile_number):
    """Accounts are keyed by mobile number; the auth service wants an address."""
    return f"{mobile_number}@{SYNTHETIC_EMAIL_DOMAIN}"


class SessionState(enum.Enum):
    UNKNOWN = "unknown"
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"


@dataclass
class Notice:
    title: str
    message: str
    category: str = "success"


@dataclass
class AuthResult:
    error: Optional[str] = None
    notices: List[Notice] = field(default_factory=list)

    @property
    def ok(self):
        return self.error is None


class AuthSession:

    def __init__(self, backend, executor=None):
        self.backend = backend
        self._executor = executor
        self._lock = threading.RLock()
        self.session = None
        self.user = None
        self.loading = True
        self.profile = None
        self.profile_task = None
        self._resolved = False
        self._subscription = backend.on_auth_state_change(self._on_auth_event)

    # ---------------- State ----------------
    @property
    def state(self):
        if not self._resolved:
            return SessionState.UNKNOWN
        if self.session is not None and self.user is not None:
            return SessionState.AUTHENTICATED
        return SessionState.ANONYMOUS

    @property
    def is_authenticated(self):
        return self.state is SessionState.AUTHENTICATED

    def _apply(self, session):
        with self._lock:
            self._resolved = True
            self.session = session
            self.user = session.user if session is not None else None
            if session is None:
                self.profile = None

    def restore(self):
        """Pick up whatever session the backend already holds."""
        try:
            session = self.backend.get_session()
        except BackendError as e:
            logger.error("Could not read current session: %s", e.message)
            session = None
        self._apply(session)
        self.loading = False
        return self

    def _on_auth_event(self, event, session):
        self._apply(session)
        self.loading = False
        if event == SIGNED_IN and session is not None:
            self.profile_task = self._schedule_profile_lookup(session.user.id)

    # ---------------- Profile lookup ----------------
    def _schedule_profile_lookup(self, user_id):
        if self._executor is None:
            return None
        try:
            return self._executor.submit(self._lookup_profile, user_id)
        except RuntimeError as e:
            logger.warning("Profile lookup not scheduled: %s", e)
            return None

    def _lookup_profile(self, user_id):
        try:
            profile = self.backend.select_one('profiles', 'user_id', user_id)
        except BackendError as e:
            logger.error("Error fetching profile: %s", e.message)
            return None
        if profile is None:
            logger.info("No profile found for user %s", user_id)
            return None
        with self._lock:
            if self.user is not None and self.user.id == user_id:
                self.profile = profile
        return profile

    # ---------------- Operations ----------------
    def sign_up(self, form):
        """Create the account, then its profile row.

        A failed profile insert leaves the account in place; it is reported
        but still counts as a successful registration.
        """
        self.loading = True
        try:
            try:
                identity = self.backend.sign_up(
                    synthetic_email(form.mobile_number),
                    form.password,
                    {'name': form.name, 'mobile_number': form.mobile_number},
                )
            except BackendError as e:
                return AuthResult(error=e.message,
                                  notices=[Notice("Registration Error", e.message, "danger")])

            notices = []
            if identity is not None:
                try:
                    self.backend.insert('profiles', {
                        'user_id': identity.id,
                        'name': form.name,
                        'mobile_number': form.mobile_number,
                        'survey_number': form.survey_number,
                        'farm_area': form.farm_area,
                    })
                except BackendError as e:
                    logger.error("Error creating profile for %s: %s", identity.id, e.message)
                    notices.append(Notice(
                        "Profile Creation Error",
                        "Account created but profile setup failed. Please contact support.",
                        "danger"))
                else:
                    notices.append(Notice(
                        "Registration Successful!",
                        "Your account has been created successfully. You can now login."))
            return AuthResult(notices=notices)
        finally:
            self.loading = False

    def sign_in(self, mobile_number, password):
        self.loading = True
        try:
            try:
                session = self.backend.sign_in_with_password(synthetic_email(mobile_number), password)
            except BackendError as e:
                return AuthResult(error=e.message,
                                  notices=[Notice("Login Error", e.message, "danger")])
            self._apply(session)
            return AuthResult(notices=[Notice("Login Successful!", "Welcome back to AgroSanga")])
        finally:
            self.loading = False

    def sign_out(self):
        self.loading = True
        try:
            try:
                self.backend.sign_out()
            except BackendError as e:
                return AuthResult(error=e.message,
                                  notices=[Notice("Error signing out", e.message, "danger")])
            self._apply(None)
            return AuthResult(notices=[Notice("Signed out successfully", "Come back soon!", "info")])
        finally:
            self.loading = False

    def close(self):
        self._subscription.unsubscribe()
        self.backend.close()
