import logging
import threading
import time
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor

from agrosanga.auth import AuthSession

logger = logging.getLogger(__name__)


class SessionService:
    """Owns every browser's AuthSession plus the worker pool for profile lookups.

    Created once at startup by `create_app`; `dispose()` closes all sessions
    and shuts the pool down. Containers idle for longer than `idle_timeout`
    seconds are closed, and past `max_sessions` the least recently used one
    is closed to make room.
    """

    def __init__(self, backend_factory, max_workers=2, max_sessions=1000,
                 idle_timeout=3600, clock=time.monotonic):
        self._backend_factory = backend_factory
        self._executor = ThreadPoolExecutor(max_workers=max_workers,
                                            thread_name_prefix="profile-lookup")
        self._max_sessions = max_sessions
        self._idle_timeout = idle_timeout
        self._clock = clock
        # sid -> [AuthSession, last_seen], least recently used first
        self._sessions = OrderedDict()
        self._lock = threading.Lock()
        self._disposed = False

    def get(self, sid):
        """The container for `sid`, created and restored on first use."""
        with self._lock:
            self._check_open()
            auth, evicted = self._touch(sid)
            if auth is None:
                auth = AuthSession(self._backend_factory(), self._executor).restore()
                self._sessions[sid] = [auth, self._clock()]
                evicted += self._evict_overflow()
        self._close_all(evicted)
        return auth

    def peek(self, sid):
        """The container for `sid` if one is live, without creating it."""
        with self._lock:
            self._check_open()
            auth, evicted = self._touch(sid)
        self._close_all(evicted)
        return auth

    def discard(self, sid):
        with self._lock:
            entry = self._sessions.pop(sid, None)
        if entry is not None:
            entry[0].close()

    def __len__(self):
        with self._lock:
            return len(self._sessions)

    def dispose(self):
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            sessions = [entry[0] for entry in self._sessions.values()]
            self._sessions = OrderedDict()
        self._close_all(sessions)
        self._executor.shutdown(wait=True)
        logger.info("Session service stopped (%d sessions closed)", len(sessions))

    def _check_open(self):
        if self._disposed:
            raise RuntimeError("SessionService has been disposed")

    def _touch(self, sid):
        # Caller holds the lock.
        now = self._clock()
        evicted = self._evict_idle(now)
        entry = self._sessions.get(sid)
        if entry is None:
            return None, evicted
        entry[1] = now
        self._sessions.move_to_end(sid)
        return entry[0], evicted

    def _evict_idle(self, now):
        evicted = []
        while self._sessions:
            sid, (auth, last_seen) = next(iter(self._sessions.items()))
            if now - last_seen <= self._idle_timeout:
                break
            del self._sessions[sid]
            evicted.append(auth)
        if evicted:
            logger.info("Closed %d idle sessions", len(evicted))
        return evicted

    def _evict_overflow(self):
        evicted = []
        while len(self._sessions) > self._max_sessions:
            _, (auth, _) = self._sessions.popitem(last=False)
            evicted.append(auth)
        if evicted:
            logger.warning("Session registry full, closed %d least recently used", len(evicted))
        return evicted

    @staticmethod
    def _close_all(sessions):
        for auth in sessions:
            auth.close()
