"""
Session/identity store.

Holds the signed-in identity and its profile row, and tells subscribers
whenever that changes. The only writer is the auth-state listener
registered with the provider in ``initialize``; everything else reads.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Union

from pydantic import ValidationError

from auth import AuthEvent, AuthProvider, Identity
from datastore import DataStore
from errors import DataStoreError, SaveFailed
from schemas import ProfileRow, Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    identity: Identity
    profile: Optional[ProfileRow]


class _Unauthenticated:
    def __repr__(self):
        return "UNAUTHENTICATED"

    def __bool__(self):
        return False


UNAUTHENTICATED = _Unauthenticated()

SessionSnapshot = Union[Session, _Unauthenticated]
Subscriber = Callable[["SessionStore"], None]


class SessionStore:
    def __init__(self, provider: AuthProvider, datastore: DataStore):
        self.provider = provider
        self.datastore = datastore
        self._session: SessionSnapshot = UNAUTHENTICATED
        self._loading = True
        self._subscribers: List[Subscriber] = []
        self._unsubscribe_auth: Optional[Callable[[], None]] = None

    # ---------- lifecycle ----------

    async def initialize(self) -> "SessionStore":
        if self._unsubscribe_auth is None:
            self._unsubscribe_auth = self.provider.on_auth_state_change(self._on_auth_state_change)
        await self.provider.restore()
        return self

    def close(self) -> None:
        if self._unsubscribe_auth is not None:
            self._unsubscribe_auth()
            self._unsubscribe_auth = None
        self._subscribers.clear()

    # ---------- reads ----------

    @property
    def loading(self) -> bool:
        return self._loading

    def get_current_session(self) -> SessionSnapshot:
        return self._session

    @property
    def profile(self) -> Optional[ProfileRow]:
        return self._session.profile if self._session else None

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            callback(self)

    # ---------- auth-state listener ----------

    async def _load_profile(self, identity: Identity) -> Optional[ProfileRow]:
        try:
            row = await self.datastore.select_one("profiles", {"id": identity.id})
        except DataStoreError as e:
            logger.error("Error loading profile for %s: %s", identity.id, e.message)
            return None
        if row is None:
            logger.warning("No profile row for identity %s", identity.id)
            return None
        try:
            return ProfileRow.model_validate(row)
        except ValidationError as e:
            logger.error("Malformed profile row for %s: %s", identity.id, e)
            return None

    async def _on_auth_state_change(self, event: AuthEvent, identity: Optional[Identity]) -> None:
        logger.debug("Auth event %s", event.value)
        if identity is None:
            self._session = UNAUTHENTICATED
        else:
            self._session = Session(identity=identity, profile=await self._load_profile(identity))
        self._loading = False
        self._notify()

    # ---------- actions ----------

    async def sign_in(self, email: str, password: str) -> None:
        await self.provider.sign_in(email, password)

    async def sign_up(self, email: str, password: str, full_name: str, role: Role) -> None:
        identity = await self.provider.sign_up(email, password)
        try:
            await self.datastore.insert("profiles", [{
                "id": identity.id,
                "email": identity.email,
                "full_name": full_name,
                "role": role,
            }])
        except DataStoreError as e:
            # The auth identity stays behind without a profile row.
            logger.error("Profile creation failed for %s: %s", identity.id, e.message)
            raise SaveFailed(e.message) from e
        await self.provider.sign_in(email, password)

    async def sign_out(self) -> None:
        try:
            await self.provider.sign_out()
        except Exception as e:
            logger.error("Error signing out: %s", e)
        finally:
            was_signed_in = self._session is not UNAUTHENTICATED or self._loading
            self._session = UNAUTHENTICATED
            self._loading = False
            if was_signed_in:
                self._notify()
