"""Auth provider: password hashing, JWT tokens and auth-state events."""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable, List, Optional

import bcrypt
from jose import JWTError, jwt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES, MIN_PASSWORD_LENGTH
from errors import DuplicateEmail, InvalidCredentials, WeakPassword
from models import AuthUser

logger = logging.getLogger(__name__)


class AuthEvent(str, enum.Enum):
    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


@dataclass(frozen=True)
class Identity:
    id: str
    email: str


AuthCallback = Callable[[AuthEvent, Optional[Identity]], Awaitable[None]]


# ---------- Password helpers ----------

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


# ---------- JWT helpers ----------

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


# ---------- User CRUD ----------

def get_user_by_email(db: Session, email: str) -> Optional[AuthUser]:
    return db.query(AuthUser).filter(AuthUser.email == email.lower()).first()


def create_user(db: Session, email: str, password: str) -> AuthUser:
    user = AuthUser(email=email.lower(), hashed_password=hash_password(password))
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Created auth identity %s", user.id)
    return user


def authenticate_user(db: Session, email: str, password: str) -> Optional[AuthUser]:
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        return None
    return user


# ---------- Provider ----------

class AuthProvider:
    """
    Issues and checks access tokens and tells listeners when the auth state
    changes. One provider holds at most one signed-in identity; the web layer
    builds one per request from the ``access_token`` cookie.
    """

    def __init__(self, session_factory, token: Optional[str] = None):
        self._session_factory = session_factory
        self._token = token
        self._identity: Optional[Identity] = None
        self._listeners: List[AuthCallback] = []

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    def on_auth_state_change(self, callback: AuthCallback) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    async def _emit(self, event: AuthEvent) -> None:
        for callback in list(self._listeners):
            await callback(event, self._identity)

    def _issue(self, identity: Identity) -> str:
        self._identity = identity
        self._token = create_access_token({"sub": identity.id, "email": identity.email})
        return self._token

    async def restore(self) -> Optional[Identity]:
        """Resolve the identity behind the current token and emit INITIAL_SESSION."""
        self._identity = None
        payload = decode_token(self._token) if self._token else None
        if payload and payload.get("sub"):
            self._identity = Identity(id=payload["sub"], email=payload.get("email", ""))
        else:
            self._token = None
        await self._emit(AuthEvent.INITIAL_SESSION)
        return self._identity

    async def sign_in(self, email: str, password: str) -> str:
        with self._session_factory() as db:
            user = authenticate_user(db, email, password)
            if user is None:
                raise InvalidCredentials()
            identity = Identity(id=user.id, email=user.email)
        token = self._issue(identity)
        await self._emit(AuthEvent.SIGNED_IN)
        return token

    async def sign_up(self, email: str, password: str) -> Identity:
        """Create the auth identity. Does not sign in."""
        if len(password) < MIN_PASSWORD_LENGTH:
            raise WeakPassword(f"Password should be at least {MIN_PASSWORD_LENGTH} characters")
        with self._session_factory() as db:
            if get_user_by_email(db, email):
                raise DuplicateEmail()
            try:
                user = create_user(db, email, password)
            except IntegrityError:
                db.rollback()
                raise DuplicateEmail() from None
            return Identity(id=user.id, email=user.email)

    async def refresh(self) -> Optional[str]:
        if self._identity is None:
            return None
        token = self._issue(self._identity)
        await self._emit(AuthEvent.TOKEN_REFRESHED)
        return token

    async def sign_out(self) -> None:
        self._identity = None
        self._token = None
        await self._emit(AuthEvent.SIGNED_OUT)
