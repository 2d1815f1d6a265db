"""
Admin authentication for CampusVoice.
Email/password accounts, signed session tokens, and the AuthSession
object the routes use to find out who is signed in.
"""

import logging
from typing import Callable, Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from campusvoice import config
from campusvoice.db.models import AdminUser, utcnow
from campusvoice.errors import AuthError, ConflictError, ValidationError

logger = logging.getLogger(__name__)

SESSION_MAX_AGE = 60 * 60 * 24 * 7  # 7 days in seconds
PASSWORD_ROUNDS = 390_000
MIN_PASSWORD_LENGTH = 8
INVALID_CREDENTIALS = "Invalid email or password"

serializer = URLSafeTimedSerializer(config.SECRET_KEY, salt="campusvoice-session")
pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
    pbkdf2_sha256__rounds=PASSWORD_ROUNDS,
)


# =============================================================================
# PASSWORDS
# =============================================================================

def hash_password(password: str, context: CryptContext = pwd_context) -> str:
    return context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    """True if password matches hashed; malformed hashes never match."""
    try:
        return pwd_context.verify(password, hashed)
    except (TypeError, ValueError):
        return False


def create_admin_user(db: Session, email: str, password: str) -> AdminUser:
    email = (email or "").strip().lower()
    if "@" not in email:
        raise ValidationError("Please enter a valid email address")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if db.query(AdminUser).filter(AdminUser.email == email).first():
        raise ConflictError(f"Admin {email} already exists")

    user = AdminUser(email=email, password_hash=hash_password(password))
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Created admin user %s", email)
    return user


# =============================================================================
# SESSION TOKENS
# =============================================================================

def create_session_token(user: AdminUser) -> str:
    return serializer.dumps({"uid": user.id, "created_at": utcnow().isoformat()})


def read_session_token(token: str) -> Optional[int]:
    """Return the user id carried by a valid, unexpired token."""
    try:
        data = serializer.loads(token, max_age=SESSION_MAX_AGE)
    except (BadSignature, SignatureExpired):
        return None
    uid = data.get("uid") if isinstance(data, dict) else None
    return uid if isinstance(uid, int) else None


class AuthSession:
    """Who is signed in for one request.

    Built from the session cookie value. sign_in() and sign_out() update
    token; the route writes it back to the cookie. Listeners receive
    "signed_in" or "signed_out".
    """

    def __init__(self, db: Session, token: Optional[str] = None):
        self.db = db
        self.token = token
        self._user: Optional[AdminUser] = None
        self._resolved = False
        self._listeners: list[Callable[[str], None]] = []

    @property
    def current_user(self) -> Optional[AdminUser]:
        if not self._resolved:
            self._resolved = True
            uid = read_session_token(self.token) if self.token else None
            if uid is not None:
                self._user = self.db.get(AdminUser, uid)
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self.current_user is not None

    def sign_in(self, email: str, password: str) -> AdminUser:
        email = (email or "").strip().lower()
        user = self.db.query(AdminUser).filter(AdminUser.email == email).first()
        if user is None or not verify_password(password or "", user.password_hash):
            logger.warning("Failed admin sign-in for %s", email or "<blank>")
            raise AuthError(INVALID_CREDENTIALS, code="invalid_credentials")

        self.token = create_session_token(user)
        self._user = user
        self._resolved = True
        logger.info("Admin %s signed in", user.email)
        self._emit("signed_in")
        return user

    def sign_out(self) -> None:
        if self._user is not None:
            logger.info("Admin %s signed out", self._user.email)
        self.token = None
        self._user = None
        self._resolved = True
        self._emit("signed_out")

    def subscribe(self, listener: Callable[[str], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: str) -> None:
        for listener in list(self._listeners):
            listener(event)
