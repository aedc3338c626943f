import logging
from typing import Optional

import bcrypt
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from config import Settings
from errors import AuthenticationError, NotFoundError, ValidationError
from models import User
from repository import LedgerRepository
from schemas import LoginIn, RegisterIn

logger = logging.getLogger(__name__)


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds)).decode(
        "utf-8"
    )


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def _serializer(settings: Settings) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(settings.secret_key, salt="session-token")


def issue_token(settings: Settings, user_id: int) -> str:
    return _serializer(settings).dumps({"u": user_id})


def verify_token(settings: Settings, token: Optional[str]) -> int:
    if not token:
        raise AuthenticationError("Access denied, no token provided")
    try:
        data = _serializer(settings).loads(token, max_age=settings.token_max_age_secs)
    except SignatureExpired as exc:
        raise AuthenticationError("Token expired") from exc
    except BadSignature as exc:
        raise AuthenticationError("Invalid token") from exc
    user_id = data.get("u") if isinstance(data, dict) else None
    if not isinstance(user_id, int):
        raise AuthenticationError("Invalid token")
    return user_id


class AuthService:
    def __init__(self, repo: LedgerRepository, settings: Settings) -> None:
        self.repo = repo
        self.settings = settings

    def register(self, data: RegisterIn) -> tuple[User, str]:
        if self.repo.find_user_by_email(data.email):
            raise ValidationError("Email is already registered")
        user = User(
            email=data.email,
            password_hash=hash_password(data.password, self.settings.bcrypt_rounds),
            full_name=data.full_name.strip(),
        )
        self.repo.add_user(user)
        self.repo.commit()
        logger.info(f"user_registered: user_id={user.id}")
        return user, issue_token(self.settings, user.id)

    def login(self, data: LoginIn) -> tuple[User, str]:
        user = self.repo.find_user_by_email(data.email.strip())
        if not user or not verify_password(data.password, user.password_hash):
            logger.warning("login_failed: reason=bad_credentials")
            raise AuthenticationError("Invalid credentials")
        return user, issue_token(self.settings, user.id)

    def profile(self, user_id: int) -> User:
        user = self.repo.get_user(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user
