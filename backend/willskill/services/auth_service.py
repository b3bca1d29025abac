"""
Authentication Service Module
=============================

Handles dashboard sign-in:
- Password hashing using Argon2
- JWT access and refresh tokens with type discrimination
- Token version tracking so logout invalidates every issued token

Authorization is not decided here. Roles are read through the session
store by the role context and the server-side dependencies.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from uuid import UUID

from argon2 import PasswordHasher
from argon2.exceptions import Argon2Error, InvalidHashError, VerifyMismatchError
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from willskill.core.config import settings
from willskill.core.exceptions import (
    AccountDisabledError,
    InvalidCredentialsError,
    TokenExpiredError,
    TokenInvalidError,
    TokenVersionMismatchError,
)
from willskill.core.logging import get_logger, security_logger
from willskill.models.user import User

# Initialize logger
logger = get_logger(__name__)


# ==========================
# Password Hasher Configuration
# ==========================

ph = PasswordHasher(
    time_cost=3,        # Number of passes
    memory_cost=65536,  # 64 MB memory
    parallelism=4,
    hash_len=32,
    salt_len=16,
)


class TokenType:
    """Token type constants for discrimination."""
    ACCESS = "access"
    REFRESH = "refresh"


# ==========================
# Auth Service Class
# ==========================

class AuthService:
    """
    Authentication service bound to one database session.

    Usage:
        auth_service = AuthService(db)
        user, tokens = auth_service.authenticate_user(email, password)
    """

    def __init__(self, db: Session):
        self.db = db

    # --------------------------
    # Password Utilities
    # --------------------------

    @staticmethod
    def hash_password(password: str) -> str:
        return ph.hash(password)

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        """
        Verify a password against its hash.

        Returns:
            True if password matches, False otherwise
        """
        try:
            ph.verify(hashed_password, plain_password)
            return True
        except VerifyMismatchError:
            return False
        except (Argon2Error, InvalidHashError) as e:
            logger.warning(
                "Password verification error",
                extra={"error": str(e)}
            )
            return False

    # --------------------------
    # Token Creation
    # --------------------------

    @staticmethod
    def _create_token(
        user_id: UUID,
        token_version: int,
        token_type: str,
        expires_delta: timedelta,
    ) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "token_version": token_version,
            "type": token_type,
            "exp": now + expires_delta,
            "iat": now,
            "iss": settings.ISSUER,
            "aud": settings.AUDIENCE,
        }
        return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @classmethod
    def create_access_token(
        cls,
        user_id: UUID,
        token_version: int,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        if expires_delta is None:
            expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        return cls._create_token(user_id, token_version, TokenType.ACCESS, expires_delta)

    @classmethod
    def create_refresh_token(
        cls,
        user_id: UUID,
        token_version: int,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        if expires_delta is None:
            expires_delta = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
        return cls._create_token(user_id, token_version, TokenType.REFRESH, expires_delta)

    # --------------------------
    # Token Decoding & Validation
    # --------------------------

    @staticmethod
    def decode_token(token: str, expected_type: Optional[str] = None) -> dict:
        """
        Decode and validate a JWT token.

        Raises:
            TokenExpiredError: If token has expired
            TokenInvalidError: If token is invalid or of the wrong type
        """
        try:
            payload = jwt.decode(
                token,
                settings.SECRET_KEY,
                algorithms=[settings.ALGORITHM],
                issuer=settings.ISSUER,
                audience=settings.AUDIENCE,
            )
        except ExpiredSignatureError:
            raise TokenExpiredError(token_type=expected_type or "unknown")
        except JWTError as e:
            logger.warning(
                "Token decode error",
                extra={"error": str(e)}
            )
            raise TokenInvalidError(reason=str(e))

        if expected_type and payload.get("type") != expected_type:
            raise TokenInvalidError(
                reason=f"Expected {expected_type} token, got {payload.get('type')}"
            )
        return payload

    def get_tokens_for_user(self, user: User) -> dict:
        return {
            "access_token": self.create_access_token(user.id, user.token_version),
            "refresh_token": self.create_refresh_token(user.id, user.token_version),
            "token_type": "bearer",
            "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        }

    def _user_from_payload(self, payload: dict) -> User:
        user_id = payload.get("sub")
        token_version = payload.get("token_version")

        if not user_id or token_version is None:
            raise TokenInvalidError(reason="Invalid token payload")

        try:
            user_uuid = UUID(user_id)
        except ValueError:
            raise TokenInvalidError(reason="Invalid user ID format")

        user = self.db.get(User, user_uuid)
        if not user:
            raise TokenInvalidError(reason="User not found")

        if user.token_version != token_version:
            security_logger.log_token_invalid(
                reason="token_version_mismatch",
                ip_address="unknown"
            )
            raise TokenVersionMismatchError()

        if not user.is_active:
            raise AccountDisabledError()

        return user

    # --------------------------
    # Authentication Methods
    # --------------------------

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.scalars(
            select(User).where(func.lower(User.email) == email.lower())
        ).first()

    def authenticate_user(
        self,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
    ) -> Tuple[User, dict]:
        """
        Authenticate a user with email and password.

        Returns:
            Tuple of (User, tokens dict)

        Raises:
            InvalidCredentialsError: If credentials are invalid
            AccountDisabledError: If account is disabled
        """
        user = self.get_user_by_email(email)

        if not user:
            security_logger.log_login_failure(
                email=email,
                ip_address=ip_address or "unknown",
                reason="user_not_found"
            )
            raise InvalidCredentialsError()

        if not user.is_active:
            security_logger.log_login_failure(
                email=email,
                ip_address=ip_address or "unknown",
                reason="account_disabled"
            )
            raise AccountDisabledError()

        if not self.verify_password(password, user.hashed_password):
            security_logger.log_login_failure(
                email=email,
                ip_address=ip_address or "unknown",
                reason="invalid_password"
            )
            raise InvalidCredentialsError()

        tokens = self.get_tokens_for_user(user)

        security_logger.log_login_success(
            user_id=str(user.id),
            ip_address=ip_address or "unknown",
        )
        return user, tokens

    def refresh_tokens(self, refresh_token: str) -> dict:
        """
        Issue a new token pair from a valid refresh token.

        Raises:
            TokenInvalidError: If token is invalid
            TokenVersionMismatchError: If the user logged out since
            AccountDisabledError: If account is disabled
        """
        payload = self.decode_token(refresh_token, expected_type=TokenType.REFRESH)
        user = self._user_from_payload(payload)
        return self.get_tokens_for_user(user)

    def logout(self, user: User) -> None:
        """Invalidate every token issued to the user."""
        user.invalidate_tokens()
        self.db.commit()

        security_logger.log_logout(user_id=str(user.id))

    def validate_access_token(self, token: str) -> User:
        """
        Validate an access token and return the user.

        Raises:
            TokenInvalidError: If token is invalid
            TokenVersionMismatchError: If token version doesn't match
            AccountDisabledError: If account is disabled
        """
        payload = self.decode_token(token, expected_type=TokenType.ACCESS)
        return self._user_from_payload(payload)
