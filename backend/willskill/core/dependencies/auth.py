"""
Authentication Dependencies Module
==================================

FastAPI dependencies that turn a bearer token into the authenticated user.

Usage:
    @router.get("/protected")
    def protected_route(identity: Identity = Depends(get_current_identity)):
        return {"email": identity.email}
"""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from willskill.core.exceptions import (
    AccountDisabledError,
    TokenExpiredError,
    TokenInvalidError,
    TokenVersionMismatchError,
)
from willskill.core.identity import Identity
from willskill.core.logging import actor_id_context, get_logger, security_logger
from willskill.db.session import get_db
from willskill.models.user import User
from willskill.services.auth_service import AuthService

# Initialize logger
logger = get_logger(__name__)


# =====================================
# OAuth2 Scheme
# =====================================

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/auth/login",
    auto_error=True,
    description="OAuth2 token for authentication",
)


# =====================================
# Get Current User
# =====================================

def get_current_user(
    request: Request,
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Validate the JWT and return the current user from the database.

    Raises:
        HTTPException: 401 if the token is invalid, expired or revoked;
            403 if the account is disabled
    """
    auth_service = AuthService(db)

    try:
        user = auth_service.validate_access_token(token)
    except (TokenInvalidError, TokenExpiredError) as e:
        logger.warning(
            "Invalid token presented",
            extra={"reason": e.message}
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except TokenVersionMismatchError:
        security_logger.log_token_invalid(
            reason="token_version_mismatch",
            ip_address=request.client.host if request.client else "unknown"
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has been invalidated. Please log in again.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except AccountDisabledError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account has been disabled. Please contact your administrator.",
        )

    request.state.user_id = str(user.id)
    actor_id_context.set(str(user.id))
    return user


def get_current_identity(current_user: User = Depends(get_current_user)) -> Identity:
    """The authenticated user as a plain identity value."""
    return Identity.from_user(current_user)
