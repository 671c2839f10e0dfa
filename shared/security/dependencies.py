from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer

from shared.errors import Forbidden, Unauthorized
from .jwt_handler import verify_access_token
from .principal import Principal

# Defines the expected header format (Bearer <token>). Tokens come from the
# external identity provider; tokenUrl only feeds the OpenAPI docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)


async def get_current_principal(request: Request, token: str = Depends(oauth2_scheme)) -> Principal:
    """Dependency to validate the JWT and return the caller's identity."""
    if not token:
        raise Unauthorized()

    claims = verify_access_token(token)
    if claims is None:
        raise Unauthorized()

    principal = Principal.from_claims(claims)
    if principal is None:
        raise Unauthorized()

    # Store in request state for downstream use (like rate limiting)
    request.state.user_id = principal.user_id
    return principal


async def get_current_user(principal: Principal = Depends(get_current_principal)) -> str:
    """Dependency returning just the owner id of the caller."""
    return principal.user_id


async def require_operator(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_operator:
        raise Forbidden()
    return principal
