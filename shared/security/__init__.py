from .jwt_handler import create_access_token, verify_access_token
from .principal import OPERATOR_ROLE, Principal
from .dependencies import get_current_principal, get_current_user, require_operator
from .rate_limiter import limiter, user_id_or_ip

__all__ = [
    "create_access_token",
    "verify_access_token",
    "OPERATOR_ROLE",
    "Principal",
    "get_current_principal",
    "get_current_user",
    "require_operator",
    "limiter",
    "user_id_or_ip"
]
