from fastapi import APIRouter, Depends

from shared.errors import InvalidInput
from shared.security import Principal, require_operator

from .directory import get_identity_directory
from .schemas import UsernameLookup, UsernameLookupResponse

MAX_LOOKUP_IDS = 100

router = APIRouter()
public_router = APIRouter()  # For any public endpoints (e.g. health check)


@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "identity", "status": "running"}


@router.post("/usernames", response_model=UsernameLookupResponse)
async def lookup_usernames(
    payload: UsernameLookup,
    operator: Principal = Depends(require_operator),
    directory=Depends(get_identity_directory),
):
    """Operator view: resolve order owners to display names."""
    if len(payload.user_ids) > MAX_LOOKUP_IDS:
        raise InvalidInput(f"At most {MAX_LOOKUP_IDS} user ids per lookup")
    return UsernameLookupResponse(users=await directory.lookup_display_names(payload.user_ids))
