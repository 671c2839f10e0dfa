from typing import Dict, List

from pydantic import BaseModel


class UsernameLookup(BaseModel):
    user_ids: List[str]


class UsernameLookupResponse(BaseModel):
    users: Dict[str, str]
