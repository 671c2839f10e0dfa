from pydantic import BaseModel


class AssetResponse(BaseModel):
    url: str
