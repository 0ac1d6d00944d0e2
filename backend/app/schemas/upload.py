from pydantic import BaseModel
from typing import Optional


class UploadResponse(BaseModel):
    kind: str
    filename: str
    url: Optional[str] = None
    public_id: Optional[str] = None
    format: Optional[str] = None
    bytes: Optional[int] = None
