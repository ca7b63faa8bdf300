from pydantic import BaseModel
from typing import Optional

class UserSummary(BaseModel):
    id: int
    username: str
    full_name: Optional[str] = None

    class Config:
        from_attributes = True
