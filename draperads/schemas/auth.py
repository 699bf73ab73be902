from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class UserResponse(BaseModel):
    id: int
    username: str
    email: Optional[str]
    firstName: Optional[str]
    lastName: Optional[str]
    profileImageUrl: Optional[str]
    createdAt: datetime
    updatedAt: datetime
