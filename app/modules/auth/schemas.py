from pydantic import BaseModel
from typing import Optional


class Identity(BaseModel):
    """Current user as supplied by the external auth collaborator. Read-only."""
    uid: str
    name: Optional[str] = None
    email: Optional[str] = None
    photo_url: Optional[str] = None

    model_config = {"frozen": True}

    @property
    def display_name(self) -> str:
        return self.name or self.email or "Unknown"
