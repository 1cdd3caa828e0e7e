from uuid import UUID

from pydantic import BaseModel, ConfigDict


class AdSummary(BaseModel):
    """Ad fields shown in a chat thread or inbox row."""
    id: UUID
    title: str
    thumbnail: str | None = None

    model_config = ConfigDict(from_attributes=True)
