"""Wire models for the StackPath gateway API."""

from __future__ import annotations

from pydantic import BaseModel


class PurgeItem(BaseModel):
    url: str
    recursive: bool | None = None  # Omitted from the body unless set


class PurgeRequest(BaseModel):
    items: list[PurgeItem]

    def to_body(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


class TokenRequest(BaseModel):
    client_id: str
    client_secret: str
    grant_type: str = "client_credentials"
