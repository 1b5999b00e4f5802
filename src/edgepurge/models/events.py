"""Host lifecycle events.

The CMS forwards these either in-process (by publishing on an ``EventBus``)
or over the webhook as JSON objects discriminated by ``type``.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, Field


class PageRef(BaseModel):
    """Minimal view of a CMS page: its id, public URL and ancestor ids."""

    id: int
    url: str | None = None  # None for pages without a public URL
    parent_ids: list[int] = []

    def has_ancestor(self, page_id: int) -> bool:
        return page_id in self.parent_ids


class PagesCleared(BaseModel):
    """Rendered cache files for a page (and optionally related pages) were cleared."""

    type: Literal["pages_cleared"] = "pages_cleared"
    page: PageRef
    pages: list[PageRef] = []


class AllCleared(BaseModel):
    """Every rendered cache file of the site was cleared."""

    type: Literal["all_cleared"] = "all_cleared"


class PageSaved(BaseModel):
    type: Literal["page_saved"] = "page_saved"
    page: PageRef | None = None


class FieldSaved(BaseModel):
    type: Literal["field_saved"] = "field_saved"
    field: str = ""


class AcceleratorClearSubmitted(BaseModel):
    """The accelerator module's "clear all" form action was processed."""

    type: Literal["accelerator_clear_submitted"] = "accelerator_clear_submitted"


class AcceleratorClearExecuted(BaseModel):
    """The accelerator module ran its clear behaviour with these counts."""

    type: Literal["accelerator_clear_executed"] = "accelerator_clear_executed"
    site: int = 0
    family: int = 0
    children: int = 0

    @property
    def cleared_anything(self) -> bool:
        return self.site > 0 or self.family > 0 or self.children > 0


HostEvent = Annotated[
    PagesCleared
    | AllCleared
    | PageSaved
    | FieldSaved
    | AcceleratorClearSubmitted
    | AcceleratorClearExecuted,
    Field(discriminator="type"),
]


class EventBatch(BaseModel):
    """Body of ``POST /events``: events raised during one host request."""

    events: list[HostEvent] = Field(min_length=1)


class PurgeCommand(BaseModel):
    """Body of ``POST /purge``."""

    urls: list[str] = []
    all: bool = False
