from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .overlay import Overlay
from .slot import SlotData


@dataclass(frozen=True)
class Project:
    """A saved draft: unified slot data plus canvas appearance."""
    id: str
    user_id: str
    template_id: str
    project_name: str | None = None
    slot_data: dict[str, SlotData | None] = field(default_factory=dict)
    background_color: str | None = None
    theme_color: str | None = None
    rendered_preview_url: str | None = None
    was_rendered_as_premium: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class ProjectRow:
    """Raw drafts row, including the legacy columns older clients wrote."""
    id: str
    user_id: str
    template_id: str
    project_name: str | None = None
    slot_data: dict[str, Any] | None = None
    background_color: str | None = None
    theme_color: str | None = None
    rendered_preview_url: str | None = None
    was_rendered_as_premium: bool = False
    created_at: str | None = None
    updated_at: str | None = None
    # Legacy columns
    before_image_url: str | None = None
    after_image_url: str | None = None
    captured_image_urls: dict[str, str] | None = None
    captured_image_adjustments: dict[str, dict] | None = None
    captured_image_background_info: dict[str, dict] | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ProjectRow":
        known = cls.__dataclass_fields__.keys()
        return cls(**{key: value for key, value in row.items() if key in known})


@dataclass(frozen=True)
class LoadedProject:
    project: Project
    overlays: list[Overlay] = field(default_factory=list)
