"""Free-floating overlays (text, date, logo) rendered on top of the composite."""

import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any

from ..errors import ValidationError
from ..utils import to_iso, utc_now

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

# Logo scale bounds, relative to the logo's original size
MIN_LOGO_SCALE = 0.1
MAX_LOGO_SCALE = 3.0


class OverlayType(str, Enum):
    TEXT = "text"
    DATE = "date"
    LOGO = "logo"


class DateFormat(str, Enum):
    SHORT = "short"                      # 1/12/26
    MEDIUM = "medium"                    # Jan 12, 2026
    LONG = "long"                        # January 12, 2026
    ISO = "iso"                          # 2026-01-12
    EUROPEAN = "european"                # 12/01/2026

    def format_date(self, value: date) -> str:
        match self:
            case DateFormat.SHORT:
                return f"{value.month}/{value.day}/{str(value.year)[-2:]}"
            case DateFormat.MEDIUM:
                return f"{MONTH_NAMES[value.month - 1][:3]} {value.day}, {value.year}"
            case DateFormat.ISO:
                return f"{value.year}-{value.month:02d}-{value.day:02d}"
            case DateFormat.EUROPEAN:
                return f"{value.day:02d}/{value.month:02d}/{value.year}"
            case _:
                return f"{MONTH_NAMES[value.month - 1]} {value.day}, {value.year}"


@dataclass(frozen=True)
class OverlayTransform:
    """Position as 0-1 ratios of the canvas, so it survives any display size."""
    x: float = 0.5
    y: float = 0.5
    scale: float = 1.0
    rotation: float = 0.0                # degrees

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "scale": self.scale, "rotation": self.rotation}

    @classmethod
    def from_dict(cls, data: dict | None) -> "OverlayTransform":
        data = data or {}
        return cls(
            x=float(data.get("x", 0.5)),
            y=float(data.get("y", 0.5)),
            scale=float(data.get("scale", 1.0)),
            rotation=float(data.get("rotation", 0.0)),
        )


def new_overlay_id() -> str:
    return f"overlay_{uuid.uuid4().hex[:12]}"


def _now_iso() -> str:
    return to_iso(utc_now())


@dataclass(frozen=True)
class TextOverlay:
    content: str = "Your Text"
    font_family: str = "System"
    font_size: float = 32
    color: str = "#FFFFFF"
    text_shadow: bool = True
    background_color: str | None = None
    background_padding: float = 8
    background_border_radius: float = 6
    transform: OverlayTransform = OverlayTransform(y=0.8)
    id: str = field(default_factory=new_overlay_id)
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)
    type = OverlayType.TEXT


@dataclass(frozen=True)
class DateOverlay:
    date: str = field(default_factory=_now_iso)   # ISO date string
    format: DateFormat = DateFormat.MEDIUM
    font_family: str = "System"
    font_size: float = 24
    color: str = "#FFFFFF"
    text_shadow: bool = True
    background_color: str | None = None
    background_padding: float = 8
    background_border_radius: float = 6
    transform: OverlayTransform = OverlayTransform(x=0.15, y=0.9)
    id: str = field(default_factory=new_overlay_id)
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)
    type = OverlayType.DATE

    @property
    def display_text(self) -> str:
        return self.format.format_date(datetime.fromisoformat(self.date.replace("Z", "+00:00")).date())


@dataclass(frozen=True)
class LogoOverlay:
    image_uri: str = ""
    original_width: int = 0
    original_height: int = 0
    is_brand_kit: bool = False
    transform: OverlayTransform = OverlayTransform()
    id: str = field(default_factory=new_overlay_id)
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)
    type = OverlayType.LOGO

    def __post_init__(self):
        if not MIN_LOGO_SCALE <= self.transform.scale <= MAX_LOGO_SCALE:
            clamped = min(max(self.transform.scale, MIN_LOGO_SCALE), MAX_LOGO_SCALE)
            object.__setattr__(self, "transform", replace(self.transform, scale=clamped))


Overlay = TextOverlay | DateOverlay | LogoOverlay

# Python attribute -> stored camelCase key, per overlay type
_FIELD_KEYS = {
    OverlayType.TEXT: {
        "content": "content",
        "font_family": "fontFamily",
        "font_size": "fontSize",
        "color": "color",
        "text_shadow": "textShadow",
        "background_color": "backgroundColor",
        "background_padding": "backgroundPadding",
        "background_border_radius": "backgroundBorderRadius",
    },
    OverlayType.LOGO: {
        "image_uri": "imageUri",
        "original_width": "originalWidth",
        "original_height": "originalHeight",
        "is_brand_kit": "isBrandKit",
    },
}
_FIELD_KEYS[OverlayType.DATE] = {
    **{k: v for k, v in _FIELD_KEYS[OverlayType.TEXT].items() if k != "content"},
    "date": "date",
    "format": "format",
}

_OVERLAY_CLASSES = {
    OverlayType.TEXT: TextOverlay,
    OverlayType.DATE: DateOverlay,
    OverlayType.LOGO: LogoOverlay,
}


def overlay_to_dict(overlay: Overlay) -> dict:
    data: dict[str, Any] = {
        "id": overlay.id,
        "type": overlay.type.value,
        "transform": overlay.transform.to_dict(),
        "createdAt": overlay.created_at,
        "updatedAt": overlay.updated_at,
    }
    for attr, key in _FIELD_KEYS[overlay.type].items():
        value = getattr(overlay, attr)
        if isinstance(value, Enum):
            value = value.value
        if value is not None:
            data[key] = value
    return data


def overlay_from_dict(data: dict) -> Overlay:
    try:
        overlay_type = OverlayType(data.get("type"))
    except ValueError:
        raise ValidationError(f"Unknown overlay type: {data.get('type')}")

    kwargs: dict[str, Any] = {
        attr: data[key]
        for attr, key in _FIELD_KEYS[overlay_type].items()
        if key in data
    }
    if "format" in kwargs:
        kwargs["format"] = DateFormat(kwargs["format"])
    for key, attr in (("id", "id"), ("createdAt", "created_at"), ("updatedAt", "updated_at")):
        if data.get(key):
            kwargs[attr] = data[key]
    kwargs["transform"] = OverlayTransform.from_dict(data.get("transform"))
    return _OVERLAY_CLASSES[overlay_type](**kwargs)
