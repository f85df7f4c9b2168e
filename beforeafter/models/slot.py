"""Slot geometry and the unified per-slot image data."""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from ..config import LEGACY_IMAGE_SIZE
from ..errors import ValidationError

logger = logging.getLogger(__name__)


class FeatureKey(str, Enum):
    """AI features the enhancement queue can run."""

    AUTO_QUALITY = "auto_quality"
    BACKGROUND_REMOVE = "background_remove"
    BACKGROUND_REPLACE = "background_replace"


class BackgroundType(str, Enum):
    SOLID = "solid"
    GRADIENT = "gradient"
    TRANSPARENT = "transparent"


GRADIENT_DIRECTIONS = ("vertical", "horizontal", "diagonal-tl", "diagonal-tr")


@dataclass(frozen=True)
class GradientConfig:
    """Two-stop linear gradient behind a transparent PNG."""
    colors: tuple[str, str]
    direction: str = "vertical"          # one of GRADIENT_DIRECTIONS

    def __post_init__(self):
        if len(self.colors) != 2:
            raise ValidationError(f"Gradient needs exactly 2 colors, got {len(self.colors)}")
        if self.direction not in GRADIENT_DIRECTIONS:
            raise ValidationError(f"Unknown gradient direction: {self.direction}")

    def to_dict(self) -> dict:
        return {"type": "linear", "colors": list(self.colors), "direction": self.direction}

    @classmethod
    def from_dict(cls, data: dict) -> "GradientConfig":
        return cls(colors=tuple(data["colors"]), direction=data.get("direction", "vertical"))


@dataclass(frozen=True)
class BackgroundInfo:
    """Tagged variant: exactly the payload matching `type` is populated."""
    type: BackgroundType
    solid_color: str | None = None
    gradient: GradientConfig | None = None

    def __post_init__(self):
        match self.type:
            case BackgroundType.SOLID:
                ok = self.solid_color is not None and self.gradient is None
            case BackgroundType.GRADIENT:
                ok = self.gradient is not None and self.solid_color is None
            case BackgroundType.TRANSPARENT:
                ok = self.solid_color is None and self.gradient is None
            case _:
                raise ValidationError(f"Unknown background type: {self.type}")
        if not ok:
            raise ValidationError(f"Background payload does not match type '{self.type.value}'")

    @classmethod
    def solid(cls, color: str) -> "BackgroundInfo":
        return cls(BackgroundType.SOLID, solid_color=color)

    @classmethod
    def linear_gradient(cls, colors: tuple[str, str], direction: str = "vertical") -> "BackgroundInfo":
        return cls(BackgroundType.GRADIENT, gradient=GradientConfig(colors, direction))

    @classmethod
    def transparent(cls) -> "BackgroundInfo":
        return cls(BackgroundType.TRANSPARENT)

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"type": self.type.value}
        if self.solid_color is not None:
            data["solidColor"] = self.solid_color
        if self.gradient is not None:
            data["gradient"] = self.gradient.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "BackgroundInfo":
        try:
            bg_type = BackgroundType(data.get("type"))
        except ValueError:
            raise ValidationError(f"Unknown background type: {data.get('type')}")
        gradient = data.get("gradient")
        return cls(
            type=bg_type,
            solid_color=data.get("solidColor") if bg_type is BackgroundType.SOLID else None,
            gradient=GradientConfig.from_dict(gradient) if bg_type is BackgroundType.GRADIENT and gradient else None,
        )


@dataclass(frozen=True)
class ImageAdjustments:
    """User pan/zoom/rotate. Translation is a fraction of the overflow, in [-0.5, 0.5]."""
    scale: float = 1.0
    translate_x: float = 0.0
    translate_y: float = 0.0
    rotation: float = 0.0                # degrees

    def merged(self, **partial: float) -> "ImageAdjustments":
        unknown = set(partial) - {"scale", "translate_x", "translate_y", "rotation"}
        if unknown:
            raise ValidationError(f"Unknown adjustment fields: {sorted(unknown)}")
        return replace(self, **partial)

    def to_dict(self) -> dict:
        return {
            "scale": self.scale,
            "translateX": self.translate_x,
            "translateY": self.translate_y,
            "rotation": self.rotation,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "ImageAdjustments":
        if not data:
            return cls()
        return cls(
            scale=float(data.get("scale", 1.0)),
            translate_x=float(data.get("translateX", 0.0)),
            translate_y=float(data.get("translateY", 0.0)),
            rotation=float(data.get("rotation", 0.0) or 0.0),
        )


DEFAULT_ADJUSTMENTS = ImageAdjustments()


@dataclass(frozen=True)
class SlotAIState:
    """All AI data for one slot, kept together so it never drifts apart."""
    original_uri: str
    enhancements_applied: tuple[str, ...] = ()
    transparent_png_url: str | None = None
    background_info: BackgroundInfo | None = None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "originalUri": self.original_uri,
            "enhancementsApplied": list(self.enhancements_applied),
        }
        if self.transparent_png_url:
            data["transparentPngUrl"] = self.transparent_png_url
        if self.background_info:
            data["backgroundInfo"] = self.background_info.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict, fallback_uri: str) -> "SlotAIState":
        background = data.get("backgroundInfo")
        return cls(
            original_uri=data.get("originalUri") or fallback_uri,
            enhancements_applied=tuple(data.get("enhancementsApplied") or ()),
            transparent_png_url=data.get("transparentPngUrl"),
            background_info=BackgroundInfo.from_dict(background) if background else None,
        )


@dataclass(frozen=True)
class SlotData:
    """The single source of truth for one slot. Replaced whole on every change."""
    uri: str                             # currently displayed image
    width: int
    height: int
    adjustments: ImageAdjustments = DEFAULT_ADJUSTMENTS
    ai: SlotAIState | None = None

    def __post_init__(self):
        if self.ai is None:
            object.__setattr__(self, "ai", SlotAIState(original_uri=self.uri))

    def to_dict(self) -> dict:
        return {
            "uri": self.uri,
            "width": self.width,
            "height": self.height,
            "adjustments": self.adjustments.to_dict(),
            "ai": self.ai.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SlotData":
        uri = data["uri"]
        width = int(data.get("width") or 0)
        height = int(data.get("height") or 0)
        # Cover-fit needs both; a partial pair is replaced whole
        if width <= 0 or height <= 0:
            logger.warning(f"Slot image {uri} has no stored dimensions, assuming {LEGACY_IMAGE_SIZE}")
            width, height = LEGACY_IMAGE_SIZE
        return cls(
            uri=uri,
            width=width,
            height=height,
            adjustments=ImageAdjustments.from_dict(data.get("adjustments")),
            ai=SlotAIState.from_dict(data.get("ai") or {}, fallback_uri=uri),
        )


def slots_to_dict(slots: dict[str, SlotData | None]) -> dict[str, dict | None]:
    """Serialize a slot map to the unified slot_data JSON blob."""
    return {slot_id: data.to_dict() if data else None for slot_id, data in slots.items()}


def slots_from_dict(raw: dict[str, Any] | None) -> dict[str, SlotData | None]:
    return {
        slot_id: SlotData.from_dict(data) if data else None
        for slot_id, data in (raw or {}).items()
    }


@dataclass(frozen=True)
class AIResult:
    """Complete result of one enhancement, applied to a slot in one step."""
    uri: str
    feature_key: str
    transparent_png_url: str | None = None
    background_info: BackgroundInfo | None = None
    width: int | None = None
    height: int | None = None


@dataclass(frozen=True)
class Slot:
    """A photo placement in the template design grid (design pixels)."""
    id: str                              # template layer name, e.g. "slot-before"
    width: float
    height: float
    x_percent: float                     # 0-100 from left
    y_percent: float                     # 0-100 from top
    label: str = ""
    placeholder_url: str | None = None
    z_index: int = 0


class SlotState(str, Enum):
    EMPTY = "empty"
    CAPTURING = "capturing"
    PROCESSING = "processing"
    UPLOADING = "uploading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class SlotStateInfo:
    """UI-visible loading state of a slot. Never persisted."""
    state: SlotState = SlotState.EMPTY
    error_message: str | None = None
    progress: float | None = None        # 0-100


EMPTY_STATE = SlotStateInfo()
