"""Theme layers - template decorations recolorable without a remote re-render."""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..errors import ValidationError


class ThemeLayerType(str, Enum):
    SHAPE = "shape"
    TEXT = "text"


@dataclass(frozen=True)
class ThemeLayer:
    """Tagged variant over shape and text layers. Design-space pixels, unrotated box."""
    id: str
    type: ThemeLayerType
    x: float
    y: float
    width: float
    height: float
    rotation: float = 0.0
    opacity: float = 1.0
    # Shape
    fill: str | None = None
    stroke: str | None = None
    stroke_width: float = 0.0
    border_radius: float = 0.0
    shape_type: str = "rectangle"        # rectangle | ellipse | circle | custom
    # Text
    text: str | None = None
    font_family: str | None = None
    font_size: float = 0.0
    font_weight: str | None = None
    horizontal_align: str = "center"
    vertical_align: str = "center"
    letter_spacing: float = 0.0
    color: str | None = None

    def __post_init__(self):
        match self.type:
            case ThemeLayerType.SHAPE:
                if self.text is not None:
                    raise ValidationError(f"Shape layer {self.id} must not carry text")
            case ThemeLayerType.TEXT:
                if self.text is None:
                    raise ValidationError(f"Text layer {self.id} has no text")
            case _:
                raise ValidationError(f"Unknown theme layer type: {self.type}")

    @property
    def is_text(self) -> bool:
        return self.type is ThemeLayerType.TEXT

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ThemeLayer":
        """Parse one entry of a template's theme_layers column."""
        try:
            layer_type = ThemeLayerType(data.get("type", "shape"))
        except ValueError:
            raise ValidationError(f"Unknown theme layer type: {data.get('type')}")

        common = {
            "id": data["id"],
            "type": layer_type,
            "x": float(data.get("x", 0)),
            "y": float(data.get("y", 0)),
            "width": float(data.get("width", 0)),
            "height": float(data.get("height", 0)),
            "rotation": float(data.get("rotation") or 0),
            "opacity": float(data["opacity"]) if data.get("opacity") is not None else 1.0,
        }

        match layer_type:
            case ThemeLayerType.SHAPE:
                return cls(
                    **common,
                    fill=data.get("fill"),
                    stroke=data.get("stroke"),
                    stroke_width=float(data.get("strokeWidth") or 0),
                    border_radius=float(data.get("borderRadius") or 0),
                    shape_type=data.get("shapeType") or "rectangle",
                )
            case ThemeLayerType.TEXT:
                return cls(
                    **common,
                    text=data.get("text") or "",
                    font_family=data.get("fontFamily"),
                    font_size=float(data.get("fontSize") or 0),
                    font_weight=data.get("fontWeight"),
                    horizontal_align=data.get("horizontalAlign") or "center",
                    vertical_align=data.get("verticalAlign") or "center",
                    letter_spacing=float(data.get("letterSpacing") or 0),
                    color=data.get("color"),
                )
