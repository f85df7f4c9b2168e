"""Template definition as supplied by the template provider (read-only here)."""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from .slot import Slot
from .theme import ThemeLayer

logger = logging.getLogger(__name__)

SLOT_LAYER_PREFIX = "slot-"


def derive_slot_label(layer_id: str) -> str:
    """Human-readable label from a slot layer name.

    Example: "slot-before" -> "Before", "slot-2" -> "Photo 2"
    """
    name = layer_id.lower().replace("slot-", "", 1).replace("slot", "", 1).strip()
    for keyword, label in (
        ("before", "Before"),
        ("after", "After"),
        ("hero", "Main Photo"),
        ("product", "Product"),
        ("main", "Main"),
    ):
        if keyword in name:
            return label
    if name.isdigit():
        return f"Photo {name}"
    return name.capitalize() if name else "Photo"


def _parse_layers(layers_json: Any) -> list[dict]:
    """layers_json may arrive as a list or as a double-encoded JSON string."""
    if not layers_json:
        return []
    if isinstance(layers_json, str):
        try:
            layers_json = json.loads(layers_json)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse layers_json: {e}")
            return []
    if not isinstance(layers_json, list):
        logger.warning(f"layers_json is not a list: {type(layers_json).__name__}")
        return []
    return layers_json


def extract_slots(layers_json: Any, canvas_width: float, canvas_height: float) -> list[Slot]:
    """Slots are the layers named with the "slot-" prefix, in back-to-front order."""
    slots = []
    for index, layer in enumerate(_parse_layers(layers_json)):
        name = layer.get("layer", "")
        if not name.lower().startswith(SLOT_LAYER_PREFIX):
            continue
        slots.append(Slot(
            id=name,
            width=float(layer["width"]),
            height=float(layer["height"]),
            x_percent=float(layer["x"]) / canvas_width * 100,
            y_percent=float(layer["y"]) / canvas_height * 100,
            label=derive_slot_label(name),
            placeholder_url=layer.get("image_url"),
            z_index=index + 1,
        ))
    return slots


@dataclass(frozen=True)
class Template:
    """Canvas size, photo slots, theme layers and the pre-rendered frame overlay."""
    id: str
    name: str
    canvas_width: float
    canvas_height: float
    slots: tuple[Slot, ...] = ()
    theme_layers: tuple[ThemeLayer, ...] = ()
    frame_overlay_url: str | None = None
    default_background_color: str = "#FFFFFF"
    default_theme_color: str | None = None
    updated_at: str | None = None
    _slot_index: dict[str, Slot] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self):
        self._slot_index.update({slot.id: slot for slot in self.slots})

    def get_slot(self, slot_id: str) -> Slot | None:
        return self._slot_index.get(slot_id)

    @classmethod
    def from_dict(cls, row: dict[str, Any]) -> "Template":
        """Build from a templates row (snake_case columns)."""
        width = float(row["canvas_width"])
        height = float(row["canvas_height"])
        return cls(
            id=row["id"],
            name=row.get("name", ""),
            canvas_width=width,
            canvas_height=height,
            slots=tuple(extract_slots(row.get("layers_json"), width, height)),
            theme_layers=tuple(ThemeLayer.from_dict(layer) for layer in row.get("theme_layers") or []),
            frame_overlay_url=row.get("frame_overlay_url"),
            default_background_color=row.get("default_background_color") or "#FFFFFF",
            default_theme_color=row.get("default_theme_color"),
            updated_at=row.get("updated_at"),
        )
