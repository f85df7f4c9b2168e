"""Pure geometry: cover-fit, pan/zoom/rotate, and design-to-display scaling.

All sizes are floats in whatever unit the caller works in (design pixels or
display points). Nothing here touches images or state.
"""

import math
from dataclasses import dataclass

from .models.slot import ImageAdjustments, Slot
from .models.theme import ThemeLayer

MIN_SCALE = 1.0
MAX_SCALE = 5.0
MAX_TRANSLATE = 0.5


@dataclass(frozen=True)
class Size:
    width: float
    height: float


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Rect:
    left: float
    top: float
    width: float
    height: float


@dataclass(frozen=True)
class ImageTransform:
    """Where an adjusted image lands inside its frame."""
    base: Size                           # cover-fit size at scale 1
    scaled: Size                         # base * scale
    offset: Point                        # pan, in frame units
    position: Point                      # top-left of scaled image relative to the frame
    rotation: float                      # degrees, around the frame center


@dataclass(frozen=True)
class CanvasScale:
    x: float
    y: float
    uniform: float                       # min(x, y), for sizes that must not distort


@dataclass(frozen=True)
class LayerPlacement:
    """A theme layer in display coordinates. Rotation applies last, around the center."""
    left: float
    top: float
    width: float
    height: float
    rotation: float
    font_size: float
    letter_spacing: float
    border_radius: float
    stroke_width: float


def cover_fit_size(image: Size, frame: Size) -> Size:
    """Smallest size with the image's aspect ratio that fully covers the frame."""
    image_aspect = image.width / image.height
    frame_aspect = frame.width / frame.height
    if image_aspect > frame_aspect:
        height = frame.height
        return Size(height * image_aspect, height)
    width = frame.width
    return Size(width, width / image_aspect)


def clamp_scale(scale: float) -> float:
    """Zoom never goes below cover-fit (gaps) or past MAX_SCALE."""
    return min(max(scale, MIN_SCALE), MAX_SCALE)


def clamp_translate(value: float) -> float:
    return min(max(value, -MAX_TRANSLATE), MAX_TRANSLATE)


def compute_image_transform(
    image: Size,
    frame: Size,
    adjustments: ImageAdjustments,
) -> ImageTransform:
    """Cover-fit the image into the frame and apply scale, pan and rotation.

    The offset never exceeds half the overflow on either axis, so no
    background shows at the frame edges for an unrotated image.
    """
    base = cover_fit_size(image, frame)
    scale = max(adjustments.scale, MIN_SCALE)
    scaled = Size(base.width * scale, base.height * scale)

    excess_x = max(0.0, scaled.width - frame.width)
    excess_y = max(0.0, scaled.height - frame.height)
    offset = Point(
        clamp_translate(adjustments.translate_x) * excess_x,
        clamp_translate(adjustments.translate_y) * excess_y,
    )

    position = Point(
        (frame.width - scaled.width) / 2 + offset.x,
        (frame.height - scaled.height) / 2 + offset.y,
    )
    return ImageTransform(base, scaled, offset, position, adjustments.rotation)


def max_pan(base: Size, frame: Size, scale: float, rotation: float) -> tuple[float, float]:
    """Pan limits (max_u, max_v) along the image's own axes once rotated.

    A rotated frame needs more image to stay covered, so the limits shrink
    as the angle grows.
    """
    half_w = base.width * scale / 2
    half_h = base.height * scale / 2
    half_frame_w = frame.width / 2
    half_frame_h = frame.height / 2

    angle = math.radians(rotation)
    abs_cos = abs(math.cos(angle))
    abs_sin = abs(math.sin(angle))

    max_u = max(0.0, half_w - (half_frame_w * abs_cos + half_frame_h * abs_sin))
    max_v = max(0.0, half_h - (half_frame_w * abs_sin + half_frame_h * abs_cos))
    return max_u, max_v


def canvas_scale(display: Size, design: Size) -> CanvasScale:
    x = display.width / design.width
    y = display.height / design.height
    return CanvasScale(x, y, min(x, y))


def place_theme_layer(layer: ThemeLayer, scale: CanvasScale) -> LayerPlacement:
    """Map a design-space theme layer to display space."""
    return LayerPlacement(
        left=layer.x * scale.x,
        top=layer.y * scale.y,
        width=layer.width * scale.x,
        height=layer.height * scale.y,
        rotation=layer.rotation,
        font_size=layer.font_size * scale.uniform,
        letter_spacing=layer.letter_spacing * scale.uniform,
        border_radius=layer.border_radius * scale.uniform,
        stroke_width=layer.stroke_width * scale.uniform,
    )


def place_slot(slot: Slot, canvas_width: float, canvas_height: float, scale: CanvasScale) -> Rect:
    """Slot rectangle in display space. Position comes from percentages of the canvas."""
    return Rect(
        left=slot.x_percent / 100 * canvas_width,
        top=slot.y_percent / 100 * canvas_height,
        width=slot.width * scale.x,
        height=slot.height * scale.y,
    )
