"""Compositing renderer: turns slot data + template into an ordered draw plan and a PIL image."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from io import BytesIO

import requests
from PIL import Image, ImageColor, ImageDraw, ImageFont

from ..geometry import (
    CanvasScale,
    ImageTransform,
    LayerPlacement,
    Rect,
    Size,
    canvas_scale,
    compute_image_transform,
    place_slot,
    place_theme_layer,
)
from ..models.overlay import DateOverlay, LogoOverlay, Overlay, TextOverlay
from ..models.slot import SlotData
from ..models.template import Template
from ..models.theme import ThemeLayer, ThemeLayerType
from ..utils import is_remote_url, read_local_file

logger = logging.getLogger(__name__)

# Text layers draw in this color when no theme color is chosen
THEME_TEXT_FALLBACK = "#000000"

# Longest logo side before the overlay's own scale, as a fraction of canvas width
LOGO_BASE_FRACTION = 0.25


@dataclass(frozen=True)
class FillOp:
    color: str
    width: float
    height: float


@dataclass(frozen=True)
class PhotoOp:
    slot_id: str
    uri: str
    clip: Rect                           # slot rect on the canvas; nothing draws outside it
    transform: ImageTransform            # relative to the clip rect


@dataclass(frozen=True)
class FrameOp:
    uri: str
    width: float
    height: float


@dataclass(frozen=True)
class ShapeOp:
    layer_id: str
    placement: LayerPlacement
    fill: str
    shape_type: str
    opacity: float


@dataclass(frozen=True)
class TextOp:
    layer_id: str
    placement: LayerPlacement
    text: str
    color: str
    horizontal_align: str
    vertical_align: str
    opacity: float


@dataclass(frozen=True)
class OverlayTextOp:
    """Text or date overlay, centered on (x, y)."""
    overlay_id: str
    text: str
    x: float
    y: float
    font_size: float
    color: str
    rotation: float
    background_color: str | None = None
    padding: float = 0.0
    border_radius: float = 0.0


@dataclass(frozen=True)
class OverlayLogoOp:
    overlay_id: str
    uri: str
    x: float
    y: float
    width: float
    height: float
    rotation: float


DrawOp = FillOp | PhotoOp | FrameOp | ShapeOp | TextOp | OverlayTextOp | OverlayLogoOp


@dataclass(frozen=True)
class RenderPlan:
    width: float
    height: float
    ops: tuple[DrawOp, ...]


def load_image(uri: str) -> Image.Image:
    """Default image loader: remote URLs via HTTP, everything else from disk."""
    if is_remote_url(uri):
        response = requests.get(uri, timeout=30)
        response.raise_for_status()
        data = response.content
    else:
        data = read_local_file(uri)
    return Image.open(BytesIO(data))


class CompositingRenderer:
    """Back-to-front compositing: background, photos, frame, theme layers, overlays."""

    def build_plan(
        self,
        template: Template,
        slots: dict[str, SlotData | None],
        overlays: list[Overlay] | None = None,
        background_color: str | None = None,
        theme_color: str | None = None,
        display_width: float | None = None,
        display_height: float | None = None,
    ) -> RenderPlan:
        width = display_width or template.canvas_width
        height = display_height or template.canvas_height
        scale = canvas_scale(Size(width, height), Size(template.canvas_width, template.canvas_height))

        ops: list[DrawOp] = []

        # 1. Background
        if background_color:
            ops.append(FillOp(background_color, width, height))

        # 2. Photos, in template order
        for slot in sorted(template.slots, key=lambda s: s.z_index):
            data = slots.get(slot.id)
            if data is None:
                continue
            rect = place_slot(slot, width, height, scale)
            transform = compute_image_transform(
                Size(data.width, data.height),
                Size(rect.width, rect.height),
                data.adjustments,
            )
            ops.append(PhotoOp(slot.id, data.uri, rect, transform))

        # 3. Frame overlay (pre-rendered decorations)
        if template.frame_overlay_url:
            ops.append(FrameOp(template.frame_overlay_url, width, height))

        # 4. Theme layers
        for layer in template.theme_layers:
            op = self._theme_op(layer, scale, theme_color)
            if op is not None:
                ops.append(op)

        # 5. User overlays, always on top
        for overlay in overlays or []:
            ops.append(self._overlay_op(overlay, width, height, scale))

        return RenderPlan(width, height, tuple(ops))

    def _theme_op(self, layer: ThemeLayer, scale: CanvasScale, theme_color: str | None) -> DrawOp | None:
        placement = place_theme_layer(layer, scale)
        match layer.type:
            case ThemeLayerType.SHAPE:
                # Without a theme color the shape is already part of the frame overlay
                if not theme_color:
                    return None
                return ShapeOp(layer.id, placement, theme_color, layer.shape_type, layer.opacity)
            case ThemeLayerType.TEXT:
                return TextOp(
                    layer.id,
                    placement,
                    layer.text or "",
                    theme_color or THEME_TEXT_FALLBACK,
                    layer.horizontal_align,
                    layer.vertical_align,
                    layer.opacity,
                )

    def _overlay_op(self, overlay: Overlay, width: float, height: float, scale: CanvasScale) -> DrawOp:
        transform = overlay.transform
        x = transform.x * width
        y = transform.y * height
        match overlay:
            case TextOverlay() | DateOverlay():
                text = overlay.content if isinstance(overlay, TextOverlay) else overlay.display_text
                return OverlayTextOp(
                    overlay_id=overlay.id,
                    text=text,
                    x=x,
                    y=y,
                    font_size=overlay.font_size * transform.scale * scale.uniform,
                    color=overlay.color,
                    rotation=transform.rotation,
                    background_color=overlay.background_color,
                    padding=overlay.background_padding * scale.uniform,
                    border_radius=overlay.background_border_radius * scale.uniform,
                )
            case LogoOverlay():
                base = width * LOGO_BASE_FRACTION * transform.scale
                aspect = overlay.original_width / overlay.original_height if overlay.original_height else 1.0
                if aspect >= 1:
                    logo_w, logo_h = base, base / aspect
                else:
                    logo_w, logo_h = base * aspect, base
                return OverlayLogoOp(overlay.id, overlay.image_uri, x, y, logo_w, logo_h, transform.rotation)
            case _:
                raise TypeError(f"Unknown overlay: {type(overlay).__name__}")

    def render(
        self,
        plan: RenderPlan,
        image_loader: Callable[[str], Image.Image] = load_image,
    ) -> Image.Image:
        """Rasterize a plan. Decoding, resampling and blending are Pillow's."""
        canvas = Image.new("RGBA", (_px(plan.width), _px(plan.height)), (0, 0, 0, 0))

        for op in plan.ops:
            match op:
                case FillOp():
                    canvas.alpha_composite(Image.new("RGBA", canvas.size, _rgba(op.color)))
                case PhotoOp():
                    self._draw_photo(canvas, op, image_loader(op.uri))
                case FrameOp():
                    frame = image_loader(op.uri).convert("RGBA").resize(canvas.size, Image.LANCZOS)
                    canvas.alpha_composite(frame)
                case ShapeOp():
                    self._draw_shape(canvas, op)
                case TextOp():
                    self._draw_text_layer(canvas, op)
                case OverlayTextOp():
                    self._draw_overlay_text(canvas, op)
                case OverlayLogoOp():
                    logo = image_loader(op.uri).convert("RGBA").resize((_px(op.width), _px(op.height)), Image.LANCZOS)
                    _composite_rotated(canvas, logo, op.x, op.y, op.rotation)

        logger.debug(f"Rendered {len(plan.ops)} ops at {canvas.size}")
        return canvas

    def _draw_photo(self, canvas: Image.Image, op: PhotoOp, image: Image.Image) -> None:
        t = op.transform
        photo = image.convert("RGBA").resize((_px(t.scaled.width), _px(t.scaled.height)), Image.LANCZOS)
        if t.rotation:
            photo = photo.rotate(-t.rotation, resample=Image.BICUBIC, expand=True)

        # Center of the scaled image stays put when rotating
        center_x = t.position.x + t.scaled.width / 2
        center_y = t.position.y + t.scaled.height / 2
        clip = Image.new("RGBA", (_px(op.clip.width), _px(op.clip.height)), (0, 0, 0, 0))
        clip.paste(photo, (round(center_x - photo.width / 2), round(center_y - photo.height / 2)))
        _composite_at(canvas, clip, op.clip.left, op.clip.top)

    def _draw_shape(self, canvas: Image.Image, op: ShapeOp) -> None:
        p = op.placement
        layer = Image.new("RGBA", (_px(p.width), _px(p.height)), (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        fill = _rgba(op.fill, op.opacity)
        box = (0, 0, layer.width - 1, layer.height - 1)
        if op.shape_type in ("ellipse", "circle"):
            draw.ellipse(box, fill=fill)
        elif p.border_radius:
            draw.rounded_rectangle(box, radius=p.border_radius, fill=fill)
        else:
            draw.rectangle(box, fill=fill)
        _composite_rotated(canvas, layer, p.left + p.width / 2, p.top + p.height / 2, p.rotation)

    def _draw_text_layer(self, canvas: Image.Image, op: TextOp) -> None:
        p = op.placement
        layer = Image.new("RGBA", (_px(p.width), _px(p.height)), (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        font = _font(p.font_size)
        x = {"left": 0, "right": layer.width}.get(op.horizontal_align, layer.width / 2)
        y = {"top": 0, "bottom": layer.height}.get(op.vertical_align, layer.height / 2)
        anchor = (
            {"left": "l", "right": "r"}.get(op.horizontal_align, "m")
            + {"top": "a", "bottom": "d"}.get(op.vertical_align, "m")
        )
        draw.text((x, y), op.text, fill=_rgba(op.color, op.opacity), font=font, anchor=anchor)
        _composite_rotated(canvas, layer, p.left + p.width / 2, p.top + p.height / 2, p.rotation)

    def _draw_overlay_text(self, canvas: Image.Image, op: OverlayTextOp) -> None:
        font = _font(op.font_size)
        left, top, right, bottom = font.getbbox(op.text)
        pad = op.padding if op.background_color else 0
        layer = Image.new("RGBA", (_px(right - left + 2 * pad), _px(bottom - top + 2 * pad)), (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        if op.background_color and op.background_color != "transparent":
            draw.rounded_rectangle(
                (0, 0, layer.width - 1, layer.height - 1),
                radius=op.border_radius,
                fill=_rgba(op.background_color),
            )
        draw.text((pad - left, pad - top), op.text, fill=_rgba(op.color), font=font)
        _composite_rotated(canvas, layer, op.x, op.y, op.rotation)


def _px(value: float) -> int:
    return max(1, round(value))


def _rgba(color: str, opacity: float = 1.0) -> tuple[int, int, int, int]:
    rgba = ImageColor.getcolor(color, "RGBA")
    return rgba[0], rgba[1], rgba[2], round(rgba[3] * opacity)


def _font(size: float) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    return ImageFont.load_default(size=_px(size))


def _composite_at(canvas: Image.Image, layer: Image.Image, left: float, top: float) -> None:
    """Alpha-composite `layer` with its top-left at (left, top); out-of-bounds parts are dropped."""
    full = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    full.paste(layer, (round(left), round(top)))
    canvas.alpha_composite(full)


def _composite_rotated(canvas: Image.Image, layer: Image.Image, center_x: float, center_y: float, rotation: float) -> None:
    """Rotate clockwise by `rotation` degrees around the layer center, then composite centered."""
    if rotation:
        layer = layer.rotate(-rotation, resample=Image.BICUBIC, expand=True)
    _composite_at(canvas, layer, center_x - layer.width / 2, center_y - layer.height / 2)
