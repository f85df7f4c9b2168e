"""Slot state store: the one place that owns per-slot image data while editing."""

import logging
import threading
from dataclasses import replace
from datetime import datetime
from enum import Enum

from ..errors import InvalidTransitionError, ValidationError
from ..models.overlay import Overlay
from ..models.slot import (
    DEFAULT_ADJUSTMENTS,
    EMPTY_STATE,
    AIResult,
    SlotData,
    SlotState,
    SlotStateInfo,
)
from ..models.template import Template

logger = logging.getLogger(__name__)


class EnhancementHistoryPolicy(str, Enum):
    """How apply_ai_result records a feature in the slot's history."""

    ACCUMULATE = "accumulate"            # append every application, duplicates kept
    LATEST_ONLY = "latest_only"          # one entry per feature, most recent last


ALLOWED_TRANSITIONS: dict[SlotState, frozenset[SlotState]] = {
    SlotState.EMPTY: frozenset({SlotState.CAPTURING}),
    SlotState.CAPTURING: frozenset({SlotState.READY, SlotState.ERROR, SlotState.EMPTY}),
    SlotState.READY: frozenset({SlotState.PROCESSING, SlotState.UPLOADING, SlotState.CAPTURING, SlotState.EMPTY}),
    SlotState.PROCESSING: frozenset({SlotState.READY, SlotState.ERROR}),
    SlotState.UPLOADING: frozenset({SlotState.READY, SlotState.ERROR}),
    SlotState.ERROR: frozenset({
        SlotState.CAPTURING, SlotState.PROCESSING, SlotState.UPLOADING, SlotState.READY, SlotState.EMPTY,
    }),
}


class SlotStore:
    """Holds SlotData per template slot plus the editor's canvas appearance.

    Every change replaces a slot's SlotData whole, under a lock, so readers
    never see uri, dimensions and AI data out of step with each other.
    """

    def __init__(
        self,
        template: Template,
        history_policy: EnhancementHistoryPolicy = EnhancementHistoryPolicy.ACCUMULATE,
    ):
        self.template = template
        self.history_policy = history_policy
        self._slots: dict[str, SlotData | None] = {slot.id: None for slot in template.slots}
        self._states: dict[str, SlotStateInfo] = {}
        self._overlays: list[Overlay] = []
        self.background_color: str | None = template.default_background_color
        self.theme_color: str | None = template.default_theme_color
        self._dirty = False
        self.last_saved_at: datetime | None = None
        self._lock = threading.RLock()

    # ---- Reads ----

    def get(self, slot_id: str) -> SlotData | None:
        return self._slots.get(slot_id)

    def snapshot(self) -> dict[str, SlotData | None]:
        with self._lock:
            return dict(self._slots)

    def filled_slot_ids(self) -> list[str]:
        return [slot_id for slot_id, data in self._slots.items() if data is not None]

    def get_state(self, slot_id: str) -> SlotStateInfo:
        return self._states.get(slot_id, EMPTY_STATE)

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    def mark_clean(self, saved_at: datetime) -> None:
        self._dirty = False
        self.last_saved_at = saved_at

    # ---- Slot state machine ----

    def set_slot_state(
        self,
        slot_id: str,
        state: SlotState,
        error_message: str | None = None,
        progress: float | None = None,
    ) -> SlotStateInfo:
        """Move a slot's loading state. Disallowed transitions raise InvalidTransitionError."""
        self._require_slot(slot_id)
        with self._lock:
            current = self.get_state(slot_id).state
            if state is not current and state not in ALLOWED_TRANSITIONS[current]:
                raise InvalidTransitionError(
                    f"Slot {slot_id}: cannot go from {current.value} to {state.value}"
                )
            info = SlotStateInfo(state=state, error_message=error_message, progress=progress)
            self._states[slot_id] = info
            return info

    def begin_capture(self, slot_id: str) -> SlotStateInfo:
        return self.set_slot_state(slot_id, SlotState.CAPTURING)

    # ---- Mutations ----

    def capture_image(self, slot_id: str, uri: str, width: int, height: int) -> SlotData:
        """Set a freshly captured photo. Resets adjustments and AI history."""
        self._require_slot(slot_id)
        if not width or not height:
            raise ValidationError(f"Slot {slot_id}: image dimensions are required")

        with self._lock:
            if self.get_state(slot_id).state is not SlotState.CAPTURING:
                self.begin_capture(slot_id)
            data = SlotData(uri=uri, width=width, height=height)
            self._slots[slot_id] = data
            self._dirty = True
            self.set_slot_state(slot_id, SlotState.READY)

        logger.info(f"Captured image for {slot_id} ({width}x{height})")
        return data

    def update_slot_adjustments(self, slot_id: str, **partial: float) -> SlotData | None:
        """Merge pan/zoom/rotate values. Unknown or empty slots are left alone."""
        with self._lock:
            current = self._slots.get(slot_id)
            if current is None or not partial:
                return current
            data = replace(current, adjustments=current.adjustments.merged(**partial))
            self._slots[slot_id] = data
            self._dirty = True
            return data

    def apply_ai_result(self, slot_id: str, result: AIResult) -> SlotData:
        """Apply one enhancement: new uri, history entry, background data, in one step."""
        with self._lock:
            current = self._slots.get(slot_id)
            if current is None:
                raise ValidationError(f"Slot {slot_id} has no image to enhance")

            history = current.ai.enhancements_applied
            if self.history_policy is EnhancementHistoryPolicy.LATEST_ONLY:
                history = tuple(key for key in history if key != result.feature_key)
            ai = replace(current.ai, enhancements_applied=history + (result.feature_key,))
            if result.transparent_png_url:
                ai = replace(ai, transparent_png_url=result.transparent_png_url)
            if result.background_info:
                ai = replace(ai, background_info=result.background_info)

            data = replace(
                current,
                uri=result.uri,
                width=result.width or current.width,
                height=result.height or current.height,
                adjustments=DEFAULT_ADJUSTMENTS,
                ai=ai,
            )
            self._slots[slot_id] = data
            self._dirty = True
            if self.get_state(slot_id).state is SlotState.PROCESSING:
                self.set_slot_state(slot_id, SlotState.READY)

        logger.info(f"Applied {result.feature_key} to {slot_id}")
        return data

    def clear_slot(self, slot_id: str) -> None:
        """Remove a slot's image. Job records elsewhere are not touched."""
        with self._lock:
            if slot_id not in self._slots:
                return
            self._slots[slot_id] = None
            self._states[slot_id] = EMPTY_STATE
            self._dirty = True

    def load(self, slots: dict[str, SlotData | None]) -> None:
        """Replace all slot data, e.g. from a loaded project. Unknown slot ids are ignored."""
        with self._lock:
            for slot_id in self._slots:
                data = slots.get(slot_id)
                self._slots[slot_id] = data
                self._states[slot_id] = SlotStateInfo(SlotState.READY) if data else EMPTY_STATE
            ignored = set(slots) - set(self._slots)
            if ignored:
                logger.warning(f"Ignoring slot data for unknown slots: {sorted(ignored)}")
            self._dirty = False

    # ---- Canvas appearance ----

    def set_background_color(self, color: str | None) -> None:
        self.background_color = color
        self._dirty = True

    def set_theme_color(self, color: str | None) -> None:
        self.theme_color = color
        self._dirty = True

    # ---- Overlays ----

    @property
    def overlays(self) -> list[Overlay]:
        return list(self._overlays)

    def set_overlays(self, overlays: list[Overlay]) -> None:
        self._overlays = list(overlays)

    def add_overlay(self, overlay: Overlay) -> None:
        self._overlays.append(overlay)
        self._dirty = True

    def update_overlay(self, overlay_id: str, **changes) -> Overlay:
        for index, overlay in enumerate(self._overlays):
            if overlay.id == overlay_id:
                updated = replace(overlay, **changes)
                self._overlays[index] = updated
                self._dirty = True
                return updated
        raise ValidationError(f"Unknown overlay: {overlay_id}")

    def delete_overlay(self, overlay_id: str) -> None:
        self._overlays = [overlay for overlay in self._overlays if overlay.id != overlay_id]
        self._dirty = True

    def _require_slot(self, slot_id: str) -> None:
        if self.template.get_slot(slot_id) is None:
            raise ValidationError(f"Unknown slot: {slot_id}")
