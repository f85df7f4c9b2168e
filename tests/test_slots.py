import pytest

from beforeafter.errors import InvalidTransitionError, ValidationError
from beforeafter.models.overlay import TextOverlay
from beforeafter.models.slot import AIResult, BackgroundInfo, ImageAdjustments, SlotData, SlotState
from beforeafter.services.slots import EnhancementHistoryPolicy, SlotStore


def test_capture_image_sets_ready_with_defaults(slot_store):
    data = slot_store.capture_image("slot-before", "file:///a.jpg", 4032, 3024)

    assert slot_store.get("slot-before") is data
    assert data.adjustments == ImageAdjustments()
    assert data.ai.original_uri == "file:///a.jpg"
    assert data.ai.enhancements_applied == ()
    assert slot_store.get_state("slot-before").state is SlotState.READY
    assert slot_store.is_dirty


def test_capture_unknown_slot_raises(slot_store):
    with pytest.raises(ValidationError):
        slot_store.capture_image("slot-nope", "file:///a.jpg", 100, 100)


def test_capture_without_dimensions_raises(slot_store):
    with pytest.raises(ValidationError):
        slot_store.capture_image("slot-before", "file:///a.jpg", 0, 100)


def test_recapture_resets_history(slot_store):
    slot_store.capture_image("slot-before", "file:///a.jpg", 100, 100)
    slot_store.apply_ai_result("slot-before", AIResult(uri="https://x/1.png", feature_key="auto_quality"))

    data = slot_store.capture_image("slot-before", "file:///b.jpg", 200, 100)
    assert data.ai.enhancements_applied == ()
    assert data.ai.original_uri == "file:///b.jpg"


def test_update_adjustments_merges_partial(slot_store):
    slot_store.capture_image("slot-before", "file:///a.jpg", 100, 100)
    slot_store.update_slot_adjustments("slot-before", scale=2.0)
    data = slot_store.update_slot_adjustments("slot-before", translate_x=0.25)

    assert data.adjustments == ImageAdjustments(scale=2.0, translate_x=0.25)
    assert data.uri == "file:///a.jpg"


def test_update_adjustments_on_empty_or_unknown_slot_is_noop(slot_store):
    assert slot_store.update_slot_adjustments("slot-after", scale=2.0) is None
    assert slot_store.update_slot_adjustments("slot-nope", scale=2.0) is None
    assert slot_store.get("slot-after") is None


def test_update_adjustments_rejects_unknown_fields(slot_store):
    slot_store.capture_image("slot-before", "file:///a.jpg", 100, 100)
    with pytest.raises(ValidationError):
        slot_store.update_slot_adjustments("slot-before", zoom=2.0)


def test_apply_ai_result_accumulates_history(slot_store):
    slot_store.capture_image("slot-before", "file:///a.jpg", 100, 100)
    slot_store.update_slot_adjustments("slot-before", scale=3.0)

    slot_store.apply_ai_result("slot-before", AIResult(uri="https://x/1.png", feature_key="auto_quality"))
    data = slot_store.apply_ai_result("slot-before", AIResult(uri="https://x/2.png", feature_key="auto_quality"))

    assert data.uri == "https://x/2.png"
    assert data.ai.original_uri == "file:///a.jpg"
    assert data.ai.enhancements_applied == ("auto_quality", "auto_quality")
    assert data.adjustments == ImageAdjustments()


def test_latest_only_policy_keeps_one_entry_per_feature(template):
    store = SlotStore(template, history_policy=EnhancementHistoryPolicy.LATEST_ONLY)
    store.capture_image("slot-before", "file:///a.jpg", 100, 100)
    for feature in ("auto_quality", "background_remove", "auto_quality"):
        store.apply_ai_result("slot-before", AIResult(uri=f"https://x/{feature}.png", feature_key=feature))

    assert store.get("slot-before").ai.enhancements_applied == ("background_remove", "auto_quality")


def test_apply_ai_result_sets_background_data_and_size(slot_store):
    slot_store.capture_image("slot-before", "file:///a.jpg", 100, 100)
    result = AIResult(
        uri="https://x/cut.png",
        feature_key="background_remove",
        transparent_png_url="https://x/cut.png",
        background_info=BackgroundInfo.transparent(),
        width=1024,
        height=768,
    )
    data = slot_store.apply_ai_result("slot-before", result)

    assert data.ai.transparent_png_url == "https://x/cut.png"
    assert data.ai.background_info == BackgroundInfo.transparent()
    assert (data.width, data.height) == (1024, 768)


def test_apply_ai_result_to_empty_slot_raises(slot_store):
    with pytest.raises(ValidationError):
        slot_store.apply_ai_result("slot-after", AIResult(uri="https://x/1.png", feature_key="auto_quality"))


def test_apply_ai_result_moves_processing_to_ready(slot_store):
    slot_store.capture_image("slot-before", "file:///a.jpg", 100, 100)
    slot_store.set_slot_state("slot-before", SlotState.PROCESSING)
    slot_store.apply_ai_result("slot-before", AIResult(uri="https://x/1.png", feature_key="auto_quality"))
    assert slot_store.get_state("slot-before").state is SlotState.READY


def test_clear_slot(slot_store):
    slot_store.capture_image("slot-before", "file:///a.jpg", 100, 100)
    slot_store.clear_slot("slot-before")

    assert slot_store.get("slot-before") is None
    assert slot_store.get_state("slot-before").state is SlotState.EMPTY
    assert slot_store.filled_slot_ids() == []


def test_disallowed_transition_raises(slot_store):
    with pytest.raises(InvalidTransitionError):
        slot_store.set_slot_state("slot-before", SlotState.PROCESSING)


def test_invalid_transition_is_a_validation_error(slot_store):
    with pytest.raises(ValidationError):
        slot_store.set_slot_state("slot-before", SlotState.READY)


def test_capture_while_processing_is_rejected(slot_store):
    slot_store.capture_image("slot-before", "file:///a.jpg", 100, 100)
    slot_store.set_slot_state("slot-before", SlotState.PROCESSING)
    with pytest.raises(InvalidTransitionError):
        slot_store.capture_image("slot-before", "file:///b.jpg", 100, 100)
    assert slot_store.get("slot-before").uri == "file:///a.jpg"


def test_error_state_can_retry(slot_store):
    slot_store.capture_image("slot-before", "file:///a.jpg", 100, 100)
    slot_store.set_slot_state("slot-before", SlotState.PROCESSING)
    slot_store.set_slot_state("slot-before", SlotState.ERROR, error_message="boom")
    assert slot_store.get_state("slot-before").error_message == "boom"

    slot_store.set_slot_state("slot-before", SlotState.PROCESSING)
    assert slot_store.get_state("slot-before").state is SlotState.PROCESSING


def test_load_replaces_slots_and_clears_dirty(slot_store):
    slot_store.capture_image("slot-after", "file:///old.jpg", 100, 100)
    slot_store.load({
        "slot-before": SlotData(uri="https://x/a.jpg", width=100, height=100),
        "slot-gone": SlotData(uri="https://x/b.jpg", width=100, height=100),
    })

    assert slot_store.filled_slot_ids() == ["slot-before"]
    assert slot_store.get("slot-after") is None
    assert not slot_store.is_dirty
    assert slot_store.get_state("slot-before").state is SlotState.READY


def test_snapshot_is_a_copy(slot_store):
    slot_store.capture_image("slot-before", "file:///a.jpg", 100, 100)
    snapshot = slot_store.snapshot()
    slot_store.clear_slot("slot-before")
    assert snapshot["slot-before"].uri == "file:///a.jpg"


def test_overlays_add_update_delete(slot_store):
    overlay = TextOverlay(content="Hello")
    slot_store.add_overlay(overlay)
    updated = slot_store.update_overlay(overlay.id, content="Bye")

    assert slot_store.overlays == [updated]
    assert updated.content == "Bye"

    slot_store.delete_overlay(overlay.id)
    assert slot_store.overlays == []

    with pytest.raises(ValidationError):
        slot_store.update_overlay("missing", content="x")


def test_canvas_colors_default_from_template(slot_store):
    assert slot_store.background_color == "#FFFFFF"
    slot_store.set_theme_color("#FF0000")
    assert slot_store.theme_color == "#FF0000"
    assert slot_store.is_dirty


def test_begin_capture_then_capture(slot_store):
    slot_store.begin_capture("slot-after")
    assert slot_store.get_state("slot-after").state is SlotState.CAPTURING

    slot_store.capture_image("slot-after", "file:///a.jpg", 100, 100)
    assert slot_store.get_state("slot-after").state is SlotState.READY


def test_mark_clean_records_save_time(slot_store, clock):
    slot_store.set_background_color("#000000")
    assert slot_store.is_dirty

    slot_store.mark_clean(clock())
    assert not slot_store.is_dirty
    assert slot_store.last_saved_at == clock()


def test_set_overlays_replaces_list(slot_store):
    slot_store.add_overlay(TextOverlay(content="old"))
    fresh = [TextOverlay(content="new")]
    slot_store.set_overlays(fresh)
    assert [overlay.content for overlay in slot_store.overlays] == ["new"]
