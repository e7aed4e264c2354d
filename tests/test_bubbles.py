import asyncio

import pytest

from mangastudio.bubbles import (
    BubbleEditor,
    EditPhase,
    box_to_rect,
    edited_subset,
    fit_image_rect,
    rect_to_box,
)
from mangastudio.codec import ImagePayload
from mangastudio.errors import DetectionError, EDIT_MESSAGES, SafetyBlockedError
from mangastudio.models import BoundingBox, Bubble
from mangastudio.state import AppState

ORIGINAL = ImagePayload(b"original", "image/png").to_data_url()
EDITED = ImagePayload(b"edited", "image/png").to_data_url()

BUBBLES = [
    Bubble(id="bubble-1", box=BoundingBox(0.1, 0.1, 0.4, 0.3), text="Hi"),
    Bubble(id="bubble-2", box=BoundingBox(0.5, 0.6, 0.9, 0.8), text="Bye"),
]


class FakeService:
    def __init__(self, bubbles=BUBBLES, detect_error=None, edit_error=None):
        self.bubbles = bubbles
        self.detect_error = detect_error
        self.edit_error = edit_error
        self.detect_calls = []
        self.edit_calls = []
        self.gate = None

    async def detect_bubbles(self, image):
        self.detect_calls.append(image)
        if self.gate is not None:
            await self.gate.wait()
        if self.detect_error is not None:
            raise self.detect_error
        return list(self.bubbles)

    async def edit_text(self, image, bubbles):
        self.edit_calls.append((image, list(bubbles)))
        if self.gate is not None:
            await self.gate.wait()
        if self.edit_error is not None:
            raise self.edit_error
        return EDITED


def _editor(service=None, on_saved=None):
    state = AppState()
    state.result = ORIGINAL
    return state, BubbleEditor(state, service or FakeService(), on_saved=on_saved)


def test_box_to_rect_maps_fractions_to_pixels():
    rect = box_to_rect(BoundingBox(0.1, 0.2, 0.5, 0.6), (0, 0, 1000, 800))
    assert rect == pytest.approx((100, 160, 400, 320))


def test_box_to_rect_follows_the_image_offset():
    rect = box_to_rect(BoundingBox(0.0, 0.0, 0.5, 0.5), (20, 40, 200, 100))
    assert rect == pytest.approx((20, 40, 100, 50))


def test_rect_to_box_inverts_box_to_rect():
    image_rect = (30, 10, 640, 480)
    box = BoundingBox(0.25, 0.125, 0.75, 0.5)
    back = rect_to_box(box_to_rect(box, image_rect), image_rect)
    assert (back.x1, back.y1, back.x2, back.y2) == pytest.approx((0.25, 0.125, 0.75, 0.5))
    with pytest.raises(ValueError):
        rect_to_box((0, 0, 1, 1), (0, 0, 0, 10))


def test_fit_image_rect_letterboxes():
    assert fit_image_rect((200, 100), (0, 0, 400, 400)) == pytest.approx((0, 100, 400, 200))
    assert fit_image_rect((100, 200), (10, 0, 400, 200)) == pytest.approx((160, 0, 100, 200))
    assert fit_image_rect((0, 0), (5, 5, 10, 10)) == (5, 5, 0.0, 0.0)


def test_edited_subset_keeps_only_changed_entries_in_order():
    texts = {"bubble-1": "Hi", "bubble-2": "See you"}
    subset = edited_subset(BUBBLES, texts)
    assert [(item.id, item.text, item.new_text) for item in subset] == [("bubble-2", "Bye", "See you")]
    assert edited_subset(BUBBLES, texts) == subset


def test_edited_subset_counts_cleared_text_as_a_change():
    subset = edited_subset(BUBBLES, {"bubble-1": "", "bubble-2": "Bye"})
    assert [item.new_text for item in subset] == [""]


def test_enter_seeds_texts_from_detection():
    service = FakeService()
    state, editor = _editor(service)

    assert asyncio.run(editor.enter()) is True
    assert editor.phase is EditPhase.EDITING
    assert editor.original == ORIGINAL
    assert editor.texts == {"bubble-1": "Hi", "bubble-2": "Bye"}
    assert service.detect_calls == [ImagePayload.from_data_url(ORIGINAL)]


def test_enter_without_result_does_nothing():
    service = FakeService()
    state, editor = _editor(service)
    state.result = None

    assert asyncio.run(editor.enter()) is False
    assert editor.phase is EditPhase.IDLE
    assert service.detect_calls == []


def test_detection_failure_returns_to_idle_with_error():
    state, editor = _editor(FakeService(detect_error=DetectionError()))

    assert asyncio.run(editor.enter()) is False
    assert editor.phase is EditPhase.IDLE
    assert editor.original is None
    assert state.error == "Could not detect speech bubbles in the image."
    assert state.result == ORIGINAL


def test_unexpected_detection_failure_returns_to_idle():
    state, editor = _editor(FakeService(detect_error=RuntimeError("connection refused")))

    assert asyncio.run(editor.enter()) is False
    assert editor.phase is EditPhase.IDLE
    assert not editor.is_busy
    assert editor.original is None
    assert state.error == "Could not detect speech bubbles in the image."
    assert state.result == ORIGINAL


def test_save_sends_only_changed_bubbles_and_replaces_result():
    service = FakeService()
    saved = []
    state, editor = _editor(service, on_saved=saved.append)
    asyncio.run(editor.enter())
    editor.set_text("bubble-1", "Hello")

    assert asyncio.run(editor.save()) is True

    image, sent = service.edit_calls[0]
    assert image == ImagePayload.from_data_url(ORIGINAL)
    assert [(item.id, item.new_text) for item in sent] == [("bubble-1", "Hello")]
    assert state.result == EDITED
    assert editor.phase is EditPhase.IDLE
    assert editor.bubbles == [] and editor.texts == {}
    assert saved == [EDITED]


def test_save_without_changes_makes_no_call():
    service = FakeService()
    state, editor = _editor(service)
    asyncio.run(editor.enter())

    assert asyncio.run(editor.save()) is True
    assert service.edit_calls == []
    assert editor.phase is EditPhase.IDLE
    assert state.result == ORIGINAL
    assert state.error is None


def test_save_failure_keeps_session_for_retry():
    service = FakeService(edit_error=SafetyBlockedError(EDIT_MESSAGES["safety"]))
    state, editor = _editor(service)
    asyncio.run(editor.enter())
    editor.set_text("bubble-2", "Later")

    assert asyncio.run(editor.save()) is False
    assert editor.phase is EditPhase.EDITING
    assert editor.original == ORIGINAL
    assert editor.texts["bubble-2"] == "Later"
    assert state.error == EDIT_MESSAGES["safety"]
    assert state.result == ORIGINAL

    service.edit_error = None
    assert asyncio.run(editor.save()) is True
    assert state.result == EDITED


def test_set_text_rejects_unknown_bubble():
    state, editor = _editor()
    asyncio.run(editor.enter())
    with pytest.raises(KeyError):
        editor.set_text("bubble-9", "x")


def test_cancel_discards_state():
    state, editor = _editor()
    asyncio.run(editor.enter())
    editor.set_text("bubble-1", "changed")
    state.error = "stale"

    editor.cancel()

    assert editor.phase is EditPhase.IDLE
    assert editor.bubbles == [] and editor.texts == {} and editor.original is None
    assert state.error is None


def test_detection_reply_after_cancel_is_discarded():
    service = FakeService()
    state, editor = _editor(service)

    async def scenario():
        service.gate = asyncio.Event()
        task = asyncio.create_task(editor.enter())
        await asyncio.sleep(0)
        assert editor.phase is EditPhase.DETECTING
        editor.cancel()
        service.gate.set()
        return await task

    assert asyncio.run(scenario()) is False
    assert editor.phase is EditPhase.IDLE
    assert editor.bubbles == []


def test_edit_reply_after_cancel_is_discarded():
    service = FakeService()
    saved = []
    state, editor = _editor(service, on_saved=saved.append)
    asyncio.run(editor.enter())
    editor.set_text("bubble-1", "Hello")

    async def scenario():
        service.gate = asyncio.Event()
        task = asyncio.create_task(editor.save())
        await asyncio.sleep(0)
        assert editor.phase is EditPhase.SAVING
        editor.cancel()
        service.gate.set()
        return await task

    assert asyncio.run(scenario()) is False
    assert state.result == ORIGINAL
    assert saved == []


def test_layout_is_recomputed_for_each_image_rect():
    state, editor = _editor()
    asyncio.run(editor.enter())

    small = dict((bubble.id, rect) for bubble, rect in editor.layout((0, 0, 100, 100)))
    large = dict((bubble.id, rect) for bubble, rect in editor.layout((0, 0, 1000, 1000)))
    assert small["bubble-2"] == pytest.approx((50, 60, 40, 20))
    assert large["bubble-2"] == pytest.approx((500, 600, 400, 200))
