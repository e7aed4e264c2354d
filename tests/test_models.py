import math
from datetime import datetime, timezone

import pytest

from mangastudio.models import BoundingBox, Bubble, EditedBubble, HistoryItem, new_history_id


def test_bounding_box_clamps_and_reorders():
    box = BoundingBox.from_raw(0.8, -0.5, 0.2, 1.7)
    assert box == BoundingBox(0.2, 0.0, 0.8, 1.0)


def test_bounding_box_treats_nan_as_zero_and_keeps_zero_area():
    box = BoundingBox.from_raw(math.nan, 0.3, 0.0, 0.3)
    assert box.x1 == 0.0 and box.x2 == 0.0
    assert box.is_empty


def test_edited_bubble_keeps_original_fields():
    bubble = Bubble(id="bubble-1", box=BoundingBox(0.1, 0.1, 0.2, 0.2), text="Hi")
    edited = EditedBubble.from_bubble(bubble, "Hello")
    assert (edited.id, edited.box, edited.text, edited.new_text) == ("bubble-1", bubble.box, "Hi", "Hello")


def test_new_history_id_is_iso_timestamp():
    stamp = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
    assert new_history_id(stamp) == "2024-05-01T12:30:00.000000+00:00"


def test_history_item_dict_uses_camel_case_keys():
    item = HistoryItem(
        id="2024-05-01T12:30:00.000000+00:00",
        image_url="data:image/png;base64,AAAA",
        style="reference",
        genre="action",
        prompt="",
        timestamp=1714566600000,
        reference_image_url="data:image/png;base64,BBBB",
    )
    data = item.to_dict()
    assert data["imageUrl"] == item.image_url
    assert data["referenceImageUrl"] == item.reference_image_url
    assert HistoryItem.from_dict(data) == item


def test_history_item_create_stamps_id_and_time():
    item = HistoryItem.create(image_url="data:image/png;base64,AAAA", style="shonen", genre="comedy", prompt="x")
    assert item.timestamp > 0
    assert datetime.fromisoformat(item.id).tzinfo is not None
    assert item.reference_image_url is None


def test_history_item_from_dict_rejects_bad_entries():
    with pytest.raises(KeyError):
        HistoryItem.from_dict({"id": "a"})
    with pytest.raises(TypeError):
        HistoryItem.from_dict({"id": 1, "imageUrl": "x"})
    with pytest.raises(TypeError):
        HistoryItem.from_dict(["not", "a", "dict"])
