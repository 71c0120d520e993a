from __future__ import annotations

import pytest

from campus_browse.popup_selection import select_popup_notice


def test_first_flagged_notice_wins() -> None:
    notices = [
        {"title": "a", "showPopup": False},
        {"title": "b", "showPopup": True},
        {"title": "c", "showPopup": True},
    ]
    assert select_popup_notice(notices)["title"] == "b"


def test_falls_back_to_last_notice_in_arrival_order() -> None:
    notices = [
        {"title": "newest", "createdAt": "2024-05-01T00:00:00Z"},
        {"title": "oldest", "createdAt": "2023-01-01T00:00:00Z"},
    ]
    assert select_popup_notice(notices)["title"] == "oldest"


@pytest.mark.parametrize("payload", [None, [], {}, {"notices": []}, "not a list"])
def test_empty_collections_yield_nothing(payload) -> None:
    assert select_popup_notice(payload) is None


def test_raw_payload_is_normalized_first() -> None:
    payload = {"success": True, "notices": [{"title": "x"}, {"title": "y", "showPopup": 1}]}
    assert select_popup_notice(payload)["title"] == "y"


def test_non_mapping_entries_never_count_as_flagged() -> None:
    notices = ["plain", {"title": "flagged", "showPopup": True}]
    assert select_popup_notice(notices)["title"] == "flagged"
