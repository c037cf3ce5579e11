from __future__ import annotations

import pytest
from pydantic import ValidationError

from wikihist.core.schema import (
    ErrorRow,
    PageCreate,
    PageDelete,
    PageMove,
    PageSnapshot,
    UnparsedEvent,
    UserAlterGroups,
    UserCreate,
    UserRename,
    UserSnapshot,
    UserState,
    parse_page_event,
    parse_page_snapshot,
    parse_user_event,
    parse_user_snapshot,
)


def test_parse_user_rename_exposes_identity_edge() -> None:
    ev = parse_user_event(
        {
            "domain": "EnWiki",
            "timestamp": "2001-01-15T00:00:00",
            "event_type": "rename",
            "user_text": "Alice",
            "new_user_text": "Alicia",
            "user_id": 3,
            "sorting_id": 11,
        }
    )
    assert isinstance(ev, UserRename)
    assert ev.domain == "enwiki"
    assert ev.timestamp == "20010115000000"
    assert ev.from_key == ("enwiki", "Alice")
    assert ev.to_key == ("enwiki", "Alicia")
    assert ev.is_identity_change
    assert ev.entity_id == 3


def test_wide_rows_keep_only_the_variant_fields() -> None:
    ev = parse_user_event(
        {
            "domain": "enwiki",
            "timestamp": "20010115000000",
            "event_type": "altergroups",
            "user_text": "Alice",
            "new_user_text": None,
            "old_groups": [],
            "new_groups": ["sysop"],
            "new_blocks": None,
        }
    )
    assert isinstance(ev, UserAlterGroups)
    assert ev.new_groups == ["sysop"]
    assert not ev.is_identity_change


def test_page_variants() -> None:
    base = {"domain": "enwiki", "timestamp": "20010115000000", "title": "Foo", "namespace": 0}
    assert isinstance(parse_page_event({**base, "event_type": "create"}), PageCreate)
    assert PageCreate.is_creation and not PageCreate.is_terminal
    assert PageDelete.is_terminal
    move = parse_page_event(
        {**base, "event_type": "move", "new_title": "Bar", "new_namespace": 4}
    )
    assert isinstance(move, PageMove)
    assert move.from_key == ("enwiki", "Foo", 0)
    assert move.to_key == ("enwiki", "Bar", 4)


@pytest.mark.parametrize(
    "row",
    [
        {"domain": "enwiki", "timestamp": "20010115000000", "event_type": "merge", "user_text": "A"},
        {"domain": "enwiki", "timestamp": "20010115000000", "user_text": "A"},
        {"domain": "enwiki", "timestamp": "not a time", "event_type": "create", "user_text": "A"},
        {"domain": "enwiki", "timestamp": "20010115000000", "event_type": "rename", "user_text": "A"},
        {"domain": "bad/domain", "timestamp": "20010115000000", "event_type": "create", "user_text": "A"},
    ],
)
def test_unparseable_rows_become_unparsed_events(row) -> None:
    ev = parse_user_event(row)
    assert isinstance(ev, UnparsedEvent)
    assert ev.parsing_errors
    assert ev.raw["timestamp"] == row["timestamp"]


def test_parsing_error_message_names_the_field() -> None:
    ev = parse_user_event(
        {"domain": "enwiki", "timestamp": "20010115000000", "event_type": "rename", "user_text": "A"}
    )
    assert isinstance(ev, UnparsedEvent)
    assert any(msg.startswith("new_user_text:") for msg in ev.parsing_errors)


def test_snapshots() -> None:
    snap = parse_user_snapshot(
        {"domain": "enwiki", "user_id": 1, "user_text": "A", "registration_timestamp": ""}
    )
    assert isinstance(snap, UserSnapshot)
    assert snap.registration_timestamp is None
    assert snap.identity_key == ("enwiki", "A")

    page = parse_page_snapshot(
        {"domain": "enwiki", "page_id": 5, "title": "Foo", "namespace": 0,
         "creation_timestamp": "20010101000000", "is_redirect": True}
    )
    assert isinstance(page, PageSnapshot)
    assert page.start_timestamp == "20010101000000"
    assert isinstance(parse_page_snapshot({"domain": "enwiki", "title": "Foo"}), UnparsedEvent)


def test_events_are_frozen_and_strict() -> None:
    ev = UserCreate(domain="enwiki", timestamp="20010101000000", user_text="A")
    with pytest.raises(ValidationError):
        ev.user_text = "B"  # type: ignore[misc]
    with pytest.raises(ValidationError):
        UserCreate(domain="enwiki", timestamp="20010101000000", user_text="A", bogus=1)


def test_interval_bounds_are_checked() -> None:
    with pytest.raises(ValidationError):
        UserState(
            domain="enwiki",
            user_id=1,
            start_timestamp="20020101000000",
            end_timestamp="20010101000000",
            caused_by_event_type="create",
            user_text_historical="A",
            user_text="A",
        )


def test_error_row_category_is_validated() -> None:
    assert ErrorRow(domain="x", category="empty-registration", data="{}").category == (
        "empty-registration"
    )
    with pytest.raises(ValidationError):
        ErrorRow(domain="x", category="weird", data="{}")
