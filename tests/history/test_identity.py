from __future__ import annotations

import pytest

from wikihist.core.errors import IdentityCycleError, InvariantViolation
from wikihist.core.schema import (
    PageCreate,
    PageDelete,
    PageMove,
    UserAlterGroups,
    UserCreate,
    UserRename,
    UserSnapshot,
)
from wikihist.history.identity import IdentityGraph, attribute_events

T100 = "20100101000000"
T200 = "20200101000000"
T250 = "20250101000000"
T300 = "20300101000000"
T400 = "20400101000000"


def _rename(ts: str, old: str, new: str, **kw) -> UserRename:
    return UserRename(domain="x", timestamp=ts, user_text=old, new_user_text=new, **kw)


def _chain() -> list:
    return [
        UserCreate(domain="x", timestamp=T100, user_text="A", user_id=42),
        _rename(T200, "A", "B"),
        _rename(T300, "B", "C"),
    ]


def test_resolve_follows_renames_up_to_the_probe_time() -> None:
    graph = IdentityGraph.from_events(_chain())
    assert graph.resolve(("x", "A"), T100) == ("x", "A")
    assert graph.resolve(("x", "A"), T250) == ("x", "B")
    assert graph.resolve(("x", "A"), T400) == ("x", "C")
    assert graph.resolve_current(("x", "A"), T100) == ("x", "C")
    assert graph.walk(("x", "A"), T100) == [("x", "A"), ("x", "B"), ("x", "C")]


def test_unknown_keys_resolve_to_themselves() -> None:
    graph = IdentityGraph.from_events(_chain())
    assert graph.resolve(("x", "Nobody"), T250) == ("x", "Nobody")
    assert graph.resolve_current(("y", "A"), T250) == ("y", "A")


def test_domains_never_mix() -> None:
    other_wiki = UserRename(domain="y", timestamp=T200, user_text="A", new_user_text="Z")
    graph = IdentityGraph.from_events(_chain() + [other_wiki])
    assert graph.resolve_current(("x", "A"), T100) == ("x", "C")
    assert graph.resolve_current(("y", "A"), T100) == ("y", "Z")


def test_rename_cycle_is_fatal() -> None:
    graph = IdentityGraph.from_events([_rename(T200, "A", "B"), _rename(T300, "B", "A")])
    with pytest.raises(IdentityCycleError) as info:
        graph.resolve_current(("x", "A"), T100)
    assert info.value.path == (("x", "A"), ("x", "B"), ("x", "A"))
    assert isinstance(info.value, InvariantViolation)


def test_reused_name_starts_a_new_lineage() -> None:
    # "A" is renamed away, then a different account registers as "A".
    events = [
        UserCreate(domain="x", timestamp=T100, user_text="A", user_id=1),
        _rename(T200, "A", "B"),
        UserCreate(domain="x", timestamp=T300, user_text="A", user_id=2),
    ]
    graph = IdentityGraph.from_events(events)
    assert graph.resolve_current(("x", "A"), T250) == ("x", "B")
    assert graph.resolve_current(("x", "A"), T400) == ("x", "A")


def test_events_with_parsing_errors_add_no_edges() -> None:
    bad = _rename(T200, "A", "B").model_copy(update={"parsing_errors": ["broken"]})
    graph = IdentityGraph.from_events([bad])
    assert graph.edge_count == 0


def test_page_moves_build_edges_on_title_and_namespace() -> None:
    events = [
        PageCreate(domain="x", timestamp=T100, title="Foo", namespace=0, page_id=9),
        PageMove(
            domain="x", timestamp=T200, title="Foo", namespace=0, new_title="Foo", new_namespace=4
        ),
    ]
    graph = IdentityGraph.from_events(events)
    assert graph.resolve(("x", "Foo", 0), T250) == ("x", "Foo", 4)


def test_stale_name_is_attributed_to_the_lineage_owner() -> None:
    stale = UserAlterGroups(domain="x", timestamp=T250, user_text="A", new_groups=["sysop"])
    events = _chain() + [stale]
    out = attribute_events(events, [], IdentityGraph.from_events(events))
    assert not out.unmatched
    assert {entity_id for entity_id, _ in out.matched} == {42}


def test_snapshot_owner_wins_for_events_without_ids() -> None:
    events = [_rename(T200, "A", "B"), _rename(T300, "B", "C")]
    snapshot = UserSnapshot(domain="x", user_id=7, user_text="C", registration_timestamp=T100)
    out = attribute_events(events, [(7, snapshot)], IdentityGraph.from_events(events))
    assert [entity_id for entity_id, _ in out.matched] == [7, 7]


def test_creation_without_id_gets_a_pseudo_id_and_orphans_are_unmatched() -> None:
    created = UserCreate(domain="x", timestamp=T100, user_text="Anon")
    orphan = UserAlterGroups(domain="x", timestamp=T200, user_text="Ghost", new_groups=["bot"])
    follow_up = UserAlterGroups(domain="x", timestamp=T200, user_text="Anon", new_groups=["bot"])
    events = [created, orphan, follow_up]
    out = attribute_events(events, [], IdentityGraph.from_events(events))
    ids = {ev.user_text: entity_id for entity_id, ev in out.matched}
    assert ids["Anon"] < 0
    assert out.unmatched == [orphan]
    assert len({entity_id for entity_id, _ in out.matched}) == 1


def test_name_freed_by_rename_and_taken_by_rename_is_a_new_lineage() -> None:
    events = [
        UserCreate(domain="x", timestamp=T100, user_text="B", user_id=1),
        _rename(T200, "B", "D", user_id=1),
        UserCreate(domain="x", timestamp=T100, user_text="A", user_id=2),
        _rename(T250, "A", "B", user_id=2),
    ]
    late = UserAlterGroups(domain="x", timestamp=T300, user_text="B", new_groups=["sysop"])
    early = UserAlterGroups(domain="x", timestamp=T100, user_text="B", new_groups=["bot"])
    graph = IdentityGraph.from_events(events + [late, early])

    assert graph.resolve_current(("x", "B"), T300) == ("x", "B")
    assert graph.resolve_current(("x", "B"), T100) == ("x", "D")
    assert graph.resolve_lineage(("x", "B"), T300) == (("x", "B"), T250)
    assert graph.resolve_lineage(("x", "A"), T100) == (("x", "B"), T250)

    out = attribute_events(events + [late, early], [], graph)
    owners = {
        ev.timestamp: entity_id for entity_id, ev in out.matched if ev.event_type == "altergroups"
    }
    assert owners == {T300: 2, T100: 1}


def test_title_freed_by_move_and_taken_by_move_is_a_new_lineage() -> None:
    events = [
        PageCreate(domain="x", timestamp=T100, title="A", namespace=0, page_id=1),
        PageMove(domain="x", timestamp=T200, title="A", namespace=0, new_title="B", new_namespace=0),
        PageCreate(domain="x", timestamp=T100, title="C", namespace=0, page_id=2),
        PageMove(domain="x", timestamp=T250, title="C", namespace=0, new_title="A", new_namespace=0),
        PageDelete(domain="x", timestamp=T300, title="A", namespace=0),
    ]
    out = attribute_events(events, [], IdentityGraph.from_events(events))
    assert not out.unmatched
    owners = {(ev.event_type, ev.timestamp): entity_id for entity_id, ev in out.matched}
    assert owners[("move", T200)] == 1
    assert owners[("move", T250)] == 2
    assert owners[("delete", T300)] == 2


def test_snapshot_goes_to_the_lineage_that_took_its_key_last() -> None:
    events = [
        _rename(T200, "B", "D"),
        _rename(T250, "A", "B"),
        UserAlterGroups(domain="x", timestamp=T300, user_text="B", new_groups=["sysop"]),
    ]
    snapshots = [
        (1, UserSnapshot(domain="x", user_id=1, user_text="D", registration_timestamp=T100)),
        (2, UserSnapshot(domain="x", user_id=2, user_text="B", registration_timestamp=T100)),
    ]
    out = attribute_events(events, snapshots, IdentityGraph.from_events(events))
    owners = {ev.timestamp: entity_id for entity_id, ev in out.matched}
    assert owners == {T200: 1, T250: 2, T300: 2}
