"""User history builder (create / rename / altergroups / alterblocks)."""

from __future__ import annotations

from collections.abc import Sequence
from typing import ClassVar, assert_never

from wikihist.core.grammar import EntityKind
from wikihist.core.keys import PartitionKey
from wikihist.core.schema import (
    UserAlterBlocks,
    UserAlterGroups,
    UserCreate,
    UserEventBase,
    UserRename,
    UserSnapshot,
    UserState,
)

from .builder import HistoryBuilder

__all__ = ["UserHistoryBuilder"]


class UserHistoryBuilder(HistoryBuilder[UserEventBase, UserSnapshot, UserState]):
    """
    Builds user intervals.

    The seed interval takes the oldest name seen in the timeline (the name the
    first event was recorded under) and the groups in force before the first
    group change. Without events it mirrors the snapshot.

    Examples:
        >>> from wikihist.core.schema import UserCreate, UserRename
        >>> from wikihist.history.builder import EntityTimeline
        >>> events = [
        ...     UserCreate(domain="x", timestamp="20010101000000", user_id=7, user_text="A"),
        ...     UserRename(domain="x", timestamp="20020101000000", user_text="A",
        ...                new_user_text="B"),
        ... ]
        >>> res = UserHistoryBuilder().build(EntityTimeline(PartitionKey("x", 7), events))
        >>> [(s.user_text_historical, s.end_timestamp) for s in res.states]
        [('A', '20020101000000'), ('B', None)]
    """

    kind: ClassVar[EntityKind] = EntityKind.USER

    def seed(
        self,
        key: PartitionKey,
        start: str | None,
        snapshot: UserSnapshot | None,
        events: Sequence[UserEventBase],
    ) -> UserState:
        if events:
            user_text = events[0].user_text
        elif snapshot is not None:
            user_text = snapshot.user_text
        else:  # pragma: no cover - timelines always carry an event or a snapshot
            user_text = ""

        first_groups = next((e for e in events if isinstance(e, UserAlterGroups)), None)
        if first_groups is not None:
            groups = list(first_groups.old_groups)
        elif snapshot is not None:
            groups = list(snapshot.user_groups)
        else:
            groups = []

        creator = next((e for e in events if e.is_creation), None)
        return UserState(
            domain=key.domain,
            user_id=key.entity_id,
            start_timestamp=start,
            end_timestamp=None,
            caused_by_event_type="create",
            caused_by_user_id=creator.caused_by_user_id if creator is not None else None,
            user_text_historical=user_text,
            user_text=user_text,
            user_groups_historical=groups,
            user_groups=groups,
        )

    def apply(self, state: UserState, event: UserEventBase) -> UserState:
        match event:
            case UserCreate():
                return state
            case UserRename():
                return state.model_copy(update={"user_text_historical": event.new_user_text})
            case UserAlterGroups():
                return state.model_copy(update={"user_groups_historical": list(event.new_groups)})
            case UserAlterBlocks():
                return state.model_copy(
                    update={
                        "user_blocks_historical": list(event.new_blocks),
                        "block_expiration_historical": event.block_expiration,
                    }
                )
            case _:
                assert_never(event)  # type: ignore[arg-type]

    def finalize(
        self,
        states: list[UserState],
        snapshot: UserSnapshot | None,
        *,
        start: str | None,
        terminated: bool,
    ) -> list[UserState]:
        if not states:
            return states
        if snapshot is not None:
            user_text, groups = snapshot.user_text, list(snapshot.user_groups)
        else:
            last = states[-1]
            user_text, groups = last.user_text_historical, list(last.user_groups_historical)
        current = {
            "user_text": user_text,
            "user_groups": groups,
            "registration_timestamp": start,
        }
        return [s.model_copy(update=current) for s in states]
