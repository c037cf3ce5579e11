"""Page history builder (create / move / delete)."""

from __future__ import annotations

from collections.abc import Sequence
from typing import ClassVar, assert_never

from wikihist.core.grammar import EntityKind
from wikihist.core.keys import PartitionKey
from wikihist.core.schema import (
    PageCreate,
    PageDelete,
    PageEventBase,
    PageMove,
    PageSnapshot,
    PageState,
)

from .builder import HistoryBuilder

__all__ = ["PageHistoryBuilder"]


class PageHistoryBuilder(HistoryBuilder[PageEventBase, PageSnapshot, PageState]):
    """
    Builds page intervals.

    Moves open a new interval with the new title and namespace. A delete closes the
    last interval and marks every interval of the page as deleted.
    """

    kind: ClassVar[EntityKind] = EntityKind.PAGE

    def seed(
        self,
        key: PartitionKey,
        start: str | None,
        snapshot: PageSnapshot | None,
        events: Sequence[PageEventBase],
    ) -> PageState:
        if events:
            first = events[0]
            title, namespace, is_content = first.title, first.namespace, first.namespace_is_content
        elif snapshot is not None:
            title, namespace = snapshot.title, snapshot.namespace
            is_content = snapshot.namespace_is_content
        else:  # pragma: no cover - timelines always carry an event or a snapshot
            title, namespace, is_content = "", 0, False

        creator = next((e for e in events if e.is_creation), None)
        return PageState(
            domain=key.domain,
            page_id=key.entity_id,
            start_timestamp=start,
            end_timestamp=None,
            caused_by_event_type="create",
            caused_by_user_id=creator.caused_by_user_id if creator is not None else None,
            title_historical=title,
            title=title,
            namespace_historical=namespace,
            namespace=namespace,
            namespace_is_content_historical=is_content,
            namespace_is_content=is_content,
        )

    def apply(self, state: PageState, event: PageEventBase) -> PageState:
        match event:
            case PageCreate() | PageDelete():
                return state
            case PageMove():
                return state.model_copy(
                    update={
                        "title_historical": event.new_title,
                        "namespace_historical": event.new_namespace,
                        "namespace_is_content_historical": event.new_namespace_is_content,
                    }
                )
            case _:
                assert_never(event)  # type: ignore[arg-type]

    def finalize(
        self,
        states: list[PageState],
        snapshot: PageSnapshot | None,
        *,
        start: str | None,
        terminated: bool,
    ) -> list[PageState]:
        if not states:
            return states
        if snapshot is not None:
            title, namespace = snapshot.title, snapshot.namespace
            is_content, is_redirect = snapshot.namespace_is_content, snapshot.is_redirect
        else:
            last = states[-1]
            title, namespace = last.title_historical, last.namespace_historical
            is_content, is_redirect = last.namespace_is_content_historical, False
        current = {
            "title": title,
            "namespace": namespace,
            "namespace_is_content": is_content,
            "is_redirect": is_redirect,
            "is_deleted": terminated,
            "creation_timestamp": start,
        }
        return [s.model_copy(update=current) for s in states]
