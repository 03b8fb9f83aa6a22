"""FilterStateStore: the single owner of one screen's filter/view state."""

from __future__ import annotations

import dataclasses
import logging
from contextlib import contextmanager
from typing import Any, Callable, Generic, Iterator, Mapping, TypeVar

from .query_codec import QueryStateCodec
from .scheduler import DebouncedScheduler

logger = logging.getLogger(__name__)

S = TypeVar("S")


class FilterStateStore(Generic[S]):
    """Hold a filter state, apply mutations, and publish settled batches.

    Every settled batch re-serializes the state through the codec (the
    persisted map is replaced, never appended to), notifies subscribers,
    and restarts the debounced fetch trigger.
    """

    def __init__(
        self,
        codec: QueryStateCodec[S],
        initial: S | None = None,
        *,
        scheduler: DebouncedScheduler | None = None,
        on_persist: Callable[[dict[str, str]], None] | None = None,
    ) -> None:
        self.codec = codec
        self.scheduler = scheduler
        self._on_persist = on_persist
        self._state: S = codec.normalize(initial) if initial is not None else codec.defaults()
        self._persisted: dict[str, str] = codec.serialize(self._state)
        self._subscribers: list[Callable[[S], None]] = []
        self._batch_depth = 0
        self._dirty = False
        self._has_offset = any(f.name == "offset" for f in codec.fields)

    @classmethod
    def from_query(
        cls,
        codec: QueryStateCodec[S],
        persisted: Mapping[str, Any] | str,
        **kwargs: Any,
    ) -> FilterStateStore[S]:
        """Build a store from a persisted map or query string."""
        if isinstance(persisted, str):
            state = codec.from_query_string(persisted)
        else:
            state = codec.parse(persisted)
        return cls(codec, state, **kwargs)

    @property
    def state(self) -> S:
        return self._state

    @property
    def persisted(self) -> dict[str, str]:
        return dict(self._persisted)

    def query_string(self) -> str:
        return self.codec.to_query_string(self._state)

    # -- mutators --

    def update(self, **changes: Any) -> S:
        """Apply field changes. Filter changes reset ``offset`` to 0."""
        if not changes:
            return self._state
        coerced: dict[str, Any] = {}
        for name, value in changes.items():
            try:
                query_field = self.codec.field(name)
            except KeyError:
                raise ValueError(f"Unknown filter field: {name}") from None
            coerced[name] = query_field.coerce(value)

        new_state = self.codec.normalize(dataclasses.replace(self._state, **coerced))
        # Compare after normalize: a discarded dependent change is not a change.
        resets = any(
            f.resets_offset
            and getattr(new_state, f.name) != getattr(self._state, f.name)
            for f in self.codec.fields
        )
        if resets and self._has_offset and "offset" not in coerced:
            new_state = dataclasses.replace(new_state, offset=0)

        if new_state == self._state:
            return self._state
        self._state = new_state
        self._dirty = True
        if self._batch_depth == 0:
            self._settle()
        return new_state

    def set_field(self, name: str, value: Any) -> S:
        return self.update(**{name: value})

    def reset(self) -> S:
        """Restore every field to its default."""
        defaults = self.codec.defaults()
        if defaults != self._state:
            self._state = defaults
            self._dirty = True
            if self._batch_depth == 0:
                self._settle()
        return self._state

    def next_page(self) -> S:
        limit = getattr(self._state, "limit")
        return self.update(offset=getattr(self._state, "offset") + limit)

    def previous_page(self) -> S:
        limit = getattr(self._state, "limit")
        return self.update(offset=max(0, getattr(self._state, "offset") - limit))

    @contextmanager
    def batch(self) -> Iterator[FilterStateStore[S]]:
        """Coalesce several mutations into one settled batch."""
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._dirty:
                self._settle()

    # -- subscription --

    def subscribe(self, callback: Callable[[S], None]) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _settle(self) -> None:
        self._dirty = False
        self._persisted = self.codec.serialize(self._state)
        logger.debug("Filter state settled: %s", self._persisted)
        if self._on_persist is not None:
            self._on_persist(dict(self._persisted))
        for callback in list(self._subscribers):
            callback(self._state)
        if self.scheduler is not None:
            self.scheduler.schedule()
