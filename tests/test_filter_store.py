"""Tests for FilterStateStore mutation, offset reset and publishing."""

from __future__ import annotations

import asyncio

import pytest

from gateway_telemetry.core.filter_store import FilterStateStore
from gateway_telemetry.core.scheduler import DebouncedScheduler
from gateway_telemetry.core.screens import REQUEST_LOGS_CODEC, SPENDING_CODEC
from gateway_telemetry.types import RequestLogsFilter, SpendingFilter


def _logs_store(**kwargs) -> FilterStateStore[RequestLogsFilter]:
    return FilterStateStore(REQUEST_LOGS_CODEC, **kwargs)


class TestMutators:
    def test_filter_change_resets_offset(self):
        store = _logs_store(initial=RequestLogsFilter(offset=200))
        store.update(time_range="1h")
        assert store.state.time_range == "1h"
        assert store.state.offset == 0

    def test_view_change_keeps_offset(self):
        store = _logs_store(initial=RequestLogsFilter(offset=200))
        store.update(view="tokens")
        assert store.state.offset == 200

    def test_limit_change_resets_offset(self):
        store = _logs_store(initial=RequestLogsFilter(offset=200))
        store.update(limit=50)
        assert store.state.limit == 50
        assert store.state.offset == 0

    def test_offset_alone(self):
        store = _logs_store()
        store.update(offset=300)
        assert store.state.offset == 300

    def test_explicit_offset_wins_over_reset(self):
        store = _logs_store()
        store.update(model_id="gpt-4o", offset=100)
        assert store.state.offset == 100

    def test_unchanged_value_does_not_reset_offset(self):
        store = _logs_store(initial=RequestLogsFilter(offset=100))
        store.update(time_range="24h")
        assert store.state.offset == 100

    def test_discarded_dependent_change_keeps_offset(self):
        published: list[dict] = []
        store = FilterStateStore(
            SPENDING_CODEC, SpendingFilter(offset=50), on_persist=published.append,
        )
        store.update(from_date="2024-01-01")
        assert store.state.from_date == ""
        assert store.state.offset == 50
        assert published == []

    def test_numeric_inputs_clamped(self):
        store = _logs_store()
        store.update(token_min=-20, offset=-5)
        assert store.state.token_min == 0
        assert store.state.offset == 0

        spending = FilterStateStore(SPENDING_CODEC)
        spending.update(top_n=500)
        assert spending.state.top_n == 50
        spending.update(top_n=0)
        assert spending.state.top_n == 1

    def test_invalid_enum_raises(self):
        store = _logs_store()
        with pytest.raises(ValueError):
            store.update(time_range="2w")
        assert store.state == RequestLogsFilter()

    def test_unknown_field_raises(self):
        store = _logs_store()
        with pytest.raises(ValueError, match="Unknown filter field"):
            store.update(colour="blue")

    def test_leaving_custom_preset_clears_dates(self):
        store = FilterStateStore(SPENDING_CODEC)
        store.update(preset="custom", from_date="2024-01-01", to_date="2024-01-07")
        store.update(preset="last_30_days")
        assert store.state.from_date == ""
        assert store.state.to_date == ""

    def test_paging(self):
        store = _logs_store()
        store.next_page()
        store.next_page()
        assert store.state.offset == 200
        store.previous_page()
        assert store.state.offset == 100
        store.previous_page()
        store.previous_page()
        assert store.state.offset == 0

    def test_reset(self):
        store = _logs_store()
        store.update(search="boom", triage="slowest", offset=100)
        store.reset()
        assert store.state == RequestLogsFilter()
        assert store.persisted == {}


class TestPublishing:
    def test_persisted_replaced_each_settle(self):
        published: list[dict] = []
        store = _logs_store(on_persist=published.append)
        store.update(time_range="1h")
        store.update(time_range="7d")
        assert published == [{"time_range": "1h"}, {"time_range": "7d"}]
        assert store.persisted == {"time_range": "7d"}

    def test_batch_publishes_once(self):
        published: list[dict] = []
        store = _logs_store(on_persist=published.append)
        with store.batch():
            store.update(model_id="gpt-4o")
            store.update(outcome_filter="error")
            store.update(triage="slowest")
        assert len(published) == 1
        assert published[0] == {
            "model_id": "gpt-4o", "outcome_filter": "error", "triage": "slowest",
        }

    def test_noop_update_does_not_publish(self):
        published: list[dict] = []
        store = _logs_store(on_persist=published.append)
        store.update(time_range="24h")
        assert published == []

    def test_subscribe_and_unsubscribe(self):
        seen: list[RequestLogsFilter] = []
        store = _logs_store()
        unsubscribe = store.subscribe(seen.append)
        store.update(view="cost")
        unsubscribe()
        store.update(view="errors")
        assert [s.view for s in seen] == ["cost"]

    def test_from_query_string(self):
        store = FilterStateStore.from_query(REQUEST_LOGS_CODEC, "time_range=1h&limit=25")
        assert store.state.time_range == "1h"
        assert store.state.limit == 25
        assert store.query_string() == "time_range=1h&limit=25"

    def test_round_trip_after_mutations(self):
        store = FilterStateStore(SPENDING_CODEC)
        store.update(preset="custom", from_date="2024-03-01", to_date="2024-03-31")
        store.update(group_by="day", top_n=80, model_id="  m1 ")
        store.update(preset="today")
        parsed = SPENDING_CODEC.parse(store.persisted)
        assert parsed == store.state
        assert isinstance(parsed, SpendingFilter)


class TestDebouncedFetch:
    @pytest.mark.asyncio
    async def test_burst_of_mutations_fetches_once(self):
        fired: list[RequestLogsFilter] = []
        store_ref: list[FilterStateStore] = []

        async def fetch():
            fired.append(store_ref[0].state)

        scheduler = DebouncedScheduler(0.02, fetch)
        store = _logs_store(scheduler=scheduler)
        store_ref.append(store)

        store.update(model_id="a")
        store.update(time_range="1h")
        store.update(triage="slowest")
        assert scheduler.pending

        await asyncio.sleep(0.08)
        await scheduler.drain()
        assert len(fired) == 1
        assert fired[0].model_id == "a"
        assert fired[0].time_range == "1h"
        assert fired[0].triage == "slowest"
