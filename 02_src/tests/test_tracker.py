"""Tests for Tracker."""

from datetime import datetime, timedelta, timezone

import pytest

from feishu_gateway.models import Topic
from feishu_gateway.tracker import Tracker


class TestTrackerTrack:
    """Tests for direct track() calls."""

    @pytest.mark.asyncio
    async def test_track_creates_event(self, tracker):
        """Test track stores a TraceEvent."""
        await tracker.track("event_gated", "pipeline", {"allow": True}, account_id="a1")

        events = tracker.get_events()
        assert len(events) == 1
        assert events[0].event_type == "event_gated"
        assert events[0].actor == "pipeline"
        assert events[0].data == {"allow": True}
        assert events[0].account_id == "a1"

    @pytest.mark.asyncio
    async def test_ring_is_bounded(self, event_bus):
        """Test only the newest events are kept."""
        tracker = Tracker(event_bus, max_events=3)
        for i in range(5):
            await tracker.track("e", "t", {"i": i})

        assert [e.data["i"] for e in tracker.get_events()] == [2, 3, 4]

    @pytest.mark.asyncio
    async def test_clear(self, tracker):
        """Test clear drops everything."""
        await tracker.track("e", "t", {})
        tracker.clear()
        assert tracker.get_events() == []


class TestTrackerFilters:
    """Tests for get_events filters."""

    @pytest.mark.asyncio
    async def test_filters(self, tracker):
        """Test type, actor, account and limit filters."""
        await tracker.track("reply_sent", "output_router", {}, account_id="a1")
        await tracker.track("event_gated", "pipeline", {}, account_id="a1")
        await tracker.track("event_gated", "pipeline", {}, account_id="a2")

        assert len(tracker.get_events(event_types=["event_gated"])) == 2
        assert len(tracker.get_events(actor="output_router")) == 1
        assert len(tracker.get_events(account_id="a2")) == 1
        assert len(tracker.get_events(limit=2)) == 2

    @pytest.mark.asyncio
    async def test_after_filter(self, tracker):
        """Test only events newer than `after` are returned."""
        await tracker.track("old", "t", {})
        cutoff = datetime.now(timezone.utc) + timedelta(seconds=1)

        assert tracker.get_events(after=cutoff) == []
        assert len(tracker.get_events(after=cutoff - timedelta(hours=1))) == 1


class TestTrackerSubscription:
    """Tests for EventBus subscription."""

    @pytest.mark.asyncio
    async def test_bus_messages_tracked(self, tracker, event_bus):
        """Test published messages become trace events."""
        await tracker.start()
        await event_bus.emit(Topic.STATUS, {"account_id": "a1", "running": True}, "application")

        events = tracker.get_events()
        assert len(events) == 1
        assert events[0].event_type == "status_published"
        assert events[0].actor == "application"
        assert events[0].account_id == "a1"

    @pytest.mark.asyncio
    async def test_stop_unsubscribes(self, tracker, event_bus):
        """Test stop detaches from the bus."""
        await tracker.start()
        await tracker.stop()
        await event_bus.emit(Topic.INBOUND, {}, "pipeline")

        assert tracker.get_events() == []
