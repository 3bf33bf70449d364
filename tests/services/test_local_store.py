"""
Tests for LocalStore.

Tests cover:
1. Local mutations and derived views
2. Last-writer-wins merge of scalars
3. Upsert merge of collections (idempotence, commutativity)
4. Read state, archive, retention and bounds
"""

from datetime import time, timedelta

import pytest

from notizen.models import (
    BatteryUpdatePayload,
    CategoryRule,
    CategorySetPayload,
    Digest,
    DigestBatchPayload,
    DigestBundle,
    EnvelopeKind,
    NotificationBatchPayload,
    Priority,
    SyncEnvelope,
    decode_envelope,
)
from notizen.models.views import DashboardItemType
from notizen.utils import LogicalStamp, ValidationError


def battery_envelope(state, counter: int, origin: str = "watch") -> SyncEnvelope:
    return SyncEnvelope.build(
        EnvelopeKind.BATTERY_UPDATE, LogicalStamp(counter, origin), BatteryUpdatePayload(battery=state)
    )


def categories_envelope(rules, counter: int, origin: str) -> SyncEnvelope:
    return SyncEnvelope.build(
        EnvelopeKind.CATEGORY_SET, LogicalStamp(counter, origin), CategorySetPayload(rules=rules)
    )


def notifications_envelope(events, counter: int = 1, origin: str = "watch") -> SyncEnvelope:
    return SyncEnvelope.build(
        EnvelopeKind.NOTIFICATION_BATCH,
        LogicalStamp(counter, origin),
        NotificationBatchPayload(events=events),
    )


def wire(envelope: SyncEnvelope) -> SyncEnvelope:
    """Round-trip through the wire format like a real delivery."""
    return decode_envelope(envelope.model_dump(mode="json"))


class TestLocalMutations:
    """Tests for writes made on this device."""

    def test_initial_views(self, make_store):
        projection = make_store().projection()

        assert projection.device_id == "phone"
        assert projection.unread_high_count == 0
        assert projection.latest_high_message == "No critical alerts"
        assert projection.estimated_hours_remaining is None
        assert projection.dashboard_feed == []
        assert projection.notification_summary == "No new notification digests."

    def test_mutations_return_increasing_stamps(self, make_store, make_event, battery_state):
        store = make_store()

        first = store.add_notifications([make_event(priority=Priority.HIGH)])
        second = store.update_battery(battery_state(0.5))
        third = store.set_digest_window_end(time(18, 0))

        assert first < second < third
        assert third.origin == "phone"

    def test_high_notification_updates_views(self, make_store, make_event):
        store = make_store()
        event = make_event(
            app_name="Chase", bundle_id="com.chase", title="Payment", message="Sent $20",
            priority=Priority.HIGH, category="Finance",
        )

        store.add_notifications([event])
        projection = store.projection()

        assert projection.unread_high_count == 1
        assert projection.latest_high_message == "Payment: Sent $20"
        assert projection.dashboard_feed[0].id == event.id
        assert projection.dashboard_feed[0].type == DashboardItemType.HIGH_PRIORITY

    def test_medium_and_low_not_in_high_feed(self, make_store, make_event):
        store = make_store()
        store.add_notifications(
            [make_event(priority=Priority.MEDIUM, category="Work"), make_event(priority=Priority.LOW)]
        )

        assert store.projection().unread_high_count == 0
        assert store.projection().dashboard_feed == []
        assert len(store.notifications) == 2

    def test_battery_updates_estimate(self, make_store, battery_state):
        store = make_store()
        store.update_battery(battery_state(0.5))

        assert store.projection().estimated_hours_remaining == pytest.approx(5.0)

    def test_duplicate_category_names_rejected(self, make_store):
        store = make_store()

        with pytest.raises(ValidationError):
            store.update_categories([CategoryRule(name="Work"), CategoryRule(name="Work")])

    def test_update_categories(self, make_store):
        store = make_store()
        store.update_categories([CategoryRule(name="Family", keywords=["mom"])])

        assert [r.name for r in store.categories] == ["Family"]

    def test_dashboard_interleaves_newest_first(self, make_store, make_event, base_time):
        store = make_store(dashboard_limit=3)
        old_high = make_event(title="old", minutes=0, priority=Priority.HIGH)
        new_high = make_event(title="new", minutes=30, priority=Priority.HIGH)
        store.add_notifications([old_high, new_high])
        digest = Digest(title="Twitter Updates", created_at=base_time + timedelta(minutes=10))
        store.add_digest_bundles([DigestBundle(digest=digest)])
        store.add_notifications([make_event(title="oldest", minutes=-30, priority=Priority.HIGH)])

        feed = store.projection().dashboard_feed

        assert [item.id for item in feed] == [new_high.id, digest.id, old_high.id]
        assert feed[1].type == DashboardItemType.DIGEST


class TestScalarMerge:
    """Last-writer-wins on (logical timestamp, origin)."""

    def test_apply_battery(self, make_store, battery_state):
        store = make_store()

        assert store.apply_envelope(wire(battery_envelope(battery_state(0.4), 3))) == "applied"
        assert store.battery.level == 0.4
        assert store.stamp_for("battery") == LogicalStamp(3, "watch")

    def test_idempotent(self, make_store, battery_state):
        """Test applying the same envelope twice changes nothing."""
        store = make_store()
        envelope = battery_envelope(battery_state(0.4), 3)

        store.apply_envelope(wire(envelope))
        before = store.projection()

        assert store.apply_envelope(wire(envelope)) == "stale"
        assert store.projection() == before

    def test_older_write_discarded(self, make_store, battery_state):
        store = make_store()
        store.apply_envelope(wire(battery_envelope(battery_state(0.4), 6)))

        assert store.apply_envelope(wire(battery_envelope(battery_state(0.5), 5))) == "stale"
        assert store.battery.level == 0.4

    def test_order_independent(self, make_store):
        """Test concurrent writes converge regardless of arrival order."""
        from_phone = categories_envelope([CategoryRule(name="Phone")], 5, "phone")
        from_watch = categories_envelope([CategoryRule(name="Watch")], 5, "watch")

        first = make_store("a")
        first.apply_envelope(wire(from_phone))
        first.apply_envelope(wire(from_watch))
        second = make_store("b")
        second.apply_envelope(wire(from_watch))
        second.apply_envelope(wire(from_phone))

        assert first.categories == second.categories
        assert [r.name for r in first.categories] == ["Watch"]

    def test_remote_write_beats_defaults(self, make_store):
        store = make_store()
        store.apply_envelope(wire(categories_envelope([CategoryRule(name="Family")], 1, "watch")))

        assert [r.name for r in store.categories] == ["Family"]

    def test_local_clock_observes_remote(self, make_store, battery_state):
        store = make_store()
        store.apply_envelope(wire(battery_envelope(battery_state(0.4), 10)))

        assert store.update_battery(battery_state(0.3)) == LogicalStamp(11, "phone")

    def test_window_only_category_set(self, make_store):
        """Test a window-only write leaves the rules untouched."""
        store = make_store()
        rules = store.categories
        envelope = SyncEnvelope.build(
            EnvelopeKind.CATEGORY_SET,
            LogicalStamp(2, "watch"),
            CategorySetPayload(digest_window_end=time(19, 30)),
        )

        assert store.apply_envelope(wire(envelope)) == "applied"
        assert store.digest_window_end == time(19, 30)
        assert store.categories == rules
        assert store.stamp_for("categories") == LogicalStamp()

    def test_unknown_kind_ignored(self, make_store):
        store = make_store()
        envelope = decode_envelope(
            {"kind": "haptic_pattern", "origin": "watch", "logical_timestamp": 50, "payload": {}}
        )

        assert store.apply_envelope(envelope) == "ignored"
        assert store.lamport.counter == 0


class TestCollectionMerge:
    """Upsert by id for notifications and digests."""

    def test_idempotent(self, make_store, make_event):
        store = make_store()
        envelope = notifications_envelope([make_event(priority=Priority.HIGH)])

        store.apply_envelope(wire(envelope))
        store.apply_envelope(wire(envelope))

        assert len(store.notifications) == 1
        assert store.projection().unread_high_count == 1

    def test_commutative(self, make_store, make_event):
        """Test two batches merge to the same state in either order."""
        shared = make_event(title="shared", priority=Priority.HIGH)
        batch_a = notifications_envelope([shared, make_event(title="a", minutes=1, priority=Priority.HIGH)])
        batch_b = notifications_envelope([shared, make_event(title="b", minutes=2, priority=Priority.LOW)])

        first = make_store()
        first.apply_envelope(wire(batch_a))
        first.apply_envelope(wire(batch_b))
        second = make_store()
        second.apply_envelope(wire(batch_b))
        second.apply_envelope(wire(batch_a))

        assert {e.id: e for e in first.notifications} == {e.id: e for e in second.notifications}
        assert first.projection().dashboard_feed == second.projection().dashboard_feed

    def test_upsert_keeps_position(self, make_store, make_event):
        store = make_store()
        first = make_event(title="first", priority=Priority.HIGH)
        second = make_event(title="second", priority=Priority.HIGH)
        store.add_notifications([first, second])

        store.apply_envelope(wire(notifications_envelope([first])))

        assert [e.id for e in store.notifications] == [first.id, second.id]

    def test_digest_group_preserved(self, make_store, make_event):
        """Test an incoming copy without a digest id never clears it."""
        store = make_store()
        event = make_event(priority=Priority.LOW, category="Social")
        digest = Digest(title="Twitter Updates", notification_ids=[event.id], app_name="Twitter")
        store.add_digest_bundles([DigestBundle(digest=digest, events=[event.with_digest_group(digest.id)])])

        store.apply_envelope(wire(notifications_envelope([event])))

        assert store.get_notification(event.id).digest_group_id == digest.id

    def test_digest_batch(self, make_store, make_event):
        store = make_store()
        event = make_event(priority=Priority.LOW, category="Social")
        digest = Digest(title="Twitter Updates", notification_ids=[event.id], app_name="Twitter")
        envelope = SyncEnvelope.build(
            EnvelopeKind.DIGEST_BATCH,
            LogicalStamp(4, "watch"),
            DigestBatchPayload(bundles=[DigestBundle(digest=digest, events=[event.with_digest_group(digest.id)])]),
        )

        assert store.apply_envelope(wire(envelope)) == "applied"
        assert [d.id for d in store.digests] == [digest.id]
        assert store.projection().notification_summary == "1 new notification from Twitter."
        assert store.digest_bundles()[0].events[0].id == event.id

    def test_classification_not_lost(self, make_store, make_event):
        store = make_store()
        classified = make_event(priority=Priority.HIGH)
        store.add_notifications([classified])

        unclassified = classified.model_copy(update={"classification": make_event().classification})
        store.apply_envelope(wire(notifications_envelope([unclassified])))

        assert store.get_notification(classified.id).priority == Priority.HIGH


class TestReadStateAndRetention:
    """Tests for read marks, archive, eviction and bounds."""

    def test_mark_read(self, make_store, make_event):
        store = make_store()
        event = make_event(priority=Priority.HIGH)
        store.add_notifications([event])

        assert store.mark_read([event.id, "ntf_unknown"]) == 1
        assert store.mark_read([event.id]) == 0
        assert store.projection().unread_high_count == 0

    def test_archive_blocks_readd(self, make_store, make_event):
        store = make_store()
        event = make_event(priority=Priority.HIGH)
        store.add_notifications([event])

        assert store.archive([event.id]) == 1
        store.apply_envelope(wire(notifications_envelope([event])))

        assert store.get_notification(event.id) is None
        assert store.projection().dashboard_feed == []

    def test_evict_expired(self, make_store, make_event, base_time):
        store = make_store(notification_retention_hours=1, digest_retention_hours=1)
        old = make_event(minutes=-120, priority=Priority.HIGH)
        fresh = make_event(minutes=0, priority=Priority.HIGH)
        store.add_notifications([old, fresh])
        store.add_digest_bundles([DigestBundle(digest=Digest(title="Old", created_at=base_time - timedelta(hours=2)))])

        assert store.evict_expired(base_time) == 2
        assert [e.id for e in store.notifications] == [fresh.id]
        assert store.digests == []

        # Expired copies from the peer stay out
        store.apply_envelope(wire(notifications_envelope([old])))
        assert store.get_notification(old.id) is None

    def test_archived_ids_pruned_with_retention(self, make_store, make_event, base_time):
        store = make_store(notification_retention_hours=1)
        event = make_event(priority=Priority.HIGH)
        store.add_notifications([event])
        store.archive([event.id])

        store.evict_expired(base_time + timedelta(minutes=30))
        assert store.archived_ids == {event.id}

        store.evict_expired(base_time + timedelta(hours=2))
        assert store.archived_ids == frozenset()

        # Past retention, so still kept out
        store.apply_envelope(wire(notifications_envelope([event])))
        assert store.get_notification(event.id) is None

    def test_notifications_bounded(self, make_store, make_event):
        store = make_store(max_notifications=3)
        events = [make_event(minutes=i, priority=Priority.LOW) for i in range(5)]
        store.add_notifications(events)

        assert [e.id for e in store.notifications] == [e.id for e in events[2:]]

    def test_digests_bounded(self, make_store):
        store = make_store(max_digests=2)
        digests = [Digest(title=f"D{i}") for i in range(3)]
        store.add_digest_bundles([DigestBundle(digest=d) for d in digests])

        assert [d.id for d in store.digests] == [d.id for d in digests[1:]]

    def test_high_feed_limit(self, make_store, make_event):
        store = make_store(high_feed_limit=2, dashboard_limit=10)
        store.add_notifications([make_event(minutes=i, priority=Priority.HIGH) for i in range(4)])

        projection = store.projection()

        assert projection.unread_high_count == 4
        assert len(projection.dashboard_feed) == 2
