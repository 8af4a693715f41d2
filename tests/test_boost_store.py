"""Tests for data/boost_store.py: channels, users, sessions, stats, calendar, recommendations."""

import sqlite3

import pytest

from boosting.errors import InvalidArgument, StorageFailure, UserConflict
from conftest import CHANNEL_A, CHANNEL_B, make_items


class TestChannels:
    def test_create_and_get(self, store):
        ch = store.create_channel(CHANNEL_A, "Beast Philanthropy", category="Charity")
        assert ch["channel_id"] == CHANNEL_A
        assert ch["is_verified"] is True
        assert store.get_channel(CHANNEL_A)["name"] == "Beast Philanthropy"

    def test_create_duplicate_keeps_original(self, store):
        store.create_channel(CHANNEL_A, "Original")
        again = store.create_channel(CHANNEL_A, "Different")
        assert again["name"] == "Original"

    def test_get_missing_returns_none(self, store):
        assert store.get_channel("UCnopenopenopenopenope00") is None

    def test_verified_listing_excludes_unverified(self, store):
        store.create_channel(CHANNEL_A, "A")
        store.create_channel(CHANNEL_B, "B", is_verified=False)
        assert [c["channel_id"] for c in store.get_verified_channels()] == [CHANNEL_A]

    def test_ensure_channel_creates_placeholder(self, store):
        ch = store.ensure_channel(CHANNEL_B)
        assert ch["name"] == CHANNEL_B
        assert ch["is_verified"] is False
        assert store.ensure_channel(CHANNEL_B, name="Ignored")["name"] == CHANNEL_B

    def test_set_channel_verified(self, store):
        store.ensure_channel(CHANNEL_B)
        assert store.set_channel_verified(CHANNEL_B, True) is True
        assert store.get_channel(CHANNEL_B)["is_verified"] is True
        assert store.set_channel_verified("UCnopenopenopenopenope00", True) is False


class TestUsers:
    def test_get_or_create(self, store):
        user, created = store.get_or_create_user("google-1", "a@example.com", "Ann")
        assert created is True
        again, created = store.get_or_create_user("google-1", "a@example.com", "Ann")
        assert created is False
        assert again["id"] == user["id"]
        assert store.get_user(user["id"])["email"] == "a@example.com"

    def test_missing_user(self, store):
        assert store.get_user(999) is None

    def test_email_owned_by_other_identity(self, store):
        store.get_or_create_user("google-1", "a@example.com", "Ann")
        with pytest.raises(UserConflict):
            store.get_or_create_user("google-2", "a@example.com", "Ann Again")
        assert store.get_or_create_user("google-3", "b@example.com", "Bea")[1] is True


class TestSessions:
    def test_replace_session_sets_first_item_active(self, store):
        items = make_items(3)
        session = store.replace_session(1, CHANNEL_A, items)
        assert session["active_video_id"] == items[0]["video_id"]
        assert session["videos_watched"] == 0
        queue = store.get_session_queue(1)
        assert [q["video_id"] for q in queue] == [i["video_id"] for i in items]
        assert [q["position"] for q in queue] == [0, 1, 2]

    def test_replace_session_keeps_one_per_user(self, store):
        store.replace_session(1, CHANNEL_A, make_items(3))
        store.replace_session(1, CHANNEL_B, make_items(2, prefix="bbb"))
        assert store.count_sessions(1) == 1
        assert store.get_session(1)["channel_id"] == CHANNEL_B
        assert len(store.get_session_queue(1)) == 2

    def test_replace_session_rejects_empty(self, store):
        with pytest.raises(ValueError):
            store.replace_session(1, CHANNEL_A, [])
        assert store.get_session(1) is None

    def test_untrusted_thumbnail_replaced(self, store):
        items = [{"video_id": "aaaaaaaaaaa", "title": "T", "duration": 5,
                  "thumbnail_url": "https://evil.com/t.jpg"}]
        store.replace_session(1, CHANNEL_A, items)
        assert store.get_session_queue(1)[0]["thumbnail_url"] == \
            "https://i.ytimg.com/vi/aaaaaaaaaaa/mqdefault.jpg"

    def test_advance_and_delete(self, store):
        items = make_items(2)
        store.replace_session(1, CHANNEL_A, items)
        updated = store.advance_session(1, items[1]["video_id"], 1)
        assert updated["videos_watched"] == 1
        assert updated["active_video_id"] == items[1]["video_id"]
        assert store.delete_session(1) is True
        assert store.get_session_queue(1) == []
        assert store.delete_session(1) is False

    def test_advance_missing_session(self, store):
        assert store.advance_session(5, "aaaaaaaaaaa", 1) is None

    def test_count_sessions(self, store):
        store.replace_session(1, CHANNEL_A, make_items(1))
        store.replace_session(2, CHANNEL_B, make_items(1))
        assert store.count_sessions() == 2
        assert store.count_sessions(3) == 0


class TestTransaction:
    def test_rollback_on_error(self, store):
        store.replace_session(1, CHANNEL_A, make_items(2))
        with pytest.raises(RuntimeError):
            with store.transaction():
                store.add_view_stat(1, CHANNEL_A, "vid00000000", 60)
                store.delete_session(1)
                raise RuntimeError("boom")
        assert store.get_session(1) is not None
        assert store.get_view_totals(1)["total_views"] == 0

    def test_commit_on_success(self, store):
        with store.transaction():
            store.add_view_stat(1, CHANNEL_A, "vid00000000", 60)
            store.add_view_stat(1, CHANNEL_A, "vid00000001", 30)
        assert store.get_view_totals(1)["total_views"] == 2

    def test_sqlite_error_becomes_storage_failure(self, store):
        # geo_view_stats.view_stat_id is a foreign key; an unknown id violates it.
        with pytest.raises(StorageFailure) as exc_info:
            store.add_geo_view_stat(12345, 1, CHANNEL_A, country="NL")
        assert isinstance(exc_info.value.__cause__, sqlite3.Error)
        assert exc_info.value.retryable is True


class TestViewStats:
    def test_add_and_totals(self, store):
        store.create_channel(CHANNEL_A, "Beast Philanthropy")
        store.add_view_stat(1, CHANNEL_A, "vid00000000", 60)
        store.add_view_stat(1, CHANNEL_A, "vid00000001", 40)
        store.add_view_stat(1, CHANNEL_B, "bbb00000000", 10)
        store.add_view_stat(2, CHANNEL_A, "vid00000000", 99)

        totals = store.get_view_totals(1)
        assert totals == {"total_views": 3, "session_time": 110, "channels_supported": 2}

        by_channel = store.get_views_by_channel(1)
        assert by_channel[0] == {"channel_id": CHANNEL_A,
                                 "channel_name": "Beast Philanthropy", "views": 2}
        assert by_channel[1]["channel_name"] is None

    def test_negative_duration_clamped(self, store):
        stat = store.add_view_stat(1, CHANNEL_A, "vid00000000", -5)
        assert stat["view_duration"] == 0
        assert store.get_view_stat(stat["id"])["video_id"] == "vid00000000"

    def test_empty_totals(self, store):
        assert store.get_view_totals(9) == {
            "total_views": 0, "session_time": 0, "channels_supported": 0,
        }


class TestGeoViewStats:
    def test_counts_by_country_and_device(self, store):
        stat = store.add_view_stat(1, CHANNEL_A, "vid00000000", 60)
        store.add_geo_view_stat(stat["id"], 1, CHANNEL_A, country="NL",
                                device_type="desktop", browser="Chrome")
        store.add_geo_view_stat(stat["id"], 1, CHANNEL_A, country="NL",
                                device_type="desktop", browser="Chrome")
        store.add_geo_view_stat(stat["id"], 1, CHANNEL_A, country="", device_type="mobile")

        assert store.count_geo_views(1) == 3
        assert store.get_geo_counts_by_country(1)[0] == {"country": "NL", "count": 2}
        devices = store.get_geo_counts_by_device(1)
        assert devices[0] == {"device_type": "desktop", "browser": "Chrome", "count": 2}
        assert devices[1] == {"device_type": "mobile", "browser": None, "count": 1}


class TestCalendar:
    def test_crud(self, store):
        store.create_channel(CHANNEL_A, "Beast Philanthropy")
        event = store.create_calendar_event(
            1, "Launch", "2026-11-01T10:00:00", CHANNEL_A,
            description="Premiere", video_ids=["aaaaaaaaaaa", "bbbbbbbbbbb"],
        )
        assert event["status"] == "scheduled"
        assert event["video_ids"] == ["aaaaaaaaaaa", "bbbbbbbbbbb"]

        listed = store.list_calendar_events(1)
        assert len(listed) == 1
        assert listed[0]["channel_name"] == "Beast Philanthropy"
        assert listed[0]["video_count"] == 2
        assert listed[0]["thumbnail_url"].startswith("https://ui-avatars.com/")

        updated = store.update_calendar_event(event["id"], status="completed", video_ids=[])
        assert updated["status"] == "completed"
        assert updated["video_ids"] == []

        assert store.delete_calendar_event(event["id"]) is True
        assert store.get_calendar_event(event["id"]) is None

    def test_list_orders_by_date_and_falls_back_to_channel_id(self, store):
        store.create_calendar_event(1, "Later", "2026-12-01", CHANNEL_B)
        store.create_calendar_event(1, "Sooner", "2026-11-01", CHANNEL_B)
        listed = store.list_calendar_events(1)
        assert [e["title"] for e in listed] == ["Sooner", "Later"]
        assert listed[0]["channel_name"] == CHANNEL_B

    def test_invalid_status_rejected(self, store):
        with pytest.raises(InvalidArgument):
            store.create_calendar_event(1, "X", "2026-11-01", CHANNEL_A, status="done")

    def test_update_unknown_field_rejected(self, store):
        event = store.create_calendar_event(1, "X", "2026-11-01", CHANNEL_A)
        with pytest.raises(InvalidArgument):
            store.update_calendar_event(event["id"], user_id=2)

    def test_update_missing_returns_none(self, store):
        assert store.update_calendar_event(404, title="Nope") is None


class TestRecommendations:
    def test_list_sorted_by_impact_with_channel_details(self, store):
        store.create_channel(CHANNEL_A, "Beast Philanthropy", category="Charity",
                             banner_url="https://example.org/b.png")
        store.create_recommendation(1, CHANNEL_B, 2.5, 1000)
        store.create_recommendation(1, CHANNEL_A, 9.0, 5000, views_actual=10)

        recs = store.list_recommendations(1)
        assert [r["channel_id"] for r in recs] == [CHANNEL_A, CHANNEL_B]
        assert recs[0]["name"] == "Beast Philanthropy"
        assert recs[0]["category"] == "Charity"
        assert recs[0]["views_generated"] == 10
        assert recs[1]["name"] == CHANNEL_B
        assert recs[1]["category"] == "Unknown"

    def test_update_engagement(self, store):
        rec = store.create_recommendation(1, CHANNEL_A, 1.0, 100)
        updated = store.update_recommendation_engagement(rec["id"], 42)
        assert updated["views_actual"] == 42
        assert updated["last_engaged"] is not None
        assert store.update_recommendation_engagement(999, 1) is None
