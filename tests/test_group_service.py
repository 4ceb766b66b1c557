"""
tests/test_group_service.py — Event Groups & Subscriptions
===========================================================
"""

from __future__ import annotations

import pytest
from conftest import ALICE, BOB, CAROL, NOW, future, past

from tomorrow_people.services import event_service, group_service


def _event(engine, creator=ALICE, group="Robot Club", **fields):
    fields.setdefault("title", "Robotics Night")
    fields.setdefault("starts_at", future(days=3))
    return event_service.create_event(engine, creator, group_name=group, **fields)


# ===========================================================================
# Groups
# ===========================================================================
class TestGroups:
    def test_list_groups_counts_public_events(self, db_engine, people):
        _event(db_engine, starts_at=past(days=5))
        _event(db_engine)
        _event(db_engine, is_private=True)
        _event(db_engine, published=False)
        _event(db_engine, creator=BOB, group="Night Walks", starts_at=future(days=10))
        _event(db_engine, group=None, title="Loose event")

        groups = group_service.list_groups(db_engine)
        assert [(g["creator_id"], g["group_name"], g["event_count"]) for g in groups] == [
            (BOB, "Night Walks", 1),
            (ALICE, "Robot Club", 2),
        ]
        assert groups[1]["creator"]["full_name"] == "Alice Archer"

    def test_search_by_name_or_host(self, db_engine, people):
        _event(db_engine)
        _event(db_engine, creator=BOB, group="Night Walks")
        assert [g["group_name"] for g in group_service.list_groups(db_engine, "robot")] == [
            "Robot Club"
        ]
        assert [g["group_name"] for g in group_service.list_groups(db_engine, "baker")] == [
            "Night Walks"
        ]

    def test_host_groups(self, db_engine, people):
        _event(db_engine)
        _event(db_engine, group="Art Walk")
        _event(db_engine, group="Art Walk")
        assert group_service.list_host_groups(db_engine, ALICE) == [
            {"group_name": "Art Walk", "event_count": 2},
            {"group_name": "Robot Club", "event_count": 1},
        ]
        assert group_service.list_host_groups(db_engine, BOB) == []

    def test_group_page_splits_upcoming_and_past(self, db_engine, people):
        old = _event(db_engine, title="Old", starts_at=past(days=9))
        recent = _event(db_engine, title="Recent", starts_at=past(days=1))
        soon = _event(db_engine, title="Soon", starts_at=future(days=1))
        hidden = _event(db_engine, title="Members only", is_private=True)

        page = group_service.get_group(db_engine, ALICE, "Robot Club", BOB, now=NOW)
        assert [e["id"] for e in page["upcoming"]] == [soon["id"]]
        assert [e["id"] for e in page["past"]] == [recent["id"], old["id"]]
        assert page["is_subscribed"] is False

        own = group_service.get_group(db_engine, ALICE, "Robot Club", ALICE, now=NOW)
        assert hidden["id"] in [e["id"] for e in own["upcoming"]]

    def test_unknown_host(self, db_engine, people):
        assert group_service.get_group(db_engine, "nobody", "Robot Club") is None


# ===========================================================================
# Subscriptions
# ===========================================================================
class TestSubscriptions:
    def test_subscribe_is_idempotent(self, db_engine, people):
        _event(db_engine)
        group_service.subscribe(db_engine, BOB, ALICE, "Robot Club")
        result = group_service.subscribe(db_engine, BOB, ALICE, " Robot Club ")
        assert result == {
            "creator_id": ALICE,
            "group_name": "Robot Club",
            "is_subscribed": True,
            "subscriber_count": 1,
        }
        page = group_service.get_group(db_engine, ALICE, "Robot Club", BOB, now=NOW)
        assert page["is_subscribed"] is True
        assert page["subscriber_count"] == 1
        assert group_service.list_groups(db_engine)[0]["subscriber_count"] == 1

    def test_unsubscribe(self, db_engine, people):
        group_service.subscribe(db_engine, BOB, ALICE, "Robot Club")
        assert group_service.unsubscribe(db_engine, BOB, ALICE, "Robot Club") is True
        assert group_service.unsubscribe(db_engine, BOB, ALICE, "Robot Club") is False
        assert group_service.list_subscriptions(db_engine, BOB) == []

    @pytest.mark.parametrize(
        "creator, name, message",
        [(ALICE, "  ", "Group name is required"), ("nobody", "Robot Club", "Host not found")],
    )
    def test_subscribe_validation(self, db_engine, people, creator, name, message):
        with pytest.raises(ValueError, match=message):
            group_service.subscribe(db_engine, BOB, creator, name)

    def test_my_subscriptions(self, db_engine, people):
        group_service.subscribe(db_engine, CAROL, ALICE, "Robot Club")
        rows = group_service.list_subscriptions(db_engine, CAROL)
        assert [(r["creator_id"], r["group_name"]) for r in rows] == [(ALICE, "Robot Club")]
        assert rows[0]["creator"]["full_name"] == "Alice Archer"

    def test_only_host_sees_subscribers(self, db_engine, people):
        group_service.subscribe(db_engine, BOB, ALICE, "Robot Club")
        group_service.subscribe(db_engine, CAROL, ALICE, "Robot Club")
        subscribers = group_service.list_subscribers(db_engine, ALICE, "Robot Club", ALICE)
        assert [p["full_name"] for p in subscribers] == ["Bob Baker", "Carol Chen"]
        with pytest.raises(PermissionError):
            group_service.list_subscribers(db_engine, ALICE, "Robot Club", BOB)
