"""
tests/test_event_service.py — Event CRUD, Status, Co-hosts, Comments, Invites
==============================================================================
"""

from __future__ import annotations

import pytest
from conftest import ALICE, BOB, CAROL, DAVE, NOW, future, past

from tomorrow_people.services import event_service, rsvp_service, section_service


def _event(engine, creator=ALICE, **fields):
    fields.setdefault("title", "Robotics Night")
    fields.setdefault("starts_at", future(days=3))
    return event_service.create_event(engine, creator, **fields)


# ===========================================================================
# Create / validate
# ===========================================================================
class TestCreateEvent:
    def test_published_event_is_scheduled(self, db_engine, people):
        event = _event(db_engine, tags=["Robots", "robots", " AI "])
        assert event["status"] == "scheduled"
        assert event["published"] is True
        assert event["tags"] == ["robots", "ai"]
        assert event["rsvp_count"] == 0
        assert event["is_host"] is True
        assert event["host"]["full_name"] == "Alice Archer"

    def test_unpublished_event_is_draft(self, db_engine, people):
        assert _event(db_engine, published=False)["status"] == "draft"

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"title": "  "}, "Title is required"),
            ({"ends_at": future(days=2)}, "End time must be after the start time"),
            ({"rsvp_deadline": future(days=4)}, "RSVP deadline must be before the event starts"),
            ({"max_capacity": 0}, "Capacity must be at least 1"),
            ({"guest_list_visibility": "friends"}, "Invalid guest list visibility"),
        ],
    )
    def test_validation(self, db_engine, people, overrides, message):
        with pytest.raises(ValueError, match=message):
            _event(db_engine, **overrides)


# ===========================================================================
# Read / update / delete
# ===========================================================================
class TestEventAccess:
    def test_draft_hidden_from_others(self, db_engine, people):
        event = _event(db_engine, published=False)
        assert event_service.get_event(db_engine, event["id"], ALICE) is not None
        assert event_service.get_event(db_engine, event["id"], BOB) is None
        assert event_service.get_event(db_engine, event["id"], None) is None

    def test_private_event_visible_to_invitees(self, db_engine, people):
        event = _event(db_engine, is_private=True)
        assert event_service.get_event(db_engine, event["id"], BOB) is None
        invite = event_service.invite_user(db_engine, event["id"], ALICE, BOB)
        assert invite == {"event_id": event["id"], "user_id": BOB, "invited_by": ALICE, "accepted": False}
        assert event_service.get_event(db_engine, event["id"], BOB)["title"] == "Robotics Night"
        assert event_service.get_event(db_engine, event["id"], CAROL) is None

    def test_cohost_can_edit_but_not_delete(self, db_engine, people):
        event = _event(db_engine)
        event_service.add_cohost(db_engine, event["id"], ALICE, BOB)
        updated = event_service.update_event(db_engine, event["id"], BOB, location="Lab 2")
        assert updated["location"] == "Lab 2"
        assert updated["is_cohost"] is True
        with pytest.raises(PermissionError):
            event_service.delete_event(db_engine, event["id"], BOB)
        assert event_service.delete_event(db_engine, event["id"], ALICE) is True
        assert event_service.get_event(db_engine, event["id"], ALICE) is None

    def test_stranger_cannot_edit(self, db_engine, people):
        event = _event(db_engine)
        with pytest.raises(PermissionError):
            event_service.update_event(db_engine, event["id"], CAROL, title="Mine")

    def test_update_revalidates_merged_values(self, db_engine, people):
        event = _event(db_engine, ends_at=future(days=3, hours=2))
        with pytest.raises(ValueError, match="End time"):
            event_service.update_event(db_engine, event["id"], ALICE, starts_at=future(days=4))

    def test_unpublishing_returns_to_draft(self, db_engine, people):
        event = _event(db_engine)
        updated = event_service.update_event(db_engine, event["id"], ALICE, published=False)
        assert updated["status"] == "draft"
        republished = event_service.update_event(db_engine, event["id"], ALICE, published=True)
        assert republished["status"] == "scheduled"

    def test_raising_capacity_promotes_waitlist(self, db_engine, people):
        event = _event(db_engine, max_capacity=1, waitlist_enabled=True)
        rsvp_service.rsvp(db_engine, event["id"], BOB, "going", now=NOW)
        rsvp_service.rsvp(db_engine, event["id"], CAROL, "going", now=NOW)
        updated = event_service.update_event(db_engine, event["id"], ALICE, max_capacity=2)
        assert updated["rsvp_count"] == 2
        assert updated["waitlist_count"] == 0

    def test_missing_event(self, db_engine, people):
        assert event_service.get_event(db_engine, 999, ALICE) is None
        assert event_service.update_event(db_engine, 999, ALICE, title="x") is None
        assert event_service.delete_event(db_engine, 999, ALICE) is False


# ===========================================================================
# Listing
# ===========================================================================
class TestListEvents:
    def test_upcoming_and_past(self, db_engine, people):
        later = _event(db_engine, title="Later", starts_at=future(days=10))
        sooner = _event(db_engine, title="Sooner", starts_at=future(days=1))
        done = _event(db_engine, title="Done", starts_at=past(days=2))
        older = _event(db_engine, title="Older", starts_at=past(days=9))

        upcoming = event_service.list_events(db_engine, BOB, "upcoming", now=NOW)
        assert [e["id"] for e in upcoming] == [sooner["id"], later["id"]]
        previous = event_service.list_events(db_engine, BOB, "past", now=NOW)
        assert [e["id"] for e in previous] == [done["id"], older["id"]]
        assert len(event_service.list_events(db_engine, BOB, "all", now=NOW)) == 4

    def test_tag_filter(self, db_engine, people):
        tagged = _event(db_engine, tags=["hardware"])
        _event(db_engine, tags=["software"])
        result = event_service.list_events(db_engine, BOB, "Hardware", now=NOW)
        assert [e["id"] for e in result] == [tagged["id"]]

    def test_private_and_draft_visibility(self, db_engine, people):
        private = _event(db_engine, title="Private", is_private=True)
        draft = _event(db_engine, title="Draft", published=False)
        _event(db_engine, title="Open")

        bob_titles = {e["title"] for e in event_service.list_events(db_engine, BOB, "all", now=NOW)}
        assert bob_titles == {"Open"}
        event_service.invite_user(db_engine, private["id"], ALICE, BOB)
        bob_titles = {e["title"] for e in event_service.list_events(db_engine, BOB, "all", now=NOW)}
        assert bob_titles == {"Open", "Private"}
        alice_ids = {e["id"] for e in event_service.list_events(db_engine, ALICE, "all", now=NOW)}
        assert draft["id"] in alice_ids
        anon_titles = {e["title"] for e in event_service.list_events(db_engine, None, "all", now=NOW)}
        assert anon_titles == {"Open"}

    def test_hosted_events_include_cohosted(self, db_engine, people):
        own = _event(db_engine, creator=BOB, title="Bob's")
        cohosted = _event(db_engine, title="Alice's")
        event_service.add_cohost(db_engine, cohosted["id"], ALICE, BOB)
        _event(db_engine, title="Other")
        ids = {e["id"] for e in event_service.list_hosted_events(db_engine, BOB)}
        assert ids == {own["id"], cohosted["id"]}


# ===========================================================================
# Status
# ===========================================================================
class TestStatus:
    def test_manual_cancel(self, db_engine, people):
        event = _event(db_engine)
        cancelled = event_service.set_event_status(db_engine, event["id"], ALICE, "cancelled")
        assert cancelled["status"] == "cancelled"
        assert cancelled["status_updated_by"] == ALICE

    def test_setting_draft_unpublishes(self, db_engine, people):
        event = _event(db_engine)
        assert event_service.set_event_status(db_engine, event["id"], ALICE, "draft")["published"] is False

    @pytest.mark.parametrize("status", ["live", "completed", "active", "pending", "bogus"])
    def test_automatic_statuses_cannot_be_set(self, db_engine, people, status):
        event = _event(db_engine)
        with pytest.raises(ValueError, match="cannot be set manually"):
            event_service.set_event_status(db_engine, event["id"], ALICE, status)

    def test_only_managers(self, db_engine, people):
        event = _event(db_engine)
        with pytest.raises(PermissionError):
            event_service.set_event_status(db_engine, event["id"], BOB, "cancelled")

    def test_refresh_applies_transitions(self, db_engine, people):
        upcoming = _event(db_engine, starts_at=future(days=2))
        running = _event(db_engine, starts_at=past(hours=1), ends_at=future(hours=1))
        finished = _event(db_engine, starts_at=past(days=1), ends_at=past(hours=20))
        cancelled = _event(db_engine, starts_at=past(hours=1))
        event_service.set_event_status(db_engine, cancelled["id"], ALICE, "cancelled")
        draft = _event(db_engine, published=False, starts_at=past(hours=1))

        changed = event_service.refresh_event_statuses(db_engine, now=NOW)
        assert changed == 3

        def status(e):
            return event_service.get_event(db_engine, e["id"], ALICE)["status"]

        assert status(upcoming) == "active"
        assert status(running) == "live"
        assert status(finished) == "completed"
        assert status(cancelled) == "cancelled"
        assert status(draft) == "draft"
        assert event_service.refresh_event_statuses(db_engine, now=NOW) == 0


# ===========================================================================
# Co-hosts
# ===========================================================================
class TestCohosts:
    def test_add_list_remove(self, db_engine, people):
        event = _event(db_engine)
        assert event_service.add_cohost(db_engine, event["id"], ALICE, BOB, "organizer") == {
            "user_id": BOB, "role": "organizer",
        }
        # adding again updates the role
        event_service.add_cohost(db_engine, event["id"], ALICE, BOB, "moderator")
        cohosts = event_service.list_cohosts(db_engine, event["id"], CAROL)
        assert [(c["user_id"], c["role"]) for c in cohosts] == [(BOB, "moderator")]
        assert cohosts[0]["user"]["full_name"] == "Bob Baker"

        assert event_service.remove_cohost(db_engine, event["id"], ALICE, BOB) is True
        assert event_service.remove_cohost(db_engine, event["id"], ALICE, BOB) is False

    def test_cohosts_follow_event_visibility(self, db_engine, people):
        draft = _event(db_engine, published=False)
        event_service.add_cohost(db_engine, draft["id"], ALICE, BOB)
        assert event_service.list_cohosts(db_engine, draft["id"], None) is None
        assert event_service.list_cohosts(db_engine, draft["id"], CAROL) is None
        assert [c["user_id"] for c in event_service.list_cohosts(db_engine, draft["id"], BOB)] == [BOB]
        assert event_service.list_cohosts(db_engine, 999, ALICE) is None

    def test_host_cannot_be_cohost(self, db_engine, people):
        event = _event(db_engine)
        with pytest.raises(ValueError, match="The host cannot be added as a co-host"):
            event_service.add_cohost(db_engine, event["id"], ALICE, ALICE)

    def test_only_creator_manages_cohosts(self, db_engine, people):
        event = _event(db_engine)
        event_service.add_cohost(db_engine, event["id"], ALICE, BOB)
        with pytest.raises(PermissionError):
            event_service.add_cohost(db_engine, event["id"], BOB, CAROL)

    def test_unknown_user_and_role(self, db_engine, people):
        event = _event(db_engine)
        with pytest.raises(ValueError, match="User not found"):
            event_service.add_cohost(db_engine, event["id"], ALICE, "ghost")
        with pytest.raises(ValueError, match="Invalid co-host role"):
            event_service.add_cohost(db_engine, event["id"], ALICE, BOB, "boss")


# ===========================================================================
# Comments
# ===========================================================================
class TestComments:
    def test_only_attendees_discuss(self, db_engine, people):
        event = _event(db_engine)
        with pytest.raises(PermissionError, match="RSVP to join the discussion"):
            event_service.add_comment(db_engine, event["id"], BOB, "Hi")
        rsvp_service.rsvp(db_engine, event["id"], BOB, "maybe", now=NOW)
        comment = event_service.add_comment(db_engine, event["id"], BOB, "  Hi all  ")
        assert comment["content"] == "Hi all"
        assert comment["user"]["full_name"] == "Bob Baker"

        host_view = event_service.list_comments(db_engine, event["id"], ALICE)
        assert [c["content"] for c in host_view] == ["Hi all"]
        with pytest.raises(PermissionError):
            event_service.list_comments(db_engine, event["id"], CAROL)

    def test_not_going_cannot_comment(self, db_engine, people):
        event = _event(db_engine)
        rsvp_service.rsvp(db_engine, event["id"], BOB, "not_going", now=NOW)
        with pytest.raises(PermissionError):
            event_service.add_comment(db_engine, event["id"], BOB, "Hi")

    def test_delete_rules(self, db_engine, people):
        event = _event(db_engine)
        rsvp_service.rsvp(db_engine, event["id"], BOB, "going", now=NOW)
        rsvp_service.rsvp(db_engine, event["id"], CAROL, "going", now=NOW)
        first = event_service.add_comment(db_engine, event["id"], BOB, "one")
        second = event_service.add_comment(db_engine, event["id"], BOB, "two")
        with pytest.raises(PermissionError):
            event_service.delete_comment(db_engine, first["id"], CAROL)
        assert event_service.delete_comment(db_engine, first["id"], BOB) is True
        assert event_service.delete_comment(db_engine, second["id"], ALICE) is True
        assert event_service.delete_comment(db_engine, second["id"], ALICE) is False

    def test_empty_comment(self, db_engine, people):
        event = _event(db_engine)
        with pytest.raises(ValueError, match="Comment cannot be empty"):
            event_service.add_comment(db_engine, event["id"], ALICE, "   ")


# ===========================================================================
# Invitations
# ===========================================================================
class TestInvitations:
    def test_invite_is_idempotent_and_listed(self, db_engine, people):
        event = _event(db_engine, is_private=True)
        event_service.invite_user(db_engine, event["id"], ALICE, BOB)
        event_service.invite_user(db_engine, event["id"], ALICE, BOB)
        event_service.invite_user(db_engine, event["id"], ALICE, DAVE)
        listed = event_service.list_invitations(db_engine, event["id"], ALICE)
        assert [i["user_id"] for i in listed] == [BOB, DAVE]
        assert not any(i["accepted"] for i in listed)

    def test_rsvp_accepts_invitation(self, db_engine, people):
        event = _event(db_engine, is_private=True)
        event_service.invite_user(db_engine, event["id"], ALICE, BOB)
        rsvp_service.rsvp(db_engine, event["id"], BOB, "going", now=NOW)
        listed = event_service.list_invitations(db_engine, event["id"], ALICE)
        assert listed[0]["accepted"] is True

    def test_only_managers_invite(self, db_engine, people):
        event = _event(db_engine, is_private=True)
        with pytest.raises(PermissionError):
            event_service.invite_user(db_engine, event["id"], BOB, CAROL)
        with pytest.raises(PermissionError):
            event_service.list_invitations(db_engine, event["id"], BOB)


# ===========================================================================
# Section invitations
# ===========================================================================
class TestSectionInvites:
    @pytest.fixture
    def guild(self, db_engine, people):
        section = section_service.create_section(db_engine, ALICE, name="Hardware Guild")
        section_service.join_section(db_engine, section["id"], BOB)
        return section

    def test_invite_is_creator_only_and_idempotent(self, db_engine, guild):
        event = _event(db_engine, is_private=True)
        event_service.add_cohost(db_engine, event["id"], ALICE, CAROL)
        with pytest.raises(PermissionError):
            event_service.invite_section(db_engine, event["id"], CAROL, guild["id"])
        first = event_service.invite_section(db_engine, event["id"], ALICE, guild["id"])
        again = event_service.invite_section(db_engine, event["id"], ALICE, guild["id"])
        assert first["section_name"] == "Hardware Guild"
        assert again["invited_at"] == first["invited_at"]
        listed = event_service.list_section_invites(db_engine, event["id"], ALICE)
        assert [s["section_id"] for s in listed] == [guild["id"]]

    def test_hidden_section_cannot_be_invited(self, db_engine, people):
        secret = section_service.create_section(db_engine, CAROL, name="Quiet Room", is_public=False)
        event = _event(db_engine)
        with pytest.raises(ValueError, match="Section not found"):
            event_service.invite_section(db_engine, event["id"], ALICE, secret["id"])
        with pytest.raises(ValueError, match="Section not found"):
            event_service.invite_section(db_engine, event["id"], ALICE, 999)

    def test_section_members_see_private_event(self, db_engine, guild):
        event = _event(db_engine, is_private=True)
        assert event_service.get_event(db_engine, event["id"], BOB) is None
        event_service.invite_section(db_engine, event["id"], ALICE, guild["id"])
        assert event_service.get_event(db_engine, event["id"], BOB) is not None
        assert event_service.get_event(db_engine, event["id"], DAVE) is None
        upcoming = event_service.list_events(db_engine, BOB, "upcoming", now=NOW)
        assert [e["id"] for e in upcoming] == [event["id"]]

        assert event_service.uninvite_section(db_engine, event["id"], ALICE, guild["id"]) is True
        assert event_service.uninvite_section(db_engine, event["id"], ALICE, guild["id"]) is False
        assert event_service.get_event(db_engine, event["id"], BOB) is None

    def test_pending_members_are_not_invited(self, db_engine, people):
        club = section_service.create_section(
            db_engine, ALICE, name="Book Club", requires_approval=True,
        )
        section_service.join_section(db_engine, club["id"], DAVE)
        event = _event(db_engine, is_private=True)
        event_service.invite_section(db_engine, event["id"], ALICE, club["id"])
        assert event_service.get_event(db_engine, event["id"], DAVE) is None
        section_service.approve_member(db_engine, club["id"], ALICE, DAVE)
        assert event_service.get_event(db_engine, event["id"], DAVE) is not None

    def test_invited_members_listed_once(self, db_engine, guild):
        other = section_service.create_section(db_engine, ALICE, name="Art Corner")
        section_service.join_section(db_engine, other["id"], BOB)
        section_service.join_section(db_engine, other["id"], CAROL)
        event = _event(db_engine)
        event_service.invite_section(db_engine, event["id"], ALICE, guild["id"])
        event_service.invite_section(db_engine, event["id"], ALICE, other["id"])
        members = event_service.list_invited_members(db_engine, event["id"], ALICE)
        assert [m["full_name"] for m in members] == ["Alice Archer", "Bob Baker", "Carol Chen"]
        with pytest.raises(PermissionError):
            event_service.list_invited_members(db_engine, event["id"], BOB)

    def test_section_page_events(self, db_engine, guild):
        soon = _event(db_engine, title="Soon", starts_at=future(days=1))
        later = _event(db_engine, title="Later", starts_at=future(days=9))
        gone = _event(db_engine, title="Gone", starts_at=past(days=2))
        draft = _event(db_engine, title="Draft", published=False)
        for event in (later, soon, gone, draft):
            event_service.invite_section(db_engine, event["id"], ALICE, guild["id"])

        upcoming = event_service.list_section_events(db_engine, guild["id"], BOB, now=NOW)
        assert [e["id"] for e in upcoming] == [soon["id"], later["id"]]
        previous = event_service.list_section_events(db_engine, guild["id"], BOB, "past", now=NOW)
        assert [e["id"] for e in previous] == [gone["id"]]
        with pytest.raises(ValueError):
            event_service.list_section_events(db_engine, guild["id"], BOB, "all")
        assert event_service.list_section_events(db_engine, 999, BOB) is None


# ===========================================================================
# Event groups
# ===========================================================================
class TestGroupName:
    def test_group_name_is_trimmed_and_optional(self, db_engine, people):
        event = _event(db_engine, group_name="  Robot Club ")
        assert event["group_name"] == "Robot Club"
        cleared = event_service.update_event(db_engine, event["id"], ALICE, group_name="   ")
        assert cleared["group_name"] is None

    def test_group_name_length(self, db_engine, people):
        with pytest.raises(ValueError, match="at most 100 characters"):
            _event(db_engine, group_name="x" * 101)
