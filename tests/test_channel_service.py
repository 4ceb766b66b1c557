"""
tests/test_channel_service.py — Channels, Membership, DMs & Moderation
=======================================================================
"""

from __future__ import annotations

import pytest
from conftest import ALICE, BOB, CAROL, DAVE, future

from tomorrow_people.services import channel_service, event_service, message_service


def _channel(engine, creator=ALICE, **fields):
    fields.setdefault("name", "general")
    return channel_service.create_channel(engine, creator, **fields)


@pytest.fixture
def crew(db_engine, people):
    """A private channel: Alice owns, Bob admins, Carol moderates, Dave is a member."""
    channel = _channel(db_engine, name="crew", type="private")
    channel_service.add_members(db_engine, channel["id"], ALICE, [BOB, CAROL, DAVE])
    channel_service.set_member_role(db_engine, channel["id"], ALICE, BOB, "admin")
    channel_service.set_member_role(db_engine, channel["id"], ALICE, CAROL, "moderator")
    return channel["id"]


# ===========================================================================
# Creating and listing
# ===========================================================================
class TestChannels:
    def test_creator_owns(self, db_engine, people):
        channel = _channel(db_engine, description="Say hi")
        assert channel["my_role"] == "owner"
        assert channel["is_member"] is True
        assert channel["member_count"] == 1
        assert channel["type"] == "public"

    @pytest.mark.parametrize(
        "fields, message",
        [
            ({"name": "  "}, "Channel name is required"),
            ({"type": "voice"}, "Invalid channel type"),
            ({"type": "event"}, "Event channels need an event"),
            ({"type": "section"}, "Section channels need a section"),
            ({"event_id": 1, "section_id": 1}, "at most"),
            ({"section_id": 1, "project_id": 1}, "at most"),
            ({"type": "project"}, "Project channels need a project"),
            ({"type": "project", "project_id": 999}, "Project not found"),
            ({"category_id": 999}, "Category not found"),
            ({"type": "event", "event_id": 999}, "Event not found"),
        ],
    )
    def test_create_validation(self, db_engine, people, fields, message):
        with pytest.raises(ValueError, match=message):
            _channel(db_engine, **fields)

    def test_event_channel_needs_host(self, db_engine, people):
        event = event_service.create_event(db_engine, ALICE, title="Launch", starts_at=future())
        with pytest.raises(PermissionError):
            _channel(db_engine, creator=BOB, type="event", event_id=event["id"])
        channel = _channel(db_engine, name="launch-chat", type="event", event_id=event["id"])
        assert channel["event_id"] == event["id"]

    def test_private_channels_hidden_from_outsiders(self, db_engine, people):
        private = _channel(db_engine, name="secret", type="private")
        assert channel_service.get_channel(db_engine, private["id"], BOB) is None
        assert channel_service.get_channel(db_engine, private["id"], ALICE)["name"] == "secret"

    def test_list_channels(self, db_engine, people):
        public = _channel(db_engine, name="general")
        _channel(db_engine, name="secret", type="private")
        archived = _channel(db_engine, name="old")
        channel_service.archive_channel(db_engine, archived["id"], ALICE)

        assert [c["name"] for c in channel_service.list_channels(db_engine, BOB)] == ["general"]
        alice_names = {c["name"] for c in channel_service.list_channels(db_engine, ALICE)}
        assert alice_names == {"general", "secret"}
        with_archived = {c["name"] for c in channel_service.list_channels(db_engine, ALICE, include_archived=True)}
        assert with_archived == {"general", "secret", "old"}
        only_private = channel_service.list_channels(db_engine, ALICE, type="private")
        assert [c["name"] for c in only_private] == ["secret"]
        assert public["id"] != archived["id"]

    def test_update_and_archive_need_admin(self, db_engine, crew):
        with pytest.raises(PermissionError):
            channel_service.update_channel(db_engine, crew, CAROL, name="mods rule")
        assert channel_service.update_channel(db_engine, crew, BOB, name="crew-2")["name"] == "crew-2"
        with pytest.raises(ValueError, match="name is required"):
            channel_service.update_channel(db_engine, crew, BOB, name=" ")
        with pytest.raises(PermissionError):
            channel_service.archive_channel(db_engine, crew, DAVE)
        assert channel_service.archive_channel(db_engine, crew, BOB)["is_archived"] is True
        assert channel_service.archive_channel(db_engine, crew, BOB, archived=False)["is_archived"] is False

    def test_missing_channel(self, db_engine, people):
        assert channel_service.get_channel(db_engine, 404, ALICE) is None
        assert channel_service.update_channel(db_engine, 404, ALICE, name="x") is None
        assert channel_service.join_channel(db_engine, 404, ALICE) is None


# ===========================================================================
# Membership
# ===========================================================================
class TestMembership:
    def test_join_and_leave_public(self, db_engine, people):
        channel = _channel(db_engine)
        joined = channel_service.join_channel(db_engine, channel["id"], BOB)
        assert (joined["is_member"], joined["my_role"], joined["member_count"]) == (True, "member", 2)
        # joining again keeps the role
        assert channel_service.join_channel(db_engine, channel["id"], BOB)["member_count"] == 2
        assert channel_service.leave_channel(db_engine, channel["id"], BOB) is True
        assert channel_service.leave_channel(db_engine, channel["id"], BOB) is False

    def test_join_refusals(self, db_engine, crew, people):
        private = _channel(db_engine, name="secret", type="private")
        with pytest.raises(PermissionError, match="invite-only"):
            channel_service.join_channel(db_engine, private["id"], BOB)

        archived = _channel(db_engine, name="old")
        channel_service.archive_channel(db_engine, archived["id"], ALICE)
        with pytest.raises(ValueError, match="archived"):
            channel_service.join_channel(db_engine, archived["id"], BOB)

        channel_service.ban_member(db_engine, crew, ALICE, DAVE)
        with pytest.raises(PermissionError, match="banned"):
            channel_service.join_channel(db_engine, crew, DAVE)

    def test_owner_must_transfer_before_leaving(self, db_engine, crew):
        with pytest.raises(ValueError, match="Transfer ownership"):
            channel_service.leave_channel(db_engine, crew, ALICE)

    def test_lone_owner_may_leave(self, db_engine, people):
        channel = _channel(db_engine)
        assert channel_service.leave_channel(db_engine, channel["id"], ALICE) is True

    def test_add_members(self, db_engine, crew, people):
        channel = _channel(db_engine, name="secret", type="private")
        assert channel_service.add_members(db_engine, channel["id"], ALICE, [BOB, BOB]) == [BOB]
        assert channel_service.add_members(db_engine, channel["id"], ALICE, [BOB]) == []
        with pytest.raises(ValueError, match="User ghost not found"):
            channel_service.add_members(db_engine, channel["id"], ALICE, ["ghost"])
        with pytest.raises(PermissionError):
            channel_service.add_members(db_engine, crew, DAVE, [ALICE])

    def test_members_sorted_by_rank(self, db_engine, crew):
        members = channel_service.list_members(db_engine, crew, DAVE)
        assert [m["role"] for m in members] == ["owner", "admin", "moderator", "member"]
        assert members[0]["user"]["full_name"] == "Alice Archer"

    def test_notifications(self, db_engine, crew):
        assert channel_service.set_notifications(db_engine, crew, DAVE, False) is True
        dave = [m for m in channel_service.list_members(db_engine, crew, DAVE) if m["user_id"] == DAVE][0]
        assert dave["notifications_enabled"] is False
        assert channel_service.set_notifications(db_engine, 404, DAVE, False) is False


# ===========================================================================
# Direct messages
# ===========================================================================
class TestDirectMessages:
    def test_dm_created_then_reused(self, db_engine, people):
        dm = channel_service.find_or_create_dm(db_engine, ALICE, BOB)
        assert dm["name"] == "DM: Bob Baker"
        assert dm["type"] == "private"
        assert dm["member_count"] == 2
        again = channel_service.find_or_create_dm(db_engine, BOB, ALICE)
        assert again["id"] == dm["id"]

    def test_dm_members_are_peers(self, db_engine, people):
        dm = channel_service.find_or_create_dm(db_engine, ALICE, CAROL)
        roles = {m["user_id"]: m["role"] for m in channel_service.list_members(db_engine, dm["id"], CAROL)}
        assert roles == {ALICE: "member", CAROL: "member"}
        assert channel_service.get_channel(db_engine, dm["id"], BOB) is None

    def test_dm_rules(self, db_engine, people):
        with pytest.raises(ValueError, match="cannot message yourself"):
            channel_service.find_or_create_dm(db_engine, ALICE, ALICE)
        with pytest.raises(ValueError, match="User not found"):
            channel_service.find_or_create_dm(db_engine, ALICE, "ghost")


# ===========================================================================
# Moderation
# ===========================================================================
class TestModeration:
    def test_mute_timed_and_unmute(self, db_engine, crew):
        muted = channel_service.mute_member(db_engine, crew, CAROL, DAVE, 30)
        assert muted["is_muted"] is True
        assert muted["muted_until"] is not None
        assert muted["user"]["full_name"] == "Dave Diaz"
        unmuted = channel_service.unmute_member(db_engine, crew, CAROL, DAVE)
        assert (unmuted["is_muted"], unmuted["muted_until"]) == (False, None)

    def test_mute_indefinitely(self, db_engine, crew):
        muted = channel_service.mute_member(db_engine, crew, BOB, DAVE)
        assert muted["is_muted"] is True
        assert muted["muted_until"] is None

    def test_mute_duration_must_be_positive(self, db_engine, crew):
        with pytest.raises(ValueError, match="must be positive"):
            channel_service.mute_member(db_engine, crew, BOB, DAVE, 0)

    def test_rank_rules(self, db_engine, crew):
        with pytest.raises(PermissionError, match="Only channel moderators"):
            channel_service.ban_member(db_engine, crew, DAVE, CAROL)
        with pytest.raises(PermissionError, match="equal or higher rank"):
            channel_service.ban_member(db_engine, crew, CAROL, BOB)
        with pytest.raises(ValueError, match="moderate yourself"):
            channel_service.mute_member(db_engine, crew, BOB, BOB)
        assert channel_service.ban_member(db_engine, crew, BOB, CAROL)["is_banned"] is True

    def test_missing_target(self, db_engine, crew, people):
        assert channel_service.ban_member(db_engine, crew, ALICE, "ghost") is None

    def test_ban_hides_private_channel(self, db_engine, crew):
        channel_service.ban_member(db_engine, crew, ALICE, DAVE)
        assert channel_service.get_channel(db_engine, crew, DAVE) is None
        assert crew not in [c["id"] for c in channel_service.list_channels(db_engine, DAVE)]
        channel_service.unban_member(db_engine, crew, ALICE, DAVE)
        assert channel_service.get_channel(db_engine, crew, DAVE)["is_member"] is True

    def test_ban_survives_leave_and_rejoin(self, db_engine, people):
        channel = _channel(db_engine)
        channel_service.join_channel(db_engine, channel["id"], BOB)
        channel_service.ban_member(db_engine, channel["id"], ALICE, BOB)
        assert channel_service.leave_channel(db_engine, channel["id"], BOB) is False
        with pytest.raises(PermissionError, match="banned"):
            channel_service.join_channel(db_engine, channel["id"], BOB)
        assert message_service.send_message(db_engine, channel["id"], BOB, "back again") is None

    def test_set_member_role(self, db_engine, crew):
        with pytest.raises(ValueError, match="Invalid role"):
            channel_service.set_member_role(db_engine, crew, ALICE, DAVE, "king")
        with pytest.raises(PermissionError, match="owners and admins"):
            channel_service.set_member_role(db_engine, crew, CAROL, DAVE, "moderator")
        with pytest.raises(PermissionError, match="equal to or above"):
            channel_service.set_member_role(db_engine, crew, BOB, DAVE, "admin")
        assert channel_service.set_member_role(db_engine, crew, BOB, DAVE, "moderator")["role"] == "moderator"

    def test_transfer_ownership(self, db_engine, crew):
        with pytest.raises(PermissionError):
            channel_service.transfer_ownership(db_engine, crew, BOB, CAROL)
        with pytest.raises(ValueError, match="must be a member"):
            channel_service.transfer_ownership(db_engine, crew, ALICE, "ghost")
        assert channel_service.transfer_ownership(db_engine, crew, ALICE, DAVE) is True
        roles = {m["user_id"]: m["role"] for m in channel_service.list_members(db_engine, crew, ALICE)}
        assert roles[ALICE] == "admin"
        assert roles[DAVE] == "owner"
        assert channel_service.leave_channel(db_engine, crew, ALICE) is True
