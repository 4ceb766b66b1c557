"""
tests/test_project_service.py — Projects, Team, Updates & Discussion
=====================================================================
"""

from __future__ import annotations

import asyncio

import pytest
from conftest import ALICE, BOB, CAROL, DAVE, future

from tomorrow_people.services import channel_service, project_service, upload_service

_PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


def _project(engine, creator=ALICE, **fields):
    fields.setdefault("title", "Community garden")
    fields.setdefault("description", "Raised beds behind the library.")
    return project_service.create_project(engine, creator, **fields)


def _fundraiser(engine, goal=200.0, **fields):
    return _project(engine, fundraising_enabled=True, fundraising_goal=goal, **fields)


def _member_ids(engine, channel_id, viewer=ALICE):
    return {m["user_id"] for m in channel_service.list_members(engine, channel_id, viewer)}


# ===========================================================================
# CRUD
# ===========================================================================
class TestProjectCrud:
    def test_create_enrols_creator(self, db_engine, people):
        project = _project(db_engine, category=" Green ", tags=["Soil", "soil", "food"])
        assert project["status"] == "planning"
        assert project["category"] == "green"
        assert project["tags"] == ["soil", "food"]
        assert project["my_role"] == "creator"
        assert project["contributor_count"] == 1
        assert project["creator"]["full_name"] == "Alice Archer"
        assert project["funding_progress"] is None
        assert project["channel_id"] is None

    @pytest.mark.parametrize(
        "fields, message",
        [
            ({"title": "  "}, "Title is required"),
            ({"description": ""}, "Description is required"),
            ({"status": "abandoned"}, "Invalid project status"),
            ({"fundraising_goal": 0}, "must be positive"),
            ({"fundraising_enabled": True}, "Set a fundraising goal"),
            (
                {"start_date": future(10), "target_completion_date": future(2)},
                "Target completion date",
            ),
        ],
    )
    def test_create_validation(self, db_engine, people, fields, message):
        with pytest.raises(ValueError, match=message):
            _project(db_engine, **fields)

    def test_completed_status_stamps_completion_date(self, db_engine, people):
        project = _project(db_engine, status="active")
        assert project["actual_completion_date"] is None
        done = project_service.update_project(db_engine, project["id"], ALICE, status="completed")
        assert done["actual_completion_date"] is not None
        reopened = project_service.update_project(db_engine, project["id"], ALICE, status="active")
        assert reopened["actual_completion_date"] is None

    def test_only_admins_edit(self, db_engine, people):
        project = _project(db_engine)
        with pytest.raises(PermissionError):
            project_service.update_project(db_engine, project["id"], BOB, title="Mine")
        project_service.set_contributor(db_engine, project["id"], ALICE, BOB, "admin")
        updated = project_service.update_project(db_engine, project["id"], BOB, summary="Beds!")
        assert updated["summary"] == "Beds!"
        with pytest.raises(ValueError, match="Title is required"):
            project_service.update_project(db_engine, project["id"], BOB, title=" ")

    def test_only_creator_deletes(self, db_engine, people):
        project = _project(db_engine)
        project_service.set_contributor(db_engine, project["id"], ALICE, BOB, "admin")
        with pytest.raises(PermissionError):
            project_service.delete_project(db_engine, project["id"], BOB)
        assert project_service.delete_project(db_engine, project["id"], ALICE) is True
        assert project_service.get_project(db_engine, project["id"], ALICE) is None
        assert project_service.delete_project(db_engine, project["id"], ALICE) is False

    def test_views_counted_for_visitors_only(self, db_engine, people):
        project = _project(db_engine)
        project_service.get_project(db_engine, project["id"], ALICE, count_view=True)
        project_service.get_project(db_engine, project["id"], BOB, count_view=True)
        project_service.get_project(db_engine, project["id"], None, count_view=True)
        assert project_service.get_project(db_engine, project["id"])["views_count"] == 2


# ===========================================================================
# Visibility
# ===========================================================================
class TestVisibility:
    def test_private_project_hidden_from_outsiders(self, db_engine, people):
        project = _project(db_engine, is_public=False)
        assert project_service.get_project(db_engine, project["id"], BOB) is None
        assert project_service.get_project(db_engine, project["id"]) is None
        assert project_service.list_projects(db_engine, BOB) == []
        assert project_service.join_project(db_engine, project["id"], BOB) is None

        project_service.set_contributor(db_engine, project["id"], ALICE, BOB, "contributor")
        assert project_service.get_project(db_engine, project["id"], BOB)["my_role"] == "contributor"
        assert [p["id"] for p in project_service.list_projects(db_engine, BOB)] == [project["id"]]

    def test_profile_lists_visible_projects(self, db_engine, people):
        shown = _project(db_engine, title="Open")
        hidden = _project(db_engine, title="Quiet", is_public=False)
        assert [p["id"] for p in project_service.list_user_projects(db_engine, ALICE, BOB)] == [
            shown["id"]
        ]
        mine = project_service.list_user_projects(db_engine, ALICE, ALICE)
        assert {p["id"] for p in mine} == {shown["id"], hidden["id"]}

    def test_categories_from_public_projects(self, db_engine, people):
        _project(db_engine, category="Food")
        _project(db_engine, category="art")
        _project(db_engine, category="secret", is_public=False)
        assert project_service.list_categories(db_engine) == ["art", "food"]


# ===========================================================================
# Listing
# ===========================================================================
class TestListing:
    def test_filters(self, db_engine, people):
        active = _project(db_engine, title="Active", status="active")
        done = _project(db_engine, title="Done", status="completed")
        raising = _fundraiser(db_engine, title="Raising")

        def ids(**kwargs):
            return [p["id"] for p in project_service.list_projects(db_engine, BOB, **kwargs)]

        assert ids() == [raising["id"], done["id"], active["id"]]
        assert ids(filter="active") == [active["id"]]
        assert ids(filter="completed") == [done["id"]]
        assert ids(filter="fundraising") == [raising["id"]]
        assert ids(filter="featured") == []

    def test_fully_funded_leaves_fundraising_filter(self, db_engine, people):
        raising = _fundraiser(db_engine, goal=50.0)
        project_service.join_project(db_engine, raising["id"], BOB, role="supporter",
                                     contribution_amount=50.0)
        assert project_service.list_projects(db_engine, filter="fundraising") == []

    def test_search_matches_title_and_tags(self, db_engine, people):
        garden = _project(db_engine, tags=["compost"])
        _project(db_engine, title="Repair cafe", description="Fix things together.")
        assert [p["id"] for p in project_service.list_projects(db_engine, search="COMPOST")] == [
            garden["id"]
        ]
        assert len(project_service.list_projects(db_engine, search="repair")) == 1

    def test_sorts(self, db_engine, people):
        first = _fundraiser(db_engine, title="First", goal=100.0)
        second = _fundraiser(db_engine, title="Second", goal=100.0)
        project_service.toggle_reaction(db_engine, first["id"], BOB, "like")
        project_service.join_project(db_engine, second["id"], CAROL, role="supporter",
                                     contribution_amount=40.0)

        popular = project_service.list_projects(db_engine, sort="popular")
        assert [p["id"] for p in popular] == [first["id"], second["id"]]
        funded = project_service.list_projects(db_engine, sort="funded")
        assert [p["id"] for p in funded] == [second["id"], first["id"]]
        assert funded[0]["funding_progress"] == 40.0

    @pytest.mark.parametrize("kwargs", [{"filter": "trending"}, {"sort": "oldest"}])
    def test_unknown_filter_or_sort(self, db_engine, people, kwargs):
        with pytest.raises(ValueError, match="Unknown"):
            project_service.list_projects(db_engine, **kwargs)


# ===========================================================================
# Team & pledges
# ===========================================================================
class TestTeam:
    def test_join_and_leave(self, db_engine, people):
        project = _project(db_engine)
        row = project_service.join_project(db_engine, project["id"], BOB,
                                           contribution_type="labour")
        assert row["role"] == "contributor"
        assert row["contribution_type"] == "labour"
        assert row["user"]["full_name"] == "Bob Baker"
        assert project_service.leave_project(db_engine, project["id"], BOB) is True
        assert project_service.leave_project(db_engine, project["id"], BOB) is False

    def test_join_role_rules(self, db_engine, people):
        project = _project(db_engine)
        with pytest.raises(ValueError, match="contributor or a supporter"):
            project_service.join_project(db_engine, project["id"], BOB, role="admin")
        with pytest.raises(ValueError, match="not raising funds"):
            project_service.join_project(db_engine, project["id"], BOB, contribution_amount=5.0)
        with pytest.raises(ValueError, match="negative"):
            project_service.join_project(db_engine, project["id"], BOB, contribution_amount=-1.0)

    def test_pledge_replaces_previous_amount(self, db_engine, people):
        project = _fundraiser(db_engine)
        project_service.join_project(db_engine, project["id"], BOB, role="supporter",
                                     contribution_amount=50.0)
        project_service.join_project(db_engine, project["id"], CAROL, role="supporter",
                                     contribution_amount=30.0)
        assert project_service.get_project(db_engine, project["id"])["funds_raised"] == 80.0

        project_service.join_project(db_engine, project["id"], BOB, role="supporter",
                                     contribution_amount=20.0)
        current = project_service.get_project(db_engine, project["id"])
        assert current["funds_raised"] == 50.0
        assert current["funding_progress"] == 25.0

        project_service.leave_project(db_engine, project["id"], CAROL)
        assert project_service.get_project(db_engine, project["id"])["funds_raised"] == 20.0

    def test_rejoining_keeps_admin_role(self, db_engine, people):
        project = _project(db_engine)
        project_service.set_contributor(db_engine, project["id"], ALICE, BOB, "admin")
        row = project_service.join_project(db_engine, project["id"], BOB, role="supporter")
        assert row["role"] == "admin"

    def test_creator_is_fixed(self, db_engine, people):
        project = _project(db_engine)
        project_service.set_contributor(db_engine, project["id"], ALICE, BOB, "admin")
        with pytest.raises(ValueError, match="cannot leave"):
            project_service.leave_project(db_engine, project["id"], ALICE)
        with pytest.raises(ValueError, match="cannot be removed"):
            project_service.remove_contributor(db_engine, project["id"], BOB, ALICE)
        with pytest.raises(ValueError, match="cannot be changed"):
            project_service.set_contributor(db_engine, project["id"], BOB, ALICE, "supporter")
        with pytest.raises(ValueError, match="Invalid contributor role"):
            project_service.set_contributor(db_engine, project["id"], ALICE, CAROL, "creator")

    def test_set_and_remove_need_admin(self, db_engine, people):
        project = _project(db_engine)
        project_service.join_project(db_engine, project["id"], BOB)
        with pytest.raises(PermissionError):
            project_service.set_contributor(db_engine, project["id"], BOB, CAROL, "contributor")
        with pytest.raises(PermissionError):
            project_service.remove_contributor(db_engine, project["id"], BOB, ALICE)
        with pytest.raises(ValueError, match="User not found"):
            project_service.set_contributor(db_engine, project["id"], ALICE, "nobody", "contributor")
        assert project_service.remove_contributor(db_engine, project["id"], ALICE, BOB) is True
        assert project_service.remove_contributor(db_engine, project["id"], ALICE, BOB) is False

    def test_contributors_sorted_by_role(self, db_engine, people):
        project = _project(db_engine)
        project_service.join_project(db_engine, project["id"], DAVE, role="supporter")
        project_service.join_project(db_engine, project["id"], CAROL)
        project_service.set_contributor(db_engine, project["id"], ALICE, BOB, "admin")
        rows = project_service.list_contributors(db_engine, project["id"], None)
        assert [(r["user_id"], r["role"]) for r in rows] == [
            (ALICE, "creator"), (BOB, "admin"), (CAROL, "contributor"), (DAVE, "supporter"),
        ]


# ===========================================================================
# Project channels follow the team
# ===========================================================================
class TestProjectChannels:
    def test_channel_seeded_with_team(self, db_engine, people):
        project = _project(db_engine)
        project_service.join_project(db_engine, project["id"], BOB)
        project_service.join_project(db_engine, project["id"], CAROL, role="supporter")
        channel = channel_service.create_channel(
            db_engine, ALICE, name="garden-team", type="project", project_id=project["id"],
        )
        assert _member_ids(db_engine, channel["id"]) == {ALICE, BOB}
        assert project_service.get_project(db_engine, project["id"])["channel_id"] == channel["id"]

    def test_team_changes_sync_membership(self, db_engine, people):
        project = _project(db_engine)
        channel = channel_service.create_channel(
            db_engine, ALICE, name="garden-team", type="project", project_id=project["id"],
        )
        project_service.join_project(db_engine, project["id"], BOB)
        project_service.join_project(db_engine, project["id"], DAVE, role="supporter")
        project_service.set_contributor(db_engine, project["id"], ALICE, CAROL, "admin")
        members = {
            m["user_id"]: m["role"]
            for m in channel_service.list_members(db_engine, channel["id"], ALICE)
        }
        assert members == {ALICE: "owner", BOB: "member", CAROL: "admin"}

        project_service.leave_project(db_engine, project["id"], BOB)
        project_service.set_contributor(db_engine, project["id"], ALICE, CAROL, "supporter")
        assert _member_ids(db_engine, channel["id"]) == {ALICE}

    def test_only_admins_create_project_channels(self, db_engine, people):
        project = _project(db_engine)
        project_service.join_project(db_engine, project["id"], BOB)
        with pytest.raises(PermissionError):
            channel_service.create_channel(
                db_engine, BOB, name="side-chat", type="project", project_id=project["id"],
            )

    def test_delete_project_drops_channels(self, db_engine, people):
        project = _project(db_engine)
        channel = channel_service.create_channel(
            db_engine, ALICE, name="garden-team", type="project", project_id=project["id"],
        )
        project_service.delete_project(db_engine, project["id"], ALICE)
        assert channel_service.get_channel(db_engine, channel["id"], ALICE) is None


# ===========================================================================
# Updates
# ===========================================================================
class TestUpdates:
    def test_team_posts_updates(self, db_engine, people):
        project = _project(db_engine)
        project_service.join_project(db_engine, project["id"], BOB)
        project_service.join_project(db_engine, project["id"], CAROL, role="supporter")
        first = project_service.post_update(
            db_engine, project["id"], ALICE, title="Beds built", content="All six.",
            update_type="milestone",
        )
        second = project_service.post_update(
            db_engine, project["id"], BOB, title="Seeds", content="Ordered tomatoes.",
        )
        with pytest.raises(PermissionError, match="project team"):
            project_service.post_update(db_engine, project["id"], CAROL, title="Hi", content="Hi")
        with pytest.raises(PermissionError):
            project_service.post_update(db_engine, project["id"], DAVE, title="Hi", content="Hi")

        updates = project_service.list_updates(db_engine, project["id"], None)
        assert [u["id"] for u in updates] == [second["id"], first["id"]]
        assert updates[1]["author"]["full_name"] == "Alice Archer"

    @pytest.mark.parametrize(
        "kwargs, message",
        [
            ({"title": " ", "content": "x"}, "title and content"),
            ({"title": "x", "content": "x", "update_type": "gossip"}, "Invalid update type"),
        ],
    )
    def test_update_validation(self, db_engine, people, kwargs, message):
        project = _project(db_engine)
        with pytest.raises(ValueError, match=message):
            project_service.post_update(db_engine, project["id"], ALICE, **kwargs)

    def test_author_or_admin_deletes(self, db_engine, people):
        project = _project(db_engine)
        project_service.join_project(db_engine, project["id"], BOB)
        project_service.join_project(db_engine, project["id"], CAROL)
        update = project_service.post_update(db_engine, project["id"], BOB, title="a", content="b")
        with pytest.raises(PermissionError):
            project_service.delete_update(db_engine, update["id"], CAROL)
        assert project_service.delete_update(db_engine, update["id"], ALICE) is True
        assert project_service.delete_update(db_engine, update["id"], ALICE) is False


# ===========================================================================
# Reactions
# ===========================================================================
class TestReactions:
    def test_toggle(self, db_engine, people):
        project = _project(db_engine)
        on = project_service.toggle_reaction(db_engine, project["id"], BOB, "like")
        assert (on["active"], on["likes_count"]) == (True, 1)
        project_service.toggle_reaction(db_engine, project["id"], BOB, "bookmark")
        assert project_service.get_project(db_engine, project["id"], BOB)["my_reactions"] == [
            "bookmark", "like",
        ]
        off = project_service.toggle_reaction(db_engine, project["id"], BOB, "like")
        assert (off["active"], off["likes_count"]) == (False, 0)

    def test_invalid_reaction(self, db_engine, people):
        project = _project(db_engine)
        with pytest.raises(ValueError, match="Invalid reaction"):
            project_service.toggle_reaction(db_engine, project["id"], BOB, "love")

    def test_reacted_projects(self, db_engine, people):
        followed = _project(db_engine, title="Followed")
        _project(db_engine, title="Ignored")
        project_service.toggle_reaction(db_engine, followed["id"], BOB, "follow")
        rows = project_service.list_reacted_projects(db_engine, BOB, "follow")
        assert [p["id"] for p in rows] == [followed["id"]]
        assert project_service.list_reacted_projects(db_engine, BOB, "like") == []


# ===========================================================================
# Comments
# ===========================================================================
class TestComments:
    def test_threads_and_counts(self, db_engine, people):
        project = _project(db_engine)
        top = project_service.add_comment(db_engine, project["id"], BOB, "Love it")
        project_service.add_comment(db_engine, project["id"], ALICE, "Thanks!", parent_id=top["id"])
        comments = project_service.list_comments(db_engine, project["id"], None)
        assert [c["content"] for c in comments] == ["Love it"]
        assert [r["content"] for r in comments[0]["replies"]] == ["Thanks!"]
        assert project_service.get_project(db_engine, project["id"])["comments_count"] == 2

    def test_reply_rules(self, db_engine, people):
        project = _project(db_engine)
        other = _project(db_engine, title="Other")
        top = project_service.add_comment(db_engine, project["id"], BOB, "Love it")
        reply = project_service.add_comment(db_engine, project["id"], ALICE, "Ta",
                                            parent_id=top["id"])
        with pytest.raises(ValueError, match="cannot be nested"):
            project_service.add_comment(db_engine, project["id"], BOB, "x", parent_id=reply["id"])
        with pytest.raises(ValueError, match="Parent comment not found"):
            project_service.add_comment(db_engine, other["id"], BOB, "x", parent_id=top["id"])
        with pytest.raises(ValueError, match="empty"):
            project_service.add_comment(db_engine, project["id"], BOB, "   ")

    def test_deleted_parent_becomes_placeholder(self, db_engine, people):
        project = _project(db_engine)
        top = project_service.add_comment(db_engine, project["id"], BOB, "Hot take")
        project_service.add_comment(db_engine, project["id"], CAROL, "Agreed", parent_id=top["id"])
        lonely = project_service.add_comment(db_engine, project["id"], DAVE, "Nobody answers")
        assert project_service.delete_comment(db_engine, top["id"], BOB) is True
        assert project_service.delete_comment(db_engine, lonely["id"], ALICE) is True

        comments = project_service.list_comments(db_engine, project["id"], None)
        assert len(comments) == 1
        assert comments[0]["is_deleted"] is True
        assert comments[0]["content"] is None
        assert [r["content"] for r in comments[0]["replies"]] == ["Agreed"]

    def test_only_author_or_admin_deletes(self, db_engine, people):
        project = _project(db_engine)
        comment = project_service.add_comment(db_engine, project["id"], BOB, "Hi")
        with pytest.raises(PermissionError):
            project_service.delete_comment(db_engine, comment["id"], CAROL)


# ===========================================================================
# Stored images
# ===========================================================================
class TestProjectImages:
    @pytest.fixture
    def upload_dir(self, tmp_path, monkeypatch):
        monkeypatch.setattr(upload_service, "UPLOAD_DIR", tmp_path)
        return tmp_path

    def _save(self, name):
        return asyncio.run(upload_service.save_upload(name, _PNG, "image/png", "image"))

    def test_replaced_cover_is_removed(self, db_engine, people, upload_dir):
        old, new = self._save("old.png"), self._save("new.png")
        project = _project(db_engine, image_url=old)
        project_service.update_project(db_engine, project["id"], ALICE, image_url=new)
        assert not (upload_dir / old.rsplit("/", 1)[-1]).exists()
        assert (upload_dir / new.rsplit("/", 1)[-1]).exists()

    def test_delete_removes_gallery(self, db_engine, people, upload_dir):
        cover, shot = self._save("cover.png"), self._save("shot.png")
        project = _project(db_engine, image_url=cover, gallery_images=[shot])
        project_service.delete_project(db_engine, project["id"], ALICE)
        assert list(upload_dir.iterdir()) == []
