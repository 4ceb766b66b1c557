"""
tests/test_field_service.py — Section Profile Fields & Answers
===============================================================
A save is all-or-nothing: one invalid answer means nothing is written.
"""

from __future__ import annotations

import pytest
from conftest import ALICE, BOB, CAROL

from tomorrow_people.services import field_service, section_service


@pytest.fixture
def section(db_engine, people):
    created = section_service.create_section(db_engine, ALICE, name="Hardware Guild")
    section_service.join_section(db_engine, created["id"], BOB)
    return created["id"]


def _field(engine, section_id, label, field_type="text", **attrs):
    return field_service.create_field(
        engine, section_id, ALICE, field_label=label, field_type=field_type, **attrs,
    )


# ===========================================================================
# Field definitions
# ===========================================================================
class TestFieldDefinitions:
    def test_create_derives_name_and_order(self, db_engine, section):
        first = _field(db_engine, section, "Favourite Tool")
        second = _field(db_engine, section, "Skill Level", "select",
                        field_options=["Beginner", {"value": "pro", "label": "Pro"}])
        assert first["field_name"] == "favourite_tool"
        assert first["field_type_label"] == "Short Text"
        assert (first["display_order"], second["display_order"]) == (0, 1)
        assert second["field_options"] == [
            {"value": "Beginner", "label": "Beginner"},
            {"value": "pro", "label": "Pro"},
        ]

    @pytest.mark.parametrize(
        "label, field_type, attrs, message",
        [
            ("  ", "text", {}, "Field label is required"),
            ("Mood", "emoji", {}, "Invalid field type"),
            ("Colour", "select", {}, "need at least one option"),
            ("Bio", "text", {"min_length": 10, "max_length": 5}, "cannot exceed"),
            ("Bio", "text", {"min_length": -1}, "cannot be negative"),
            ("Bio", "text", {"field_name": "9lives"}, "Field name must start with a letter"),
        ],
    )
    def test_invalid_definitions(self, db_engine, section, label, field_type, attrs, message):
        with pytest.raises(ValueError, match=message):
            _field(db_engine, section, label, field_type, **attrs)

    def test_duplicate_name(self, db_engine, section):
        _field(db_engine, section, "Website", "url")
        with pytest.raises(ValueError, match="already exists"):
            _field(db_engine, section, "Website", "url")

    def test_only_admins_manage(self, db_engine, section):
        with pytest.raises(PermissionError):
            field_service.create_field(db_engine, section, BOB, field_label="X", field_type="text")
        field = _field(db_engine, section, "Tool")
        with pytest.raises(PermissionError):
            field_service.update_field(db_engine, field["id"], BOB, field_label="Y")
        with pytest.raises(PermissionError):
            field_service.deactivate_field(db_engine, field["id"], BOB)

    def test_update_checks_merged_definition(self, db_engine, section):
        field = _field(db_engine, section, "Bio", "textarea", max_length=100)
        updated = field_service.update_field(db_engine, field["id"], ALICE, help_text="Keep it short")
        assert updated["help_text"] == "Keep it short"
        with pytest.raises(ValueError, match="cannot exceed"):
            field_service.update_field(db_engine, field["id"], ALICE, min_length=200)
        assert field_service.update_field(db_engine, 999, ALICE, help_text="x") is None

    def test_deactivate_hides_from_members(self, db_engine, section):
        field = _field(db_engine, section, "Tool")
        _field(db_engine, section, "Website", "url")
        assert field_service.deactivate_field(db_engine, field["id"], ALICE) is True

        member_view = field_service.list_fields(db_engine, section, BOB, include_inactive=True)
        assert [f["field_name"] for f in member_view] == ["website"]
        admin_view = field_service.list_fields(db_engine, section, ALICE, include_inactive=True)
        assert [f["field_name"] for f in admin_view] == ["tool", "website"]

    def test_reorder(self, db_engine, section):
        a = _field(db_engine, section, "A")
        b = _field(db_engine, section, "B")
        c = _field(db_engine, section, "C")
        ordered = field_service.reorder_fields(db_engine, section, ALICE, [c["id"], a["id"], b["id"]])
        assert [f["field_name"] for f in ordered] == ["c", "a", "b"]
        listed = field_service.list_fields(db_engine, section, BOB)
        assert [f["field_name"] for f in listed] == ["c", "a", "b"]

    @pytest.mark.parametrize("bad", [[1], [1, 1, 2], [1, 2, 3, 99]])
    def test_reorder_needs_every_field_once(self, db_engine, section, bad):
        for label in ("A", "B", "C"):
            _field(db_engine, section, label)
        ids = [f["id"] for f in field_service.list_fields(db_engine, section, ALICE)]
        mapping = {1: ids[0], 2: ids[1], 3: ids[2], 99: 10_000}
        with pytest.raises(ValueError, match="exactly once"):
            field_service.reorder_fields(db_engine, section, ALICE, [mapping[i] for i in bad])


# ===========================================================================
# Member answers
# ===========================================================================
class TestProfileData:
    @pytest.fixture
    def form(self, db_engine, section):
        _field(db_engine, section, "Favourite Tool", is_required=True, max_length=20)
        _field(db_engine, section, "Website", "url")
        _field(db_engine, section, "Languages", "multiselect", field_options=["py", "go", "c"])
        _field(db_engine, section, "Mentor", "checkbox")
        return section

    def test_save_and_read(self, db_engine, form):
        result = field_service.save_profile_data(db_engine, form, BOB, {
            "favourite_tool": "Oscilloscope",
            "languages": ["py", "c"],
            "mentor": True,
        })
        assert result["saved"] is True
        assert result["errors"] == {}
        data = field_service.get_profile_data(db_engine, form, BOB, ALICE)
        assert data == {"favourite_tool": "Oscilloscope", "languages": "py,c", "mentor": "true"}

    def test_any_error_writes_nothing(self, db_engine, form):
        result = field_service.save_profile_data(db_engine, form, BOB, {
            "favourite_tool": "Multimeter",
            "website": "not a url",
            "languages": "py,rust",
        })
        assert result["saved"] is False
        assert result["errors"] == {
            "website": "Please enter a valid URL",
            "languages": "Please select valid options",
        }
        assert field_service.get_profile_data(db_engine, form, BOB, BOB) == {}

    def test_required_field_uses_stored_value(self, db_engine, form):
        missing = field_service.save_profile_data(db_engine, form, BOB, {"website": "https://bob.dev"})
        assert missing["errors"] == {"favourite_tool": "Favourite Tool is required"}

        field_service.save_profile_data(db_engine, form, BOB, {"favourite_tool": "Lathe"})
        partial = field_service.save_profile_data(db_engine, form, BOB, {"website": "https://bob.dev"})
        assert partial["saved"] is True
        assert partial["data"]["favourite_tool"] == "Lathe"

    def test_unknown_field(self, db_engine, form):
        with pytest.raises(ValueError, match="Unknown field"):
            field_service.save_profile_data(db_engine, form, BOB, {"shoe_size": "44"})

    def test_only_approved_members(self, db_engine, form):
        with pytest.raises(PermissionError):
            field_service.save_profile_data(db_engine, form, CAROL, {"favourite_tool": "Saw"})

    def test_members_list_carries_answers(self, db_engine, form):
        field_service.save_profile_data(db_engine, form, BOB, {"favourite_tool": "Drill"})
        members = {m["user_id"]: m for m in section_service.list_members(db_engine, form, CAROL)}
        assert members[BOB]["section_data"] == {"favourite_tool": "Drill"}
        assert members[ALICE]["section_data"] == {}
        assert members[ALICE]["is_admin"] is True

    def test_answers_survive_leaving(self, db_engine, form):
        field_service.save_profile_data(db_engine, form, BOB, {"favourite_tool": "Drill"})
        section_service.leave_section(db_engine, form, BOB)
        assert field_service.get_profile_data(db_engine, form, BOB, ALICE) == {"favourite_tool": "Drill"}
