"""
tests/test_profile_service.py — Profiles, Links & Directory
============================================================
"""

from __future__ import annotations

import pytest
from conftest import ALICE, BOB, CAROL, DAVE

from tomorrow_people.services import profile_service


# ===========================================================================
# Profile bootstrap
# ===========================================================================
class TestEnsureProfile:
    @pytest.mark.parametrize(
        "email, full_name, expected",
        [
            ("ada@example.org", "Ada Lovelace", "Ada Lovelace"),
            ("ada@example.org", "   ", "ada"),
            ("ada@example.org", None, "ada"),
            (None, None, "User"),
        ],
    )
    def test_default_full_name(self, email, full_name, expected):
        assert profile_service.default_full_name(email, full_name) == expected

    def test_creates_once(self, db_engine):
        first = profile_service.ensure_profile(db_engine, ALICE, "alice@example.com", "Alice")
        assert first["full_name"] == "Alice"
        assert first["email"] == "alice@example.com"

        profile_service.update_profile(db_engine, ALICE, full_name="Alice Edited")
        again = profile_service.ensure_profile(db_engine, ALICE, "alice@example.com", "Alice")
        assert again["full_name"] == "Alice Edited"


# ===========================================================================
# Reading and editing
# ===========================================================================
class TestGetAndUpdate:
    def test_email_only_visible_to_owner(self, db_engine, people):
        assert profile_service.get_profile(db_engine, ALICE, ALICE)["email"] == "alice@example.com"
        assert "email" not in profile_service.get_profile(db_engine, ALICE, BOB)
        assert "email" not in profile_service.get_profile(db_engine, ALICE, None)

    def test_private_profile_still_reachable_directly(self, db_engine, people):
        profile_service.update_profile(db_engine, BOB, is_private=True)
        assert profile_service.get_profile(db_engine, BOB, ALICE)["full_name"] == "Bob Baker"

    def test_missing_profile(self, db_engine):
        assert profile_service.get_profile(db_engine, "nobody") is None
        assert profile_service.update_profile(db_engine, "nobody", bio="x") is None

    def test_update_ignores_unknown_fields(self, db_engine, people):
        updated = profile_service.update_profile(db_engine, ALICE, bio="Maker", email="evil@x.io")
        assert updated["bio"] == "Maker"
        assert updated["email"] == "alice@example.com"

    def test_blank_name_rejected(self, db_engine, people):
        with pytest.raises(ValueError, match="Full name cannot be empty"):
            profile_service.update_profile(db_engine, ALICE, full_name="  ")


# ===========================================================================
# Directory
# ===========================================================================
class TestDirectory:
    def test_hides_private_profiles_except_own(self, db_engine, people):
        profile_service.update_profile(db_engine, CAROL, is_private=True)
        ids_for_bob = {p["id"] for p in profile_service.list_directory(db_engine, BOB)}
        ids_for_carol = {p["id"] for p in profile_service.list_directory(db_engine, CAROL)}
        assert CAROL not in ids_for_bob
        assert CAROL in ids_for_carol

    def test_anonymous_sees_public_only(self, db_engine, people):
        profile_service.update_profile(db_engine, CAROL, is_private=True)
        ids = {p["id"] for p in profile_service.list_directory(db_engine, None)}
        assert ids == set(people.values()) - {CAROL}

    def test_search_matches_name_email_and_bio(self, db_engine, people):
        profile_service.update_profile(db_engine, DAVE, bio="Loves WOODWORK")
        by_name = profile_service.list_directory(db_engine, ALICE, search="baker")
        by_email = profile_service.list_directory(db_engine, ALICE, search="carol@")
        by_bio = profile_service.list_directory(db_engine, ALICE, search="woodwork")
        assert [p["id"] for p in by_name] == [BOB]
        assert [p["id"] for p in by_email] == [CAROL]
        assert [p["id"] for p in by_bio] == [DAVE]

    def test_alphabetical(self, db_engine, people):
        names = [p["full_name"] for p in profile_service.list_directory(db_engine, ALICE, sort="alphabetical")]
        assert names == sorted(names, key=str.lower)

    def test_unknown_sort(self, db_engine, people):
        with pytest.raises(ValueError, match="Unknown sort"):
            profile_service.list_directory(db_engine, ALICE, sort="random")


# ===========================================================================
# Links
# ===========================================================================
class TestLinks:
    def test_replace_keeps_order(self, db_engine, people):
        saved = profile_service.set_links(db_engine, ALICE, [
            {"platform": "github", "url": "https://github.com/alice"},
            {"platform": "custom", "label": "Blog", "url": "https://alice.dev"},
        ])
        assert [(link["platform"], link["display_order"]) for link in saved] == [
            ("github", 0), ("custom", 1),
        ]

        saved = profile_service.set_links(db_engine, ALICE, [
            {"platform": "website", "url": "http://alice.example"},
        ])
        assert [link["platform"] for link in saved] == ["website"]
        assert profile_service.list_links(db_engine, ALICE) == saved
        assert profile_service.get_profile(db_engine, ALICE)["links"] == saved

    @pytest.mark.parametrize(
        "links, message",
        [
            ([{"platform": "myspace", "url": "https://x.io"}], "Unknown link platform"),
            ([{"platform": "custom", "url": "https://x.io"}], "Custom links need a label"),
            ([{"platform": "github", "url": "javascript:alert(1)"}], "Invalid URL"),
            ([{"platform": "github", "url": "https://a.io"},
              {"platform": "github", "url": "https://b.io"}], "Duplicate github link"),
        ],
    )
    def test_rejects_bad_links(self, db_engine, people, links, message):
        with pytest.raises(ValueError, match=message):
            profile_service.set_links(db_engine, ALICE, links)

    def test_rejected_save_keeps_old_links(self, db_engine, people):
        profile_service.set_links(db_engine, ALICE, [{"platform": "github", "url": "https://github.com/a"}])
        with pytest.raises(ValueError):
            profile_service.set_links(db_engine, ALICE, [{"platform": "nope", "url": "https://x.io"}])
        assert len(profile_service.list_links(db_engine, ALICE)) == 1
