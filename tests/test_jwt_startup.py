"""
tests/test_jwt_startup — JWT Secret Validation at Startup
===========================================================
The API must refuse to start when JWT_SECRET is missing, blank, too short,
or a known weak default.
"""

from __future__ import annotations

import importlib
import os
from unittest.mock import patch

import pytest


class TestJWTSecretValidation:
    """Prove that _load_jwt_secret() rejects bad secrets and accepts good ones."""

    def _call_load(self) -> str:
        """Reload deps so the import-time check runs against the patched env."""
        import tomorrow_people.api.deps as deps_mod
        importlib.reload(deps_mod)
        return deps_mod.JWT_SECRET

    def test_rejects_missing_secret(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("JWT_SECRET", None)
            with pytest.raises(RuntimeError, match="JWT_SECRET environment variable is not set"):
                self._call_load()

    def test_rejects_empty_secret(self):
        with patch.dict(os.environ, {"JWT_SECRET": ""}):
            with pytest.raises(RuntimeError, match="JWT_SECRET environment variable is not set"):
                self._call_load()

    @pytest.mark.parametrize(
        "weak",
        ["change-me", "secret", "super-secret-jwt-token-with-at-least-32-characters-long"],
    )
    def test_rejects_known_weak_defaults(self, weak):
        with patch.dict(os.environ, {"JWT_SECRET": weak}):
            with pytest.raises(RuntimeError, match="known weak default"):
                self._call_load()

    def test_rejects_short_secret(self):
        with patch.dict(os.environ, {"JWT_SECRET": "tooshort"}):
            with pytest.raises(RuntimeError, match="too short"):
                self._call_load()

    def test_accepts_strong_secret(self):
        good_secret = "a" * 64
        with patch.dict(os.environ, {"JWT_SECRET": good_secret}):
            assert self._call_load() == good_secret

    def test_audience_is_optional(self):
        with patch.dict(os.environ, {"JWT_SECRET": "b" * 40, "JWT_AUDIENCE": ""}):
            import tomorrow_people.api.deps as deps_mod
            importlib.reload(deps_mod)
            assert deps_mod.JWT_AUDIENCE is None

    @pytest.fixture(autouse=True)
    def _restore_jwt_secret(self):
        """Restore JWT_SECRET after each test so other tests keep working."""
        original = os.environ.get("JWT_SECRET")
        original_aud = os.environ.get("JWT_AUDIENCE")
        yield
        if original is not None:
            os.environ["JWT_SECRET"] = original
        else:
            os.environ.pop("JWT_SECRET", None)
        if original_aud is None:
            os.environ.pop("JWT_AUDIENCE", None)
        import tomorrow_people.api.deps as deps_mod
        try:
            importlib.reload(deps_mod)
        except RuntimeError:
            pass  # test env may not have a valid secret set yet
