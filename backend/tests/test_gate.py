"""Tests for the session access gate."""
import pytest

from archive.auth.gate import Authorization, evaluate


class TestEvaluate:
    """evaluate() needs both userId and userLogin, both non-empty."""

    def test_authorized_with_both_attributes(self):
        assert evaluate({"userId": "user-1", "userLogin": "alice"}) is Authorization.AUTHORIZED

    @pytest.mark.parametrize(
        "session",
        [
            {},
            {"userId": "user-1"},
            {"userLogin": "alice"},
            {"userId": "", "userLogin": "alice"},
            {"userId": "user-1", "userLogin": ""},
            {"userId": None, "userLogin": None},
        ],
    )
    def test_unauthorized_when_anything_missing(self, session):
        assert evaluate(session) is Authorization.UNAUTHORIZED

    def test_does_not_modify_session(self):
        session = {"userId": "user-1"}
        evaluate(session)
        assert session == {"userId": "user-1"}
