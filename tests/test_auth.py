from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from app.core.dependencies import is_super_user
from app.modules.auth import service as auth_service
from app.modules.auth.service import AuthService


class FakeAuth:
    def __init__(self, user=None, error=None):
        self.user = user
        self.error = error
        self.calls = 0

    def get_user(self, jwt):
        self.calls += 1
        if self.error:
            raise self.error
        return SimpleNamespace(user=self.user)


@pytest.fixture(autouse=True)
def clear_auth_cache():
    auth_service._AUTH_USER_CACHE.clear()
    yield
    auth_service._AUTH_USER_CACHE.clear()


def test_token_resolves_to_user_and_is_cached():
    user = SimpleNamespace(id="u1", email="u1@example.com", app_metadata={"type": "super_user"})
    auth = FakeAuth(user=user)
    service = AuthService(SimpleNamespace(auth=auth))

    first = service.get_current_user("token-1")
    second = service.get_current_user("token-1")

    assert first["id"] == "u1"
    assert second == first
    assert auth.calls == 1
    assert is_super_user(first)


def test_missing_user_is_unauthorized():
    service = AuthService(SimpleNamespace(auth=FakeAuth(user=None)))
    with pytest.raises(HTTPException) as exc:
        service.get_current_user("token-2")
    assert exc.value.status_code == 401


def test_expired_token_is_unauthorized():
    service = AuthService(SimpleNamespace(auth=FakeAuth(error=RuntimeError("JWT expired"))))
    with pytest.raises(HTTPException) as exc:
        service.get_current_user("token-3")
    assert exc.value.detail == "Invalid or expired token"


def test_regular_user_is_not_super_user():
    assert not is_super_user({"id": "u1", "app_metadata": {}})
    assert not is_super_user({"id": "u1"})
