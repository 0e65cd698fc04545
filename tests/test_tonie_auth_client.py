try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import asyncio
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs

import pytest

from fakes import FakeTonieCloud, make_tonie_settings
from toniesync.clients.tonie_auth import TokenCache, TonieAuthClient
from toniesync.core.errors import AuthenticationFailed, InvalidArgument


class FrozenClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def _client(fake: FakeTonieCloud, cache: TokenCache | None = None) -> TonieAuthClient:
    return TonieAuthClient(make_tonie_settings(), http_client=fake.client(), cache=cache)


@pytest.mark.asyncio
async def test_get_token_posts_password_grant(fake_cloud: FakeTonieCloud) -> None:
    auth = _client(fake_cloud)

    token = await auth.get_token("parent@example.com", "hunter2")

    assert token.startswith("token-")
    [request] = fake_cloud.token_requests
    assert request.headers["content-type"] == "application/x-www-form-urlencoded"
    form = {key: values[0] for key, values in parse_qs(request.content.decode()).items()}
    assert form == {
        "grant_type": "password",
        "username": "parent@example.com",
        "password": "hunter2",
        "client_id": "tonies-webapp",
    }


@pytest.mark.asyncio
async def test_cache_hit_avoids_network(fake_cloud: FakeTonieCloud) -> None:
    auth = _client(fake_cloud)

    first = await auth.get_token("parent@example.com", "hunter2")
    second = await auth.get_token("parent@example.com", "hunter2")

    assert first == second
    assert len(fake_cloud.token_requests) == 1


@pytest.mark.asyncio
async def test_tokens_are_cached_per_identity(fake_cloud: FakeTonieCloud) -> None:
    auth = _client(fake_cloud)

    first = await auth.get_token("parent@example.com", "hunter2")
    other = await auth.get_token("grandma@example.com", "letmein")

    assert first != other
    assert len(fake_cloud.token_requests) == 2
    assert len(auth.cache) == 2


@pytest.mark.asyncio
async def test_invalidate_forces_refetch(fake_cloud: FakeTonieCloud) -> None:
    auth = _client(fake_cloud)

    first = await auth.get_token("parent@example.com", "hunter2")
    auth.invalidate("parent@example.com")
    second = await auth.get_token("parent@example.com", "hunter2")

    assert first != second
    assert len(fake_cloud.token_requests) == 2


def test_invalidate_without_cached_token_is_noop(fake_cloud: FakeTonieCloud) -> None:
    auth = _client(fake_cloud)

    auth.invalidate("nobody@example.com")

    assert "nobody@example.com" not in auth.cache
    with pytest.raises(InvalidArgument):
        auth.invalidate("")


@pytest.mark.asyncio
async def test_token_refreshed_inside_safety_buffer(fake_cloud: FakeTonieCloud) -> None:
    clock = FrozenClock()
    cache = TokenCache(refresh_buffer=timedelta(minutes=5), clock=clock)
    auth = _client(fake_cloud, cache=cache)
    fake_cloud.token_expires_in = 3600

    await auth.get_token("parent@example.com", "hunter2")
    clock.advance(minutes=54)
    await auth.get_token("parent@example.com", "hunter2")
    assert len(fake_cloud.token_requests) == 1

    clock.advance(minutes=1, seconds=1)
    await auth.get_token("parent@example.com", "hunter2")
    assert len(fake_cloud.token_requests) == 2


@pytest.mark.asyncio
async def test_rejected_grant_raises_and_caches_nothing(fake_cloud: FakeTonieCloud) -> None:
    auth = _client(fake_cloud)
    fake_cloud.token_status = 401

    with pytest.raises(AuthenticationFailed) as excinfo:
        await auth.get_token("parent@example.com", "wrong")

    assert excinfo.value.status_code == 401
    assert "invalid_grant" in excinfo.value.body
    assert "401" in str(excinfo.value)
    assert "parent@example.com" not in auth.cache
    assert len(fake_cloud.token_requests) == 1


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_request(fake_cloud: FakeTonieCloud) -> None:
    auth = _client(fake_cloud)

    tokens = await asyncio.gather(
        *(auth.get_token("parent@example.com", "hunter2") for _ in range(5))
    )

    assert len(set(tokens)) == 1
    assert len(fake_cloud.token_requests) == 1


@pytest.mark.asyncio
async def test_get_token_requires_identity_and_secret(fake_cloud: FakeTonieCloud) -> None:
    auth = _client(fake_cloud)

    with pytest.raises(InvalidArgument):
        await auth.get_token("", "hunter2")
    with pytest.raises(InvalidArgument):
        await auth.get_token("parent@example.com", "")

    assert fake_cloud.requests == []


def test_injected_cache_is_used_even_when_empty(fake_cloud: FakeTonieCloud) -> None:
    cache = TokenCache(refresh_buffer=timedelta(minutes=1))
    auth = _client(fake_cloud, cache=cache)

    assert len(cache) == 0
    assert auth.cache is cache
