"""RedisCacheClient のユニットテスト（クライアントはモック）"""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from rxflow_cache import CacheError, CacheErrorCodes, RedisCacheClient


@pytest.fixture
def redis_mock(mocker):
    return mocker.AsyncMock()


@pytest.fixture
def client(redis_mock) -> RedisCacheClient:
    return RedisCacheClient(client=redis_mock)


async def test_set_nx_passes_nx_and_millis(client: RedisCacheClient, redis_mock) -> None:
    """set_nx が NX と PX（ミリ秒）で SET を呼ぶこと。"""
    redis_mock.set.return_value = True
    assert await client.set_nx("rx:dedup:abc", "1", 300)
    redis_mock.set.assert_awaited_once_with("rx:dedup:abc", "1", nx=True, px=300_000)


async def test_set_nx_existing_key_returns_false(client: RedisCacheClient, redis_mock) -> None:
    """既存キーでは False を返すこと。"""
    redis_mock.set.return_value = None
    assert not await client.set_nx("k", "1", 1)


async def test_set_without_ttl(client: RedisCacheClient, redis_mock) -> None:
    """TTL 省略時は PX を付けないこと。"""
    await client.set("k", "v")
    redis_mock.set.assert_awaited_once_with("k", "v", px=None)


async def test_incr_and_expire(client: RedisCacheClient, redis_mock) -> None:
    """incr と expire が INCR / PEXPIRE に対応すること。"""
    redis_mock.incr.return_value = 3
    redis_mock.pexpire.return_value = 1
    assert await client.incr("rate_limit:count:c") == 3
    assert await client.expire("rate_limit:count:c", 60)
    redis_mock.pexpire.assert_awaited_once_with("rate_limit:count:c", 60_000)


async def test_exists_and_delete(client: RedisCacheClient, redis_mock) -> None:
    """exists と delete の戻り値を変換すること。"""
    redis_mock.exists.return_value = 1
    redis_mock.delete.return_value = 2
    assert await client.exists("k")
    assert await client.delete("a", "b") == 2
    assert await client.delete() == 0
    redis_mock.delete.assert_awaited_once_with("a", "b")


async def test_timeout_maps_to_timeout_code(client: RedisCacheClient, redis_mock) -> None:
    """タイムアウトは TIMEOUT に変換されること。"""
    redis_mock.get.side_effect = RedisTimeoutError("slow")
    with pytest.raises(CacheError) as exc_info:
        await client.get("k")
    assert exc_info.value.code == CacheErrorCodes.TIMEOUT


async def test_connection_error_maps_to_connection_code(
    client: RedisCacheClient, redis_mock
) -> None:
    """接続エラーは CONNECTION_ERROR に変換されること。"""
    redis_mock.incr.side_effect = RedisConnectionError("refused")
    with pytest.raises(CacheError) as exc_info:
        await client.incr("k")
    assert exc_info.value.code == CacheErrorCodes.CONNECTION_ERROR
    assert str(exc_info.value).startswith("CONNECTION_ERROR: ")


async def test_close_logs_errors(client: RedisCacheClient, redis_mock) -> None:
    """close のエラーは送出しないこと。"""
    redis_mock.aclose.side_effect = RedisConnectionError("gone")
    await client.close()
    redis_mock.aclose.assert_awaited_once()


async def test_ping(client: RedisCacheClient, redis_mock) -> None:
    """ping の結果を bool で返すこと。"""
    redis_mock.ping.return_value = True
    assert await client.ping()


def test_from_url_uses_timeouts(mocker) -> None:
    """URL とタイムアウトからクライアントを生成すること。"""
    from_url = mocker.patch("redis.asyncio.from_url")
    RedisCacheClient(url="redis://cache:6379/1", socket_timeout=2.0, socket_connect_timeout=3.0)
    from_url.assert_called_once_with(
        "redis://cache:6379/1",
        decode_responses=True,
        socket_timeout=2.0,
        socket_connect_timeout=3.0,
    )
