import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from app.core.database import AsyncSessionLocal
from app.services import whitelist as whitelist_service
from app.services.code_store import DatabaseCodeStore, MemoryCodeStore, get_code_store

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def payload(email, code="123456", username="Steve_01"):
    return {
        "email": email,
        "verificationCode": code,
        "aiQuestion": "ChatGPT",
        "qqNumber": "10001",
        "minecraftUsername": username,
    }


async def always_yes(answer):
    return True


async def submit(store, data, ip_address="203.0.113.7"):
    async with AsyncSessionLocal() as db:
        return await whitelist_service.submit_application(
            db=db, store=store, data=data, ip_address=ip_address,
            classify=always_yes, now=NOW,
        )


def test_code_store_is_shared_across_threads():
    with ThreadPoolExecutor(max_workers=8) as pool:
        stores = list(pool.map(lambda _: get_code_store(), range(32)))
    assert all(s is stores[0] for s in stores)


def test_store_ttl_governs_expiry():
    short = MemoryCodeStore(ttl_seconds=60)
    asyncio.run(short.put("steve@example.com", "123456", NOW - timedelta(minutes=2)))

    with pytest.raises(whitelist_service.WhitelistError) as exc_info:
        asyncio.run(whitelist_service.check_verification_code(short, "steve@example.com", "123456", NOW))
    assert exc_info.value.message == "验证码已过期，请重新获取喵~"
    assert asyncio.run(short.get("steve@example.com")) is None

    long = MemoryCodeStore(ttl_seconds=600)
    asyncio.run(long.put("steve@example.com", "123456", NOW - timedelta(minutes=6)))
    asyncio.run(whitelist_service.check_verification_code(long, "steve@example.com", "123456", NOW))


class PostCommitDeleteForbidden(DatabaseCodeStore):
    async def delete(self, email):
        raise AssertionError("code must be removed inside the insert transaction")


def test_database_store_consumes_code_in_insert_transaction(count_entries):
    store = PostCommitDeleteForbidden()
    asyncio.run(store.put("steve@example.com", "123456", NOW))

    entry = asyncio.run(submit(store, payload("steve@example.com")))

    assert entry.minecraft_username == "Steve_01"
    assert count_entries() == 1
    assert asyncio.run(store.get("steve@example.com")) is None


class FailingDeleteStore(MemoryCodeStore):
    async def delete(self, email):
        raise RuntimeError("cache unavailable")


def test_failed_code_cleanup_still_succeeds(count_entries, caplog):
    store = FailingDeleteStore()
    asyncio.run(store.put("steve@example.com", "123456", NOW))

    with caplog.at_level(logging.ERROR, logger="app.services.whitelist"):
        entry = asyncio.run(submit(store, payload("steve@example.com")))

    assert entry.email == "steve@example.com"
    assert count_entries() == 1
    assert "cache unavailable" in caplog.text


def test_unknown_ip_is_not_capped(count_entries):
    store = MemoryCodeStore()
    for i in range(4):
        email = f"player{i}@example.com"
        asyncio.run(store.put(email, "123456", NOW))
        asyncio.run(submit(store, payload(email, username=f"player_{i}"), ip_address=None))

    assert count_entries() == 4
