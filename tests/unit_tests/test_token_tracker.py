"""Tests for CAPTCHA token replay tracking."""

import asyncio

import pytest

from portfolio.services.token_tracker import CaptchaTokenTracker
from tests.mocks.store import FailingStore, FakeClock, InMemoryStore


@pytest.mark.asyncio
async def test_first_use_is_marked():
    result = await CaptchaTokenTracker(InMemoryStore()).check_and_mark_used("token-1")
    assert result.is_used is False
    assert result.marked_as_used is True


@pytest.mark.asyncio
async def test_second_use_is_a_replay():
    tracker = CaptchaTokenTracker(InMemoryStore())
    await tracker.check_and_mark_used("token-1")

    result = await tracker.check_and_mark_used("token-1")
    assert result.is_used is True
    assert result.marked_as_used is False


@pytest.mark.asyncio
async def test_concurrent_uses_accept_exactly_one():
    tracker = CaptchaTokenTracker(InMemoryStore())
    results = await asyncio.gather(*(tracker.check_and_mark_used("shared") for _ in range(10)))
    assert sum(not r.is_used for r in results) == 1


@pytest.mark.asyncio
async def test_only_a_hash_is_stored():
    store = InMemoryStore()
    tracker = CaptchaTokenTracker(store, prefix="turnstile:used:")
    await tracker.check_and_mark_used("secret-token-value")

    keys = list(store.dump())
    assert keys == [f"turnstile:used:{CaptchaTokenTracker.hash_token('secret-token-value')}"]
    assert "secret-token-value" not in keys[0]
    assert len(CaptchaTokenTracker.hash_token("x")) == 16


@pytest.mark.asyncio
async def test_marker_expires():
    clock = FakeClock()
    tracker = CaptchaTokenTracker(InMemoryStore(clock=clock), expiry_seconds=300)
    await tracker.check_and_mark_used("token-1")

    clock.advance(301)
    assert (await tracker.check_and_mark_used("token-1")).is_used is False


@pytest.mark.asyncio
async def test_store_failure_fails_open():
    result = await CaptchaTokenTracker(FailingStore()).check_and_mark_used("token-1")
    assert result.is_used is False
    assert result.marked_as_used is False


@pytest.mark.asyncio
async def test_cleanup_removes_keys_without_ttl():
    store = InMemoryStore()
    tracker = CaptchaTokenTracker(store)
    await tracker.check_and_mark_used("live")
    await store.set("turnstile:used:orphan", "1")

    assert await tracker.cleanup_expired_tokens() == 1
    assert "turnstile:used:orphan" not in store.dump()
    assert len(store.dump()) == 1


@pytest.mark.asyncio
async def test_cleanup_store_failure_returns_zero():
    assert await CaptchaTokenTracker(FailingStore()).cleanup_expired_tokens() == 0
