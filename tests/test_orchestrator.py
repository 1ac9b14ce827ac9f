"""Tests for the embedding orchestrator."""

import asyncio

import pytest

from embedcache.cache.embedding_cache import CACHE_KEY_LENGTH, EmbeddingCache
from embedcache.common.metrics import MetricsCollector
from embedcache.encoders.model_gateway import ModelGateway
from embedcache.errors import GenerationFailure, InvalidInput, ModelNotReady
from embedcache.orchestration.orchestrator import EmbeddingOrchestrator

from .conftest import FakeModel


@pytest.mark.asyncio
async def test_resolve_one_is_idempotent(orchestrator, fake_model):
    first = await orchestrator.resolve_one("the quick brown fox")
    second = await orchestrator.resolve_one("the quick brown fox")

    assert first == second
    assert fake_model.calls == ["the quick brown fox"]
    stats = orchestrator.stats()
    assert stats.requests == 2
    assert stats.cache_hits == 1
    assert stats.hit_rate == "50.0%"


@pytest.mark.asyncio
async def test_shared_prefix_is_a_cache_hit(orchestrator, fake_model):
    prefix = "z" * CACHE_KEY_LENGTH
    first = await orchestrator.resolve_one(prefix + " one")
    second = await orchestrator.resolve_one(prefix + " two")

    assert second == first
    assert fake_model.calls == [prefix + " one"]
    assert orchestrator.stats().cache_hits == 1


@pytest.mark.asyncio
async def test_not_ready_rejects_without_calling_model(config, gateway, fake_model):
    orchestrator = EmbeddingOrchestrator(EmbeddingCache(config.max_cache_size), gateway)

    with pytest.raises(ModelNotReady):
        await orchestrator.resolve_one("hello")
    with pytest.raises(ModelNotReady):
        await orchestrator.resolve_batch(["a", "b"])

    assert fake_model.calls == []
    assert orchestrator.stats().requests == 0


@pytest.mark.asyncio
async def test_not_ready_is_reported_before_invalid_input(config, gateway):
    orchestrator = EmbeddingOrchestrator(EmbeddingCache(config.max_cache_size), gateway)
    with pytest.raises(ModelNotReady):
        await orchestrator.resolve_one(None)


@pytest.mark.asyncio
@pytest.mark.parametrize("bad", [None, "", 42, ["a"], {"text": "a"}])
async def test_resolve_one_rejects_invalid_text(orchestrator, fake_model, bad):
    with pytest.raises(InvalidInput):
        await orchestrator.resolve_one(bad)
    assert fake_model.calls == []
    assert orchestrator.stats().requests == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("bad", [None, "abc", 7, {"texts": []}, ["ok", ""], ["ok", 3]])
async def test_resolve_batch_rejects_invalid_input(orchestrator, fake_model, bad):
    with pytest.raises(InvalidInput):
        await orchestrator.resolve_batch(bad)
    assert fake_model.calls == []
    assert orchestrator.stats().requests == 0


@pytest.mark.asyncio
async def test_empty_batch_returns_empty_list(orchestrator, fake_model):
    assert await orchestrator.resolve_batch([]) == []
    assert fake_model.calls == []
    assert orchestrator.stats().requests == 0


@pytest.mark.asyncio
async def test_batch_preserves_input_order_under_differential_latency(config):
    model = FakeModel(delays={"a": 0.15, "b": 0.0, "c": 0.05})
    gateway = ModelGateway(config, loader=lambda name, device: model)
    await gateway.initialize()
    orchestrator = EmbeddingOrchestrator(EmbeddingCache(10), gateway)

    expected = {text: await gateway.embed(text) for text in ("a", "b", "c")}
    model.calls.clear()

    result = await orchestrator.resolve_batch(["a", "b", "c"])

    assert result == [expected["a"], expected["b"], expected["c"]]
    assert sorted(model.calls) == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_batch_generates_misses_concurrently(config):
    texts = ["one", "two", "three", "four"]
    model = FakeModel(delays={text: 0.1 for text in texts})
    gateway = ModelGateway(config, loader=lambda name, device: model)
    await gateway.initialize()
    orchestrator = EmbeddingOrchestrator(EmbeddingCache(10), gateway)

    await orchestrator.resolve_batch(texts)

    assert model.max_in_flight > 1


@pytest.mark.asyncio
async def test_partial_hit_batch(orchestrator, fake_model):
    cached = await orchestrator.resolve_one("cached")
    fake_model.calls.clear()

    result = await orchestrator.resolve_batch(["fresh", "cached"])

    assert result[1] == cached
    assert fake_model.calls == ["fresh"]
    stats = orchestrator.stats()
    assert stats.requests == 3
    assert stats.cache_hits == 1
    assert stats.cache_size == 2


@pytest.mark.asyncio
async def test_duplicate_texts_in_one_batch_do_not_break_cache(orchestrator):
    result = await orchestrator.resolve_batch(["dup", "dup", "dup"])

    assert result[0] == result[1] == result[2]
    assert orchestrator.stats().cache_size == 1


@pytest.mark.asyncio
async def test_generation_failure_is_not_cached(config):
    model = FakeModel(fail_on={"boom"})
    gateway = ModelGateway(config, loader=lambda name, device: model)
    await gateway.initialize()
    orchestrator = EmbeddingOrchestrator(EmbeddingCache(10), gateway)

    with pytest.raises(GenerationFailure, match="model failed"):
        await orchestrator.resolve_one("boom")

    assert orchestrator.stats().cache_size == 0
    assert orchestrator.stats().requests == 1


@pytest.mark.asyncio
async def test_one_failure_fails_the_batch_without_cancelling_siblings(config):
    model = FakeModel(delays={"slow": 0.1}, fail_on={"boom"})
    gateway = ModelGateway(config, loader=lambda name, device: model)
    await gateway.initialize()
    cache = EmbeddingCache(10)
    orchestrator = EmbeddingOrchestrator(cache, gateway)

    with pytest.raises(GenerationFailure):
        await orchestrator.resolve_batch(["slow", "boom"])

    # the sibling keeps running and lands in the cache
    await asyncio.sleep(0.3)
    assert "slow" in cache
    assert "boom" not in cache


@pytest.mark.asyncio
async def test_clear_cache_resets_everything(orchestrator, fake_model):
    await orchestrator.resolve_one("hello")
    await orchestrator.resolve_one("hello")
    await orchestrator.resolve_batch(["x", "y"])

    assert orchestrator.clear_cache() == 3

    stats = orchestrator.stats()
    assert stats.cache_size == 0
    assert stats.requests == 0
    assert stats.cache_hits == 0
    assert stats.hit_rate == "0%"

    fake_model.calls.clear()
    await orchestrator.resolve_one("hello")
    assert fake_model.calls == ["hello"]
    assert orchestrator.stats().cache_hits == 0


@pytest.mark.asyncio
async def test_capacity_eviction_through_orchestrator(config, ready_gateway, fake_model):
    orchestrator = EmbeddingOrchestrator(EmbeddingCache(2), ready_gateway)
    for text in ("k1", "k2", "k3"):
        await orchestrator.resolve_one(text)

    assert orchestrator.cache.keys() == ["k2", "k3"]
    fake_model.calls.clear()

    await orchestrator.resolve_one("k1")
    assert fake_model.calls == ["k1"]
    assert orchestrator.stats().evictions == 2


@pytest.mark.asyncio
async def test_concurrent_identical_misses_are_tolerated(orchestrator):
    results = await asyncio.gather(
        orchestrator.resolve_one("racy"),
        orchestrator.resolve_one("racy"),
    )
    assert results[0] == results[1]
    assert orchestrator.stats().cache_size == 1


@pytest.mark.asyncio
async def test_metrics_mirror_cache_activity(config, ready_gateway):
    metrics = MetricsCollector("test")
    orchestrator = EmbeddingOrchestrator(EmbeddingCache(1), ready_gateway, metrics)

    await orchestrator.resolve_one("a")
    await orchestrator.resolve_one("a")
    await orchestrator.resolve_one("b")

    exposition = metrics.get_metrics()
    assert "embedding_cache_hits_total 1.0" in exposition
    assert "embedding_cache_misses_total 2.0" in exposition
    assert "embedding_cache_evictions_total 1.0" in exposition
    assert "embedding_cache_size 1.0" in exposition


@pytest.mark.asyncio
async def test_concurrent_batch_misses_never_exceed_capacity(config):
    texts = [f"text-{i}" for i in range(20)]
    model = FakeModel(delays={text: (i % 5) * 0.01 for i, text in enumerate(texts)})
    gateway = ModelGateway(config, loader=lambda name, device: model)
    await gateway.initialize()
    cache = EmbeddingCache(3)
    orchestrator = EmbeddingOrchestrator(cache, gateway)

    result = await orchestrator.resolve_batch(texts)

    assert len(result) == 20
    stats = orchestrator.stats()
    assert stats.cache_size == 3
    assert stats.evictions == 17
    assert stats.requests == 20
    assert len(cache.keys()) == 3


@pytest.mark.asyncio
async def test_mutating_a_returned_vector_leaves_cache_intact(orchestrator):
    first = await orchestrator.resolve_one("alias")
    original = list(first)
    first[0] = 999.0

    second = await orchestrator.resolve_one("alias")
    assert second == original
    second[0] = -1.0

    batch = await orchestrator.resolve_batch(["alias"])
    assert batch[0] == original
