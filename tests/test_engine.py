import asyncio
from types import SimpleNamespace

import pytest
from conftest import FakeStore, StaticSource, make_engine, make_sources

from cultura.models.content import ContentMetadata, ContentSummary, InteractionEvent
from cultura.services.events import InteractionEventBus
from cultura.services.gemini import GeminiService
from cultura.services.recommendation.cache import MemoryRecommendationCache
from cultura.services.recommendation.engine import PipelineState
from cultura.services.recommendation.errors import CacheWriteFailure
from cultura.services.recommendation.sources import GenerativeSource


class RejectingCache(MemoryRecommendationCache):
    async def put(self, user_id, recommendations, ttl=None):
        raise CacheWriteFailure("store is read-only")


def _ids(result):
    return [r.content_id for r in result.recommendations]


def test_two_sources_with_two_timeouts(store):
    sources = make_sources(
        collaborative=StaticSource("collaborative", [("C2", 8), ("C3", 2)]),
        content_based=StaticSource("content-based", [("C2", 4), ("C4", 9)]),
        generative=StaticSource("generative", [("G1", 50)], timeout=0.05, delay=1.0),
        trending=StaticSource("trending", [("T1", 5)], timeout=0.05, delay=1.0),
    )
    engine = make_engine(store, sources)

    result = asyncio.run(engine.recommend("U"))

    assert result.state == PipelineState.DONE
    assert not result.fallback
    # C2 tops collaborative (10 * 0.30) and bottoms content-based (0 * 0.25)
    assert [(r.content_id, r.final_score) for r in result.recommendations] == [
        ("C2", pytest.approx(3.0)),
        ("C4", pytest.approx(2.5)),
        ("C3", pytest.approx(0.0)),
    ]
    assert [r.rank for r in result.recommendations] == [1, 2, 3]
    assert result.recommendations[0].source_summary.sources == ["collaborative", "content-based"]
    timed_out = {r.source_name for r in result.source_results if r.timed_out}
    assert timed_out == {"generative", "trending"}


def test_completed_content_never_returned(store):
    sources = make_sources(trending=StaticSource("trending", [("C1", 10), ("C2", 1)]))

    result = asyncio.run(make_engine(store, sources).recommend("U"))

    assert "C1" not in _ids(result)
    assert _ids(result) == ["C2"]


def test_failing_source_is_isolated(store):
    sources = make_sources(
        collaborative=StaticSource("collaborative", error=RuntimeError("db down")),
        trending=StaticSource("trending", [("T1", 3), ("T2", 1)]),
    )

    result = asyncio.run(make_engine(store, sources).recommend("U"))

    assert _ids(result) == ["T1", "T2"]
    failed = [r for r in result.source_results if not r.ok]
    assert [r.source_name for r in failed] == ["collaborative"]
    assert "db down" in failed[0].error


def test_all_sources_empty_uses_fallback(store):
    engine = make_engine(store, make_sources())

    result = asyncio.run(engine.recommend("U"))

    assert result.fallback
    assert result.state == PipelineState.ERROR_FALLBACK
    assert _ids(result) == ["F1", "F2", "F3", "F4"]
    scores = [r.final_score for r in result.recommendations]
    assert all(a > b for a, b in zip(scores, scores[1:]))
    assert asyncio.run(engine.cache.get("U")) is None


def test_all_sources_failing_uses_fallback(store):
    sources = {
        name: StaticSource(name, error=ConnectionError("unreachable"))
        for name in ("collaborative", "content-based", "generative", "trending")
    }

    result = asyncio.run(make_engine(store, sources).recommend("U"))

    assert result.fallback
    assert _ids(result) == ["F1", "F2", "F3", "F4"]


def test_unknown_user_gets_fallback_without_calling_sources(store):
    sources = make_sources(trending=StaticSource("trending", [("T1", 1)]))

    result = asyncio.run(make_engine(store, sources).recommend("NOBODY"))

    assert result.fallback
    assert all(s.calls == 0 for s in sources.values())


def test_profile_store_error_gets_fallback(store):
    store.fail_context = True
    sources = make_sources(trending=StaticSource("trending", [("T1", 1)]))

    result = asyncio.run(make_engine(store, sources).recommend("U"))

    assert result.fallback
    assert _ids(result) == ["F1", "F2", "F3", "F4"]


def test_fallback_failure_still_returns_a_list(store):
    store.fail_featured = True

    assert asyncio.run(make_engine(store, make_sources()).get_recommendations("U")) == []


def test_everything_ranked_away_uses_fallback(store):
    store.metadata = {}
    sources = make_sources(trending=StaticSource("trending", [("DELETED", 1)]))

    result = asyncio.run(make_engine(store, sources).recommend("U"))

    assert result.fallback
    assert "DELETED" not in _ids(result)


def test_second_call_is_served_from_cache(store):
    trending = StaticSource("trending", [("T1", 3), ("T2", 1)])
    engine = make_engine(store, make_sources(trending=trending))

    async def scenario():
        first = await engine.recommend("U")
        second = await engine.recommend("U")
        return first, second

    first, second = asyncio.run(scenario())

    assert trending.calls == 1
    assert store.context_calls == 1
    assert second.cached
    assert second.recommendations == first.recommendations


def test_force_refresh_bypasses_cache(store):
    trending = StaticSource("trending", [("T1", 3)])
    engine = make_engine(store, make_sources(trending=trending))

    async def scenario():
        await engine.recommend("U")
        trending.scores = [("T9", 3)]
        return await engine.recommend("U", force_refresh=True)

    refreshed = asyncio.run(scenario())

    assert trending.calls == 2
    assert not refreshed.cached
    assert _ids(refreshed) == ["T9"]
    assert [r.content_id for r in asyncio.run(engine.cache.get("U")).recommendations] == ["T9"]


def test_cache_write_failure_still_returns_results(store):
    engine = make_engine(store, make_sources(trending=StaticSource("trending", [("T1", 1)])), cache=RejectingCache(60))

    result = asyncio.run(engine.recommend("U"))

    assert result.state == PipelineState.DONE
    assert _ids(result) == ["T1"]


def test_results_are_recorded(store):
    asyncio.run(make_engine(store, make_sources(trending=StaticSource("trending", [("T1", 1)]))).recommend("U"))

    assert [r.content_id for r in store.recorded["U"]] == ["T1"]


def test_same_inputs_give_identical_output(store):
    def run():
        sources = make_sources(
            collaborative=StaticSource("collaborative", [("A", 5), ("B", 5), ("C", 1)]),
            trending=StaticSource("trending", [("B", 2), ("D", 2)]),
        )
        return asyncio.run(make_engine(store, sources).recommend("U")).recommendations

    assert run() == run()


def test_ties_are_ordered_by_content_id(store):
    sources = make_sources(trending=StaticSource("trending", [("Z", 4), ("A", 4), ("M", 4)]))

    result = asyncio.run(make_engine(store, sources).recommend("U"))

    assert _ids(result) == ["A", "M", "Z"]


def test_mobile_friendly_content_is_boosted(store):
    store.metadata = {"LONG": ContentMetadata(estimated_time=900), "SHORT": ContentMetadata(estimated_time=30)}
    sources = make_sources(
        collaborative=StaticSource("collaborative", [("LONG", 10), ("SHORT", 9.5), ("GONE", 0)]),
        content_based=StaticSource("content-based", [("LONG", 10), ("SHORT", 9.5), ("GONE", 0)]),
    )

    result = asyncio.run(make_engine(store, sources).recommend("U"))

    assert _ids(result) == ["SHORT", "LONG"]


@pytest.mark.parametrize(
    "limit, expected",
    [(None, 20), (5, 5), (0, 0), (-3, 0), (500, 30)],
)
def test_limit_is_clamped(store, limit, expected):
    sources = make_sources(trending=StaticSource("trending", [(f"T{i:02d}", i) for i in range(40)]))
    engine = make_engine(store, sources, max_limit=30)

    result = asyncio.run(engine.recommend("U", limit=limit))

    assert len(result.recommendations) == expected


def test_smaller_limit_is_a_prefix_of_cached_list(store):
    sources = make_sources(trending=StaticSource("trending", [(f"T{i:02d}", i) for i in range(10)]))
    engine = make_engine(store, sources)

    async def scenario():
        full = await engine.recommend("U", limit=10)
        top = await engine.recommend("U", limit=3)
        return full, top

    full, top = asyncio.run(scenario())

    assert top.cached
    assert top.recommendations == full.recommendations[:3]


def test_concurrent_requests_share_one_computation(store):
    trending = StaticSource("trending", [("T1", 1)], delay=0.05)
    engine = make_engine(store, make_sources(trending=trending))

    async def scenario():
        return await asyncio.gather(engine.recommend("U"), engine.recommend("U"), engine.recommend("U"))

    results = asyncio.run(scenario())

    assert trending.calls == 1
    assert all(_ids(r) == ["T1"] for r in results)


def test_without_single_flight_each_request_computes(store):
    trending = StaticSource("trending", [("T1", 1)], delay=0.05)
    engine = make_engine(store, make_sources(trending=trending), single_flight=False)

    async def scenario():
        return await asyncio.gather(engine.recommend("U"), engine.recommend("U"))

    asyncio.run(scenario())

    assert trending.calls == 2


def test_preference_event_invalidates_cache(store):
    trending = StaticSource("trending", [("T1", 1)])
    engine = make_engine(store, make_sources(trending=trending))
    bus = InteractionEventBus()
    bus.subscribe(engine.invalidate)

    async def scenario():
        await engine.recommend("U")
        ignored = await bus.publish(InteractionEvent(user_id="U", type="VIEW", content_id="T1"))
        cached_after_view = await engine.cache.get("U")
        invalidated = await bus.publish(InteractionEvent(user_id="U", type="LIKE", content_id="T1"))
        cached_after_like = await engine.cache.get("U")
        await engine.recommend("U")
        return ignored, cached_after_view, invalidated, cached_after_like

    ignored, cached_after_view, invalidated, cached_after_like = asyncio.run(scenario())

    assert not ignored
    assert cached_after_view is not None
    assert invalidated
    assert cached_after_like is None
    assert trending.calls == 2


def test_invalidation_during_computation_prevents_stale_write(store):
    trending = StaticSource("trending", [("T1", 1)], delay=0.1)
    engine = make_engine(store, make_sources(trending=trending))

    async def scenario():
        pending = asyncio.ensure_future(engine.recommend("U"))
        await asyncio.sleep(0.02)
        await engine.invalidate("U")
        result = await pending
        return result, await engine.cache.get("U")

    result, cached = asyncio.run(scenario())

    assert _ids(result) == ["T1"]
    assert cached is None


def test_engine_requires_each_source_exactly_once(store):
    sources = make_sources()
    del sources["trending"]
    with pytest.raises(ValueError):
        make_engine(store, sources)

    duplicated = make_sources()
    duplicated["trending"] = StaticSource("collaborative")
    with pytest.raises(ValueError):
        make_engine(store, duplicated)


def test_sources_are_called_with_user_context(user_context):
    seen = []

    class RecordingSource(StaticSource):
        async def fetch(self, user_id, context):
            seen.append((user_id, context))
            return await super().fetch(user_id, context)

    sources = make_sources(trending=RecordingSource("trending", [("T1", 1)]))
    asyncio.run(make_engine(FakeStore(contexts={"U": user_context}), sources).recommend("U"))

    assert seen == [("U", user_context)]


def test_generative_api_failure_is_reported_as_source_error(store):
    def refuse(**kwargs):
        raise RuntimeError("429 RESOURCE_EXHAUSTED")

    gemini = GeminiService(api_key=None)
    gemini.client = SimpleNamespace(models=SimpleNamespace(generate_content=refuse))
    store.content = [ContentSummary(id="G1")]
    sources = make_sources(
        generative=GenerativeSource(store, gemini, timeout=2.0),
        trending=StaticSource("trending", [("T1", 1)]),
    )

    result = asyncio.run(make_engine(store, sources).recommend("U"))

    generative = next(r for r in result.source_results if r.source_name == "generative")
    assert not generative.ok
    assert "RESOURCE_EXHAUSTED" in generative.error
    assert _ids(result) == ["T1"]


def test_request_after_invalidation_does_not_join_stale_computation(store):
    trending = StaticSource("trending", [("T1", 1)], delay=0.1)
    engine = make_engine(store, make_sources(trending=trending))

    async def scenario():
        stale = asyncio.ensure_future(engine.recommend("U"))
        await asyncio.sleep(0.02)
        await engine.invalidate("U")
        fresh = await engine.recommend("U")
        await stale
        return fresh, await engine.cache.get("U")

    fresh, cached = asyncio.run(scenario())

    assert trending.calls == 2
    assert _ids(fresh) == ["T1"]
    assert cached is not None
