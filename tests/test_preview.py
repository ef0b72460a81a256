# Preview Resolver Tests
# Freshness window, coalescing, degradation and the one-shot retry
# Dependent files: unified/preview.py

import asyncio
from datetime import datetime, timedelta, timezone

from conftest import FakeContentAPI
from unified.adapters import ProjectAdapter
from unified.preview import PreviewResolver

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
LIVE = "https://site.test"


def _resolver(api):
    return PreviewResolver(api, clock=lambda: NOW)


def _captured(age: timedelta) -> str:
    return (NOW - age).isoformat().replace("+00:00", "Z")


def test_capture_just_inside_window_is_reused():
    api = FakeContentAPI()
    api.screenshots["p9"] = [{"url": "https://cache.test/p9.png", "createdAt": _captured(timedelta(hours=11, minutes=59))}]

    entry = asyncio.run(_resolver(api).resolve("p9", LIVE))

    assert entry.url == "https://cache.test/p9.png"
    assert not entry.loading and not entry.error


def test_capture_just_outside_window_triggers_fresh_capture():
    api = FakeContentAPI()
    api.screenshots["p9"] = [{"url": "https://cache.test/p9.png", "createdAt": _captured(timedelta(hours=12, minutes=1))}]

    entry = asyncio.run(_resolver(api).resolve("p9", LIVE))

    assert entry.url == api.screenshot_url(LIVE, "p9")


def test_newest_capture_wins():
    api = FakeContentAPI()
    api.screenshots["p9"] = [
        {"url": "https://cache.test/old.png", "createdAt": _captured(timedelta(hours=30))},
        {"url": "https://cache.test/new.png", "createdAt": _captured(timedelta(hours=1))},
    ]
    assert asyncio.run(_resolver(api).resolve("p9", LIVE)).url == "https://cache.test/new.png"


def test_no_live_url_requests_nothing():
    api = FakeContentAPI()
    resolver = _resolver(api)
    assert asyncio.run(resolver.resolve("p9", None)) is None
    assert api.calls == []


def test_cache_lookup_failure_degrades_to_capture_url():
    api = FakeContentAPI()
    api.screenshot_error = True

    entry = asyncio.run(_resolver(api).resolve("p9", LIVE))

    assert entry.error is True
    assert entry.url == api.screenshot_url(LIVE, "p9")


def test_concurrent_requests_are_coalesced():
    api = FakeContentAPI()
    resolver = _resolver(api)

    async def scenario():
        api.gate = asyncio.Event()
        first = resolver.request("p9", LIVE)
        second = resolver.request("p9", LIVE)
        assert resolver.get("p9").loading is True
        api.gate.set()
        await first
        return first, second

    first, second = asyncio.run(scenario())

    assert first is second
    assert [c for c in api.calls if c[0] == "list_screenshots"] == [("list_screenshots", "p9")]
    assert resolver.get("p9").url == api.screenshot_url(LIVE, "p9")


def test_resolved_entry_is_not_requested_again():
    api = FakeContentAPI()
    resolver = _resolver(api)

    async def scenario():
        await resolver.resolve("p9", LIVE)
        return resolver.request("p9", LIVE)

    assert asyncio.run(scenario()) is None
    assert len(api.calls) == 1


def test_state_is_replaced_on_every_transition():
    api = FakeContentAPI()
    resolver = _resolver(api)
    snapshots = []
    resolver.subscribe(snapshots.append)

    asyncio.run(resolver.resolve("p9", LIVE))

    assert len(snapshots) == 2
    assert snapshots[0]["p9"].loading is True
    assert snapshots[1]["p9"].url is not None
    assert snapshots[0] is not snapshots[1]


def test_image_error_retries_once_then_gives_up():
    api = FakeContentAPI()
    resolver = _resolver(api)

    retry = resolver.report_image_error("p9", LIVE)
    assert retry.url == api.screenshot_url(LIVE, "p9")
    assert retry.error is False

    final = resolver.report_image_error("p9", LIVE)
    assert final.error is True
    assert final.url is None
    # A failed entry is not re-requested
    assert resolver.request("p9", LIVE) is None


def test_image_error_without_live_url_is_final():
    resolver = _resolver(FakeContentAPI())
    assert resolver.report_image_error("p9", None).error is True


def test_freshness_window_from_config():
    resolver = PreviewResolver.from_config(FakeContentAPI(), {"preview": {"freshness_hours": 1}})
    assert resolver.freshness == timedelta(hours=1)


def test_auto_load_skips_custom_images_and_missing_urls():
    api = FakeContentAPI()
    resolver = _resolver(api)
    projects = api.data["projects"] + [{"_id": "p4", "title": "No site"}]

    asyncio.run(resolver.auto_load(projects, ProjectAdapter(), stagger=0))

    # p1 has a custom image, p4 has no live URL
    assert sorted(resolver.state) == ["p2", "p3"]
    assert all(entry.resolved for entry in resolver.state.values())
