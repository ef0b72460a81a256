# Content API Connector Tests
# Request shapes and error mapping, against httpx.MockTransport
# Dependent files: connectors/content_api.py

import asyncio
import json

import httpx
import pytest

from connectors.content_api import ContentAPI, ContentAPIError, screenshot_url


def _api(handler, token="tok"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ContentAPI("http://content.test", token=token, client=client)


def _run(api, call):
    async def scenario():
        async with api:
            return await call(api)
    return asyncio.run(scenario())


def test_fetch_all_gets_every_resource():
    seen = []

    def handler(request):
        seen.append(request.url.path)
        name = request.url.path.rsplit("/", 1)[-1]
        if name in ("about", "configuration"):
            return httpx.Response(200, json={"name": name})
        return httpx.Response(200, json=[{"_id": f"{name}-1"}])

    data = _run(_api(handler), lambda api: api.fetch_all())

    assert sorted(seen) == sorted(f"/api/{n}" for n in ("about", "projects", "certificates", "skills", "configuration"))
    assert data["projects"] == [{"_id": "projects-1"}]
    assert data["about"] == {"name": "about"}


def test_bearer_token_attached():
    headers = {}

    def handler(request):
        headers.update(request.headers)
        return httpx.Response(200, json=[])

    _run(_api(handler), lambda api: api.fetch("skills"))
    assert headers["authorization"] == "Bearer tok"


def test_no_token_no_header():
    headers = {}

    def handler(request):
        headers.update(request.headers)
        return httpx.Response(200, json=[])

    _run(_api(handler, token=None), lambda api: api.fetch("skills"))
    assert "authorization" not in headers


def test_visibility_toggle_uses_patch_endpoint():
    captured = {}

    def handler(request):
        captured["method"] = request.method
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"_id": "p1", "visible": False})

    result = _run(_api(handler), lambda api: api.set_visibility("projects", "p1", False))

    assert captured == {"method": "PATCH", "path": "/api/projects/p1/visibility", "body": {"visible": False}}
    assert result["visible"] is False


def test_skill_override_and_restore_bodies():
    captured = []

    def handler(request):
        captured.append((request.method, request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"success": True})

    async def calls(api):
        await api.set_skill_override("Python", "project", "p1", "hide")
        await api.clear_skill_override("Python", "project", "p1")

    _run(_api(handler), calls)

    assert captured == [
        ("POST", "/api/skills/override", {"skillName": "Python", "source": "project", "sourceId": "p1", "action": "hide"}),
        ("DELETE", "/api/skills/override", {"skillName": "Python", "source": "project", "sourceId": "p1"}),
    ]


def test_bulk_delete_body():
    captured = {}

    def handler(request):
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(204)

    assert _run(_api(handler), lambda api: api.bulk_delete("skills", ["s1", "s2"])) is None
    assert captured == {"path": "/api/skills/bulk", "body": {"skillIds": ["s1", "s2"]}}


def test_401_maps_to_login_message():
    api = _api(lambda request: httpx.Response(401, json={"message": "jwt expired"}))
    with pytest.raises(ContentAPIError) as exc:
        _run(api, lambda a: a.delete("projects", "p1"))
    assert exc.value.status_code == 401
    assert exc.value.message == "Authentication expired. Please login again."


def test_server_message_is_surfaced():
    api = _api(lambda request: httpx.Response(400, json={"message": "Title is required"}))
    with pytest.raises(ContentAPIError) as exc:
        _run(api, lambda a: a.create("projects", {}))
    assert exc.value.message == "Title is required"


def test_error_without_body_uses_status():
    api = _api(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(ContentAPIError) as exc:
        _run(api, lambda a: a.update("projects", "p1", {"title": "x"}))
    assert exc.value.message == "Content API returned 500"


def test_timeout_is_flagged():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(ContentAPIError) as exc:
        _run(_api(handler), lambda a: a.fetch("projects"))
    assert exc.value.timed_out is True
    assert exc.value.message == "Request timed out. Please try again."


def test_connection_error_is_wrapped():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ContentAPIError) as exc:
        _run(_api(handler), lambda a: a.fetch("projects"))
    assert exc.value.timed_out is False


def test_list_screenshots_and_capture_url():
    def handler(request):
        assert request.url.path == "/api/projects/screenshots/p1"
        return httpx.Response(200, json=[{"url": "u", "createdAt": "2024-01-01T00:00:00Z"}])

    api = _api(handler)
    assert _run(api, lambda a: a.list_screenshots("p1"))[0]["url"] == "u"
    assert api.screenshot_url("https://site.test/a?b=1", "p1") == (
        "http://content.test/api/projects/screenshot?url=https%3A%2F%2Fsite.test%2Fa%3Fb%3D1&projectId=p1"
    )


def test_screenshot_url_helper_strips_trailing_slash():
    assert screenshot_url("http://x.test/", "https://s.test", "7", prefix="") == (
        "http://x.test/projects/screenshot?url=https%3A%2F%2Fs.test&projectId=7"
    )


def test_fetch_repositories_hits_github():
    def handler(request):
        assert request.url.host == "api.github.com"
        assert request.url.path == "/users/ada/repos"
        return httpx.Response(200, json=[{"id": 1, "name": "site"}])

    assert _run(_api(handler), lambda a: a.fetch_repositories("ada")) == [{"id": 1, "name": "site"}]


def test_from_config():
    api = ContentAPI.from_config({"api": {"base_url": "http://cfg.test/", "prefix": "/v1", "token": "t"}})
    assert api.base_url == "http://cfg.test"
    assert api.prefix == "/v1"
    assert api.token == "t"
    asyncio.run(api.aclose())
