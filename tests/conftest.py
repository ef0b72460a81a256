# Shared fixtures
# A fake content API standing in for the remote store, plus sample content
# Dependent files: unified/store.py, connectors/content_api.py

import copy
import os

import pytest

# Set env vars BEFORE importing app modules
os.environ.setdefault("ADMIN_USERNAME", "testadmin")
os.environ.setdefault("ADMIN_PASSWORD", "testpass123")
os.environ.setdefault("ADMIN_SECRET_KEY", "test-secret-key-for-testing-only")

from connectors.content_api import ContentAPIError
from unified.store import OptimisticStore
from unified.visibility import InMemoryOverrideStore, VisibilityResolver


SAMPLE = {
    "about": {"name": "Ada Example", "title": "Engineer"},
    "projects": [
        {
            "_id": "p1",
            "title": "Portfolio Site",
            "shortDescription": "My site",
            "description": "The long story of my site",
            "category": "web",
            "status": "completed",
            "technologies": ["Python", "React"],
            "images": [{"url": "https://img.test/p1.png", "alt": "Site"}],
            "liveUrls": ["https://site.test"],
            "githubUrls": ["https://github.com/ada/site"],
            "linkedCertificates": ["c1", "c_gone"],
            "visible": True,
        },
        {
            "_id": "p2",
            "title": "Hidden App",
            "category": "mobile",
            "status": "in-progress",
            "technologies": ["Kotlin"],
            "liveUrls": ["https://app.test"],
            "visible": False,
        },
        {
            "_id": "p3",
            "title": "Vision Model",
            "category": "web",
            "subcategories": ["ai-ml-dl"],
            "status": "planning",
            "technologies": ["PyTorch"],
            "liveUrls": ["https://model.test"],
            "visible": True,
        },
    ],
    "certificates": [
        {
            "_id": "c1",
            "title": "Cloud Practitioner",
            "issuer": "AWS",
            "issueDate": "2023-05-10",
            "category": "certification",
            "skills": '["AWS", "Terraform"]',
            "files": [
                {"url": "https://files.test/c1.pdf", "thumbnailUrl": "https://files.test/c1.png",
                 "mimeType": "application/pdf", "originalName": "c1.pdf", "isPrimary": True},
            ],
            "credentialUrl": "https://verify.test/c1",
            "linkedProjects": ["p1"],
            "visible": True,
        },
        {
            "_id": "c2",
            "title": "Network Basics",
            "issuer": "Cisco",
            "category": "workshop",
            "skills": "Networking, Git",
            "image": {"url": "https://img.test/c2.png"},
            "visible": True,
        },
    ],
    "skills": [
        {"_id": "s1", "name": "Rust", "category": "languages", "visible": True, "source": "manual"},
        {"_id": "s2", "name": "Figma", "category": "tools", "visible": False, "source": "manual"},
        {"_id": "proj_p1_python", "name": "Python", "category": "languages", "visible": True,
         "source": "project", "sourceId": "p1", "sourceName": "Portfolio Site"},
    ],
    "configuration": {"theme": "dark"},
}

REPOSITORIES = [
    {"id": 1, "name": "site", "language": "Python", "topics": ["fastapi"],
     "html_url": "https://github.com/ada/site", "homepage": "https://site.test",
     "stargazers_count": 3, "archived": False},
]


class FakeContentAPI:
    """
    In-memory content API with the ContentAPI method surface.

    ``fail`` holds method names that raise ContentAPIError; ``gate`` (an
    asyncio.Event) makes every call wait until it is set.
    """

    def __init__(self, data=None):
        self.data = copy.deepcopy(data if data is not None else SAMPLE)
        self.calls = []
        self.fail = set()
        self.gate = None
        self.screenshots = {}
        self.screenshot_error = False
        self._next_id = 100

    async def _enter(self, name, *args):
        self.calls.append((name,) + args)
        if self.gate is not None:
            await self.gate.wait()
        if name in self.fail:
            raise ContentAPIError(f"{name} failed", status_code=500)

    def _find(self, resource, item_id):
        return next(i for i in self.data[resource] if i.get("_id") == item_id)

    # --- reads ---

    async def fetch_all(self):
        await self._enter("fetch_all")
        return copy.deepcopy(self.data)

    async def fetch(self, resource):
        await self._enter("fetch", resource)
        return copy.deepcopy(self.data[resource])

    async def fetch_repositories(self, username):
        await self._enter("fetch_repositories", username)
        return copy.deepcopy(REPOSITORIES)

    async def list_screenshots(self, entity_id):
        await self._enter("list_screenshots", entity_id)
        if self.screenshot_error:
            raise ContentAPIError("screenshot cache unavailable", status_code=503)
        return list(self.screenshots.get(entity_id, []))

    def screenshot_url(self, live_url, entity_id):
        return f"http://api.test/api/projects/screenshot?url={live_url}&projectId={entity_id}"

    # --- writes ---

    async def create(self, resource, data):
        await self._enter("create", resource, data)
        self._next_id += 1
        record = {**data, "_id": f"srv_{self._next_id}"}
        self.data[resource].append(record)
        return dict(record)

    async def update(self, resource, item_id, data):
        await self._enter("update", resource, item_id, data)
        record = self._find(resource, item_id)
        record.update(data)
        return dict(record)

    async def delete(self, resource, item_id):
        await self._enter("delete", resource, item_id)
        self.data[resource] = [i for i in self.data[resource] if i.get("_id") != item_id]

    async def set_visibility(self, resource, item_id, visible):
        await self._enter("set_visibility", resource, item_id, visible)
        record = self._find(resource, item_id)
        record["visible"] = visible
        return dict(record)

    async def replace_singleton(self, name, data):
        await self._enter("replace_singleton", name, data)
        self.data[name] = {**(self.data.get(name) or {}), **data}
        return dict(self.data[name])

    async def reset_configuration(self):
        await self._enter("reset_configuration")
        self.data["configuration"] = {"theme": "light"}
        return dict(self.data["configuration"])

    async def bulk_delete(self, resource, item_ids):
        await self._enter("bulk_delete", resource, list(item_ids))
        self.data[resource] = [i for i in self.data[resource] if i.get("_id") not in item_ids]

    async def set_skill_override(self, skill_name, source, source_id, action):
        await self._enter("set_skill_override", skill_name, source, source_id, action)
        return {"success": True}

    async def clear_skill_override(self, skill_name, source, source_id):
        await self._enter("clear_skill_override", skill_name, source, source_id)


@pytest.fixture
def api():
    return FakeContentAPI()


@pytest.fixture
def overrides():
    return InMemoryOverrideStore()


@pytest.fixture
def store(api, overrides):
    s = OptimisticStore(api, overrides=overrides, required_fields={"projects": ["technologies"]})
    s.load(copy.deepcopy(api.data))
    return s


@pytest.fixture
def resolver(store):
    return VisibilityResolver(store.overrides, origin_exists=store.has_origin)
