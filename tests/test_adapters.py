# Entity Adapter Tests
# Preview priority, badges, links and linked items per entity kind
# Dependent files: unified/adapters.py

from datetime import datetime, timezone

import pytest

from conftest import REPOSITORIES, SAMPLE
from unified.adapters import (
    FALLBACK, CertificateAdapter, ProjectAdapter, RepositoryAdapter,
    build_adapters, get_adapter, parse_skill_list,
)
from unified.models import PreviewEntry


def _shot(live_url, entity_id):
    return f"shot://{entity_id}?{live_url}"


PROJECTS = SAMPLE["projects"]
CERTIFICATES = SAMPLE["certificates"]


# --- registry ---

def test_registry_builds_every_kind():
    adapters = build_adapters(_shot)
    assert set(adapters) == {"project", "certificate", "repository"}
    assert adapters["project"].screenshot_url is _shot


def test_unknown_kind_raises():
    with pytest.raises(KeyError):
        get_adapter("podcast")


# --- project ---

def test_custom_image_beats_live_url():
    descriptor = ProjectAdapter(_shot).get_preview_descriptor(PROJECTS[0])
    assert descriptor.kind == "custom"
    assert descriptor.url == "https://img.test/p1.png"


def test_custom_image_beats_resolved_preview():
    state = {"p1": PreviewEntry(url="https://cache.test/p1.png")}
    assert ProjectAdapter(_shot).get_preview_descriptor(PROJECTS[0], state).kind == "custom"


def test_resolved_preview_used_before_capture_url():
    state = {"p3": PreviewEntry(url="https://cache.test/p3.png")}
    descriptor = ProjectAdapter(_shot).get_preview_descriptor(PROJECTS[2], state)
    assert descriptor.kind == "screenshot"
    assert descriptor.url == "https://cache.test/p3.png"


def test_live_url_without_image_builds_capture_url():
    descriptor = ProjectAdapter(_shot).get_preview_descriptor(PROJECTS[2])
    assert descriptor.kind == "screenshot"
    assert descriptor.url == "shot://p3?https://model.test"
    assert descriptor.alt == "Vision Model website preview"


def test_project_without_image_or_url_falls_back():
    assert ProjectAdapter(_shot).get_preview_descriptor({"_id": "x", "title": "Bare"}) == FALLBACK


def test_loading_preview_entry_is_ignored():
    state = {"p3": PreviewEntry(loading=True)}
    descriptor = ProjectAdapter(_shot).get_preview_descriptor(PROJECTS[2], state)
    assert descriptor.url == "shot://p3?https://model.test"


def test_project_status_badge():
    adapter = ProjectAdapter()
    assert adapter.get_status_badge(PROJECTS[0]).style_class == "bg-green-100 text-green-700"
    in_progress = adapter.get_status_badge(PROJECTS[1])
    assert in_progress.text == "in progress"
    assert "yellow" in in_progress.style_class
    assert adapter.get_status_badge({}).text == "Unknown"


def test_project_links_are_numbered():
    links = ProjectAdapter().get_external_links(
        {"liveUrls": ["https://a.test", "", "https://b.test"], "githubUrls": ["https://github.com/x"]}
    )
    assert [(l.type, l.label) for l in links] == [
        ("live", "Live Demo 1"), ("live", "Live Demo 3"), ("github", "GitHub 1"),
    ]


def test_project_linked_items_drop_orphans():
    linked = ProjectAdapter().get_linked_items(PROJECTS[0], CERTIFICATES)
    assert [c["_id"] for c in linked] == ["c1"]


def test_project_categories_include_subcategories():
    assert ProjectAdapter().get_categories(PROJECTS[2]) == ["web", "ai-ml-dl"]


def test_project_description_uses_short_description():
    adapter = ProjectAdapter()
    assert adapter.get_description(PROJECTS[0]) == "My site"
    assert adapter.get_full_description(PROJECTS[0]) == "The long story of my site"


# --- certificate ---

def test_certificate_pdf_preview_carries_file():
    descriptor = CertificateAdapter().get_preview_descriptor(CERTIFICATES[0])
    assert descriptor.kind == "pdf"
    assert descriptor.url == "https://files.test/c1.png"
    assert descriptor.file["originalName"] == "c1.pdf"
    assert descriptor.to_dict()["file"]["mimeType"] == "application/pdf"


def test_certificate_preview_image_beats_files():
    entity = {**CERTIFICATES[0], "previewImage": "https://img.test/extracted.png"}
    descriptor = CertificateAdapter().get_preview_descriptor(entity)
    assert (descriptor.kind, descriptor.url) == ("image", "https://img.test/extracted.png")


def test_certificate_image_file_and_image_field():
    adapter = CertificateAdapter()
    image_file = {"files": [{"url": "https://files.test/c.jpg", "mimeType": "image/jpeg"}]}
    assert adapter.get_preview_descriptor(image_file).url == "https://files.test/c.jpg"
    assert adapter.get_preview_descriptor(CERTIFICATES[1]).url == "https://img.test/c2.png"
    assert adapter.get_preview_descriptor({"title": "Nothing"}).kind == "fallback"


def test_primary_file_defaults_to_first():
    files = [{"url": "a"}, {"url": "b"}]
    assert CertificateAdapter().get_primary_file({"files": files})["url"] == "a"


def test_certificate_technologies_parse_encoded_lists():
    adapter = CertificateAdapter()
    assert adapter.get_technologies(CERTIFICATES[0]) == ["AWS", "Terraform"]
    assert adapter.get_technologies(CERTIFICATES[1]) == ["Networking", "Git"]


@pytest.mark.parametrize("raw,expected", [
    (None, []),
    (["Python", " ", "Go "], ["Python", "Go"]),
    (['["A", "B"]'], ["A", "B"]),
    ("Solo", ["Solo"]),
])
def test_parse_skill_list(raw, expected):
    assert parse_skill_list(raw) == expected


def test_certificate_subtitle_date_and_credential_link():
    adapter = CertificateAdapter()
    assert adapter.get_subtitle(CERTIFICATES[0]) == "AWS"
    assert adapter.get_date(CERTIFICATES[0]) == "May 2023"
    links = adapter.get_external_links(CERTIFICATES[0])
    assert [(l.type, l.label) for l in links] == [("credential", "Verify Certificate")]
    assert adapter.get_external_links(CERTIFICATES[1]) == []


def test_certificate_category_badge():
    adapter = CertificateAdapter()
    assert "purple" in adapter.get_status_badge(CERTIFICATES[1]).style_class
    assert adapter.get_status_badge({"category": "award"}).style_class == "bg-gray-100 text-gray-700"


def test_certificate_expiry_info():
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    adapter = CertificateAdapter()
    assert adapter.get_expiry_info({}) is None
    expired = adapter.get_expiry_info({"expiryDate": "2023-12-01"}, now=now)
    assert expired["is_expired"] is True
    upcoming = adapter.get_expiry_info({"expiryDate": "2024-01-11"}, now=now)
    assert upcoming == {"date": "2024-01-11", "is_expired": False, "days_until_expiry": 10}


# --- repository ---

def test_repository_adapter_reads_github_shape():
    adapter = RepositoryAdapter(_shot)
    repo = REPOSITORIES[0]
    assert adapter.get_id(repo) == "1"
    assert adapter.get_title(repo) == "site"
    assert adapter.get_technologies(repo) == ["Python", "fastapi"]
    assert adapter.get_status_badge(repo).text == "★ 3"
    assert adapter.get_preview_descriptor(repo).url == "shot://1?https://site.test"
    assert [l.label for l in adapter.get_external_links(repo)] == ["Homepage", "Repository"]


def test_repository_links_projects_by_github_url():
    linked = RepositoryAdapter().get_linked_items(REPOSITORIES[0], PROJECTS)
    assert [p["_id"] for p in linked] == ["p1"]


# --- shared helpers ---

def test_visibility_badge_and_empty_state():
    adapter = ProjectAdapter()
    assert adapter.get_visibility({"visible": False}).text == "Hidden"
    assert adapter.get_empty_state("admin")["title"] == "No projects yet"
    configured = {"home": {"icon": "x", "title": "Nothing", "message": "-"}}
    assert adapter.get_empty_state("home", configured)["title"] == "Nothing"


def test_filter_categories_prefer_configured():
    adapter = CertificateAdapter()
    assert adapter.get_filter_categories()[0] == "all"
    assert adapter.get_filter_categories(["all", "award"]) == ["all", "award"]
