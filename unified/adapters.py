"""
unified/adapters.py — Entity Adapters
=====================================
One small strategy object per entity kind. The renderer only ever talks to
an adapter, so adding a new kind means adding an adapter here and an entry
in ADAPTERS, never editing the renderer.

Kinds:
  project     → portfolio projects (custom images, live URLs, GitHub links)
  certificate → certificates (uploaded files, credential URL, skills)
  repository  → repository summaries as returned by the GitHub API

Adapters are pure: everything they return is computed from their inputs.
The screenshot-service URL is built by an injected callable so adapters do
not know the API base URL.
"""

import abc
import json
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from unified.models import (
    FILTER_ALL, MODE_ADMIN,
    ExternalLink, PreviewDescriptor, PreviewEntry, StatusBadge,
    entity_id,
)

ScreenshotUrlBuilder = Callable[[str, str], str]

FALLBACK = PreviewDescriptor(kind="fallback", url=None, alt="No preview available")


def _first_url(values: Any) -> Optional[str]:
    for value in values or []:
        if value:
            return value
    return None


def _parse_date(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class EntityAdapter(abc.ABC):
    """Extracts display data from one kind of raw entity record."""

    kind = ""
    default_filters: Sequence[str] = (FILTER_ALL,)

    def __init__(self, screenshot_url: Optional[ScreenshotUrlBuilder] = None):
        self.screenshot_url = screenshot_url

    # --- contract ---

    @abc.abstractmethod
    def get_preview_descriptor(
        self, entity: Mapping[str, Any],
        preview_state: Optional[Mapping[str, PreviewEntry]] = None,
    ) -> PreviewDescriptor:
        ...

    @abc.abstractmethod
    def get_status_badge(self, entity: Mapping[str, Any]) -> Optional[StatusBadge]:
        ...

    @abc.abstractmethod
    def get_technologies(self, entity: Mapping[str, Any]) -> List[str]:
        ...

    @abc.abstractmethod
    def get_linked_items(self, entity: Mapping[str, Any], pool: Sequence[Mapping[str, Any]]) -> List[Mapping[str, Any]]:
        ...

    @abc.abstractmethod
    def get_external_links(self, entity: Mapping[str, Any]) -> List[ExternalLink]:
        ...

    # --- shared helpers ---

    def get_id(self, entity: Mapping[str, Any]) -> Optional[str]:
        return entity_id(entity)

    def get_title(self, entity: Mapping[str, Any]) -> str:
        return entity.get("title") or "Untitled"

    def get_subtitle(self, entity: Mapping[str, Any]) -> str:
        return entity.get("category") or "Unknown"

    def get_description(self, entity: Mapping[str, Any]) -> str:
        return entity.get("description") or ""

    def get_full_description(self, entity: Mapping[str, Any]) -> str:
        return entity.get("description") or ""

    def get_categories(self, entity: Mapping[str, Any]) -> List[str]:
        """Category first, then any subcategories; used by the facet filter."""
        categories = []
        if entity.get("category"):
            categories.append(entity["category"])
        categories.extend(c for c in entity.get("subcategories") or [] if c)
        return categories

    def get_live_url(self, entity: Mapping[str, Any]) -> Optional[str]:
        return None

    def has_custom_image(self, entity: Mapping[str, Any]) -> bool:
        return False

    def get_date(self, entity: Mapping[str, Any]) -> Optional[str]:
        parsed = _parse_date(entity.get("createdAt"))
        return parsed.date().isoformat() if parsed else None

    def get_visibility(self, entity: Mapping[str, Any]) -> StatusBadge:
        visible = entity.get("visible", True) is not False
        return StatusBadge(
            text="Visible" if visible else "Hidden",
            style_class="bg-green-100 text-green-700" if visible else "bg-gray-100 text-gray-700",
        )

    def get_filter_categories(self, configured: Optional[Sequence[str]] = None) -> List[str]:
        return list(configured or self.default_filters)

    def get_empty_state(self, mode: str, configured: Optional[Mapping[str, Any]] = None) -> dict:
        if configured and configured.get(mode):
            return dict(configured[mode])
        noun = self.kind + "s"
        if mode == MODE_ADMIN:
            return {"icon": "📁", "title": f"No {noun} yet", "message": f"Add your first {self.kind}"}
        return {"icon": "🔍", "title": f"No {noun} found", "message": "Try selecting a different filter."}

    def _linked_by_ids(self, ids: Any, pool: Sequence[Mapping[str, Any]]) -> List[Mapping[str, Any]]:
        # Ids that no longer resolve are orphans and are dropped silently
        by_id = {entity_id(item): item for item in pool}
        return [by_id[str(i)] for i in ids or [] if str(i) in by_id]

    def _screenshot_descriptor(self, entity, preview_state) -> Optional[PreviewDescriptor]:
        title = self.get_title(entity)
        preview = (preview_state or {}).get(self.get_id(entity))
        if preview is not None and preview.url:
            return PreviewDescriptor(kind="screenshot", url=preview.url, alt=f"{title} website preview")

        live_url = self.get_live_url(entity)
        if live_url and self.screenshot_url is not None:
            return PreviewDescriptor(
                kind="screenshot",
                url=self.screenshot_url(live_url, self.get_id(entity)),
                alt=f"{title} website preview",
            )
        return None


class ProjectAdapter(EntityAdapter):
    kind = "project"
    default_filters = (FILTER_ALL, "web", "mobile", "ai-ml-dl", "other")

    def get_preview_descriptor(self, entity, preview_state=None):
        # Custom uploaded image > resolved preview > live screenshot > fallback
        images = entity.get("images") or []
        if images:
            image = images[0]
            return PreviewDescriptor(kind="custom", url=image.get("url"), alt=image.get("alt") or self.get_title(entity))

        return self._screenshot_descriptor(entity, preview_state) or FALLBACK

    def get_status_badge(self, entity):
        status = entity.get("status")
        if status == "completed":
            style = "bg-green-100 text-green-700"
        elif status == "in-progress":
            style = "bg-yellow-100 text-yellow-700"
        else:
            style = "bg-blue-100 text-blue-700"
        return StatusBadge(text=status.replace("-", " ") if status else "Unknown", style_class=style)

    def get_technologies(self, entity):
        return [t.strip() for t in entity.get("technologies") or [] if t and t.strip()]

    def get_linked_items(self, entity, pool):
        return self._linked_by_ids(entity.get("linkedCertificates"), pool)

    def get_external_links(self, entity):
        links = []
        for index, url in enumerate(entity.get("liveUrls") or [], start=1):
            if url:
                links.append(ExternalLink(type="live", url=url, label=f"Live Demo {index}"))
        for index, url in enumerate(entity.get("githubUrls") or [], start=1):
            if url:
                links.append(ExternalLink(type="github", url=url, label=f"GitHub {index}"))
        return links

    def get_description(self, entity):
        return entity.get("shortDescription") or ""

    def get_live_url(self, entity):
        return _first_url(entity.get("liveUrls"))

    def has_custom_image(self, entity):
        return bool(entity.get("images"))


def parse_skill_list(skills: Any) -> List[str]:
    """
    Normalize a skills field into a flat list of names.

    Accepts a real list, a list holding one JSON-encoded list, a JSON string
    or a comma-separated string. Blank names are dropped.
    """
    if not skills:
        return []
    if isinstance(skills, str):
        try:
            skills = json.loads(skills)
        except ValueError:
            skills = skills.split(",")
        if isinstance(skills, str):
            skills = [skills]

    names: List[str] = []
    for skill in skills:
        if isinstance(skill, str) and skill.startswith("["):
            try:
                parsed = json.loads(skill)
            except ValueError:
                parsed = [skill]
            names.extend(parsed if isinstance(parsed, list) else [skill])
        else:
            names.append(skill)
    return [n.strip() for n in names if isinstance(n, str) and n.strip()]


class CertificateAdapter(EntityAdapter):
    kind = "certificate"
    default_filters = (FILTER_ALL, "course", "workshop", "certification", "award", "other")

    CATEGORY_STYLES = {
        "workshop": "bg-purple-100 text-purple-700",
        "course": "bg-blue-100 text-blue-700",
        "certification": "bg-green-100 text-green-700",
    }

    def get_primary_file(self, entity) -> Optional[Mapping[str, Any]]:
        files = entity.get("files") or []
        if not files:
            return None
        return next((f for f in files if f.get("isPrimary")), files[0])

    def get_preview_descriptor(self, entity, preview_state=None):
        title = self.get_title(entity)

        preview_image = entity.get("previewImage")
        if isinstance(preview_image, str):
            preview_image = {"url": preview_image}
        if preview_image and preview_image.get("url"):
            return PreviewDescriptor(kind="image", url=preview_image["url"], alt=preview_image.get("alt") or title)

        primary = self.get_primary_file(entity)
        if primary is not None:
            mime = primary.get("mimeType") or ""
            if mime.startswith("image/"):
                return PreviewDescriptor(kind="image", url=primary.get("url"), alt=primary.get("originalName") or title)
            if "pdf" in mime:
                return PreviewDescriptor(
                    kind="pdf",
                    url=primary.get("thumbnailUrl"),
                    alt=primary.get("originalName") or title,
                    file=primary,
                )

        image = entity.get("image") or {}
        if image.get("url"):
            return PreviewDescriptor(kind="image", url=image["url"], alt=image.get("alt") or title)

        return FALLBACK

    def get_status_badge(self, entity):
        category = entity.get("category") or "certificate"
        return StatusBadge(text=category, style_class=self.CATEGORY_STYLES.get(category, "bg-gray-100 text-gray-700"))

    def get_technologies(self, entity):
        return parse_skill_list(entity.get("skills"))

    def get_linked_items(self, entity, pool):
        return self._linked_by_ids(entity.get("linkedProjects"), pool)

    def get_external_links(self, entity):
        if entity.get("credentialUrl"):
            return [ExternalLink(type="credential", url=entity["credentialUrl"], label="Verify Certificate")]
        return []

    def get_subtitle(self, entity):
        return entity.get("issuer") or "Unknown"

    def get_date(self, entity):
        parsed = _parse_date(entity.get("issueDate"))
        return parsed.strftime("%B %Y") if parsed else None

    def get_expiry_info(self, entity, now: Optional[datetime] = None) -> Optional[dict]:
        expiry = _parse_date(entity.get("expiryDate"))
        if expiry is None:
            return None
        now = now or datetime.now(timezone.utc)
        remaining = expiry - now
        return {
            "date": expiry.date().isoformat(),
            "is_expired": expiry < now,
            "days_until_expiry": remaining.days + (1 if remaining.seconds else 0),
        }


class RepositoryAdapter(EntityAdapter):
    """Repository summaries, in GitHub REST API shape."""

    kind = "repository"

    def get_title(self, entity):
        return entity.get("name") or entity.get("title") or "Untitled"

    def get_subtitle(self, entity):
        return entity.get("language") or "Unknown"

    def get_categories(self, entity):
        categories = [entity["language"].lower()] if entity.get("language") else []
        categories.extend(t for t in entity.get("topics") or [] if t)
        return categories

    def get_preview_descriptor(self, entity, preview_state=None):
        image = entity.get("image") or entity.get("socialPreviewUrl")
        if isinstance(image, str):
            image = {"url": image}
        if image and image.get("url"):
            return PreviewDescriptor(kind="custom", url=image["url"], alt=image.get("alt") or self.get_title(entity))
        return self._screenshot_descriptor(entity, preview_state) or FALLBACK

    def get_status_badge(self, entity):
        if entity.get("archived"):
            return StatusBadge(text="archived", style_class="bg-gray-100 text-gray-700")
        stars = entity.get("stargazers_count")
        if stars:
            return StatusBadge(text=f"★ {stars}", style_class="bg-yellow-100 text-yellow-700")
        return None

    def get_technologies(self, entity):
        technologies = [entity["language"]] if entity.get("language") else []
        technologies.extend(t for t in entity.get("topics") or [] if t and t not in technologies)
        return technologies

    def get_linked_items(self, entity, pool):
        # Projects that point at this repository through one of their GitHub URLs
        repo_url = (entity.get("html_url") or "").rstrip("/").lower()
        if not repo_url:
            return []
        return [
            item for item in pool
            if any((u or "").rstrip("/").lower() == repo_url for u in item.get("githubUrls") or [])
        ]

    def get_external_links(self, entity):
        links = []
        if entity.get("homepage"):
            links.append(ExternalLink(type="live", url=entity["homepage"], label="Homepage"))
        if entity.get("html_url"):
            links.append(ExternalLink(type="github", url=entity["html_url"], label="Repository"))
        return links

    def get_date(self, entity):
        parsed = _parse_date(entity.get("updated_at") or entity.get("created_at"))
        return parsed.date().isoformat() if parsed else None

    def get_live_url(self, entity):
        return entity.get("homepage") or None

    def has_custom_image(self, entity):
        return bool(entity.get("image") or entity.get("socialPreviewUrl"))


ADAPTERS: Dict[str, type] = {
    "project": ProjectAdapter,
    "certificate": CertificateAdapter,
    "repository": RepositoryAdapter,
}

# Store collection backing each kind
RESOURCE_FOR_KIND = {
    "project": "projects",
    "certificate": "certificates",
    "repository": "repositories",
}


def get_adapter(kind: str, screenshot_url: Optional[ScreenshotUrlBuilder] = None) -> EntityAdapter:
    adapter_cls = ADAPTERS.get(kind)
    if adapter_cls is None:
        raise KeyError(f"No adapter registered for entity kind '{kind}'")
    return adapter_cls(screenshot_url=screenshot_url)


def build_adapters(screenshot_url: Optional[ScreenshotUrlBuilder] = None) -> Dict[str, EntityAdapter]:
    """Instantiate every registered adapter with a shared screenshot URL builder."""
    return {kind: adapter_cls(screenshot_url=screenshot_url) for kind, adapter_cls in ADAPTERS.items()}
