"""
app/dependencies/portfolio.py — Shared view-service state
==========================================================

One Portfolio per app: the optimistic store, the resolvers and one adapter
per entity kind. Routers get it through ``Depends(get_portfolio)``.

Usage
-----
::

    @router.get("/home/{kind}")
    async def list_items(kind: str, portfolio: Portfolio = Depends(get_portfolio)):
        view = portfolio.list_view(kind, MODE_HOME)
        ...
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from fastapi import HTTPException, Request

from unified.adapters import RESOURCE_FOR_KIND, EntityAdapter, build_adapters
from unified.models import MODE_ADMIN, MODE_HOME, Skill, entity_id
from unified.preview import PreviewResolver
from unified.renderer import Actions, Resolvers, UnifiedList
from unified.skills import derive_skills
from unified.store import READ_ONLY, OptimisticStore
from unified.visibility import InMemoryOverrideStore, VisibilityResolver

logger = logging.getLogger(__name__)

# Kind whose entities a modal's linked items are looked up in
LINKED_KIND = {
    "project": "certificate",
    "certificate": "project",
    "repository": "project",
}


class Portfolio:
    def __init__(self, store: OptimisticStore, preview: Optional[PreviewResolver] = None,
                 config: Optional[dict] = None, screenshot_url=None):
        self.store = store
        self.config = config or {}
        # Category and item overrides are a skills-board concern; content items
        # resolve from their own visible flag only
        self.visibility = VisibilityResolver(store.overrides, origin_exists=store.has_origin)
        self.content_visibility = VisibilityResolver(InMemoryOverrideStore())
        self.preview = preview
        self.adapters: Dict[str, EntityAdapter] = build_adapters(screenshot_url)

    # --- lookups ---

    def adapter(self, kind: str) -> EntityAdapter:
        adapter = self.adapters.get(kind)
        if adapter is None:
            raise HTTPException(404, f"Unknown kind '{kind}'")
        return adapter

    def entities(self, kind: str) -> Sequence[Mapping[str, Any]]:
        return self.store.get(RESOURCE_FOR_KIND[kind])

    def resolvers(self, mode: str) -> Resolvers:
        # Admin cards never show a live preview, so they skip the preview state
        return Resolvers(self.content_visibility, self.preview if mode == MODE_HOME else None)

    def actions(self, kind: str) -> Actions:
        """Card actions bound to the store; repositories are read-only."""
        resource = RESOURCE_FOR_KIND[kind]
        if resource in READ_ONLY:
            return Actions()
        return Actions(
            edit=lambda entity, data: self.store.update(resource, entity_id(entity), data),
            delete=lambda entity: self.store.delete(resource, entity_id(entity)),
            toggle_visibility=lambda entity, visible: self.store.update(
                resource, entity_id(entity), {"visible": visible}),
        )

    def list_view(self, kind: str, mode: str) -> UnifiedList:
        adapter = self.adapter(kind)
        content = self.config.get("content", {})
        linked_kind = LINKED_KIND.get(kind)
        return UnifiedList(
            adapter,
            mode,
            self.resolvers(mode),
            actions=self.actions(kind) if mode == MODE_ADMIN else None,
            filters=content.get("filters", {}).get(kind),
            empty_state=content.get("empty_states", {}).get(kind),
            linked_pool=self.entities(linked_kind) if linked_kind else (),
        )

    def skills(self) -> List[Skill]:
        """Stored skills plus any project/certificate mention the API has not projected yet."""
        stored = self.store.skills()
        known = {skill.id for skill in stored}
        derived = [s for s in derive_skills(self.store.projects, self.store.certificates)
                   if s.id not in known]
        return stored + derived


def get_portfolio(request: Request) -> Portfolio:
    portfolio = getattr(request.app.state, "portfolio", None)
    if portfolio is None:
        raise HTTPException(503, "Portfolio content not loaded yet")
    return portfolio
