"""
unified/renderer.py — Unified card / modal / list rendering
============================================================

Turns raw entities into JSON-ready view models. Every kind goes through the
same code path; all kind-specific knowledge comes from the EntityAdapter.

Modes
-----
  home   read-only: hidden items dropped, external links and the live
         preview badge exposed, no actions
  admin  every item kept and annotated with its effective visibility,
         edit / delete / toggle_visibility / link actions exposed

List pipeline (in order)
------------------------
  1. mode filter      home drops items whose effective visibility is False
  2. facet filter     selected facet must equal the item's category or one of
                      its subcategories, unless it is "all"

A list holds one ``expanded_id``: opening an item replaces whatever was open,
closing clears it, so at most one modal exists at a time.

Actions are forwarded to the caller's callbacks unchanged and their return
value is handed back; the renderer never mutates anything itself.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from unified.adapters import EntityAdapter
from unified.models import FILTER_ALL, MODE_ADMIN, MODE_HOME, MODES, Skill
from unified.preview import PreviewResolver
from unified.skills import group_skills
from unified.visibility import VisibilityResolver

logger = logging.getLogger(__name__)

ADMIN_ACTIONS = ("edit", "delete", "toggle_visibility", "link")


@dataclass(frozen=True)
class Resolvers:
    visibility: VisibilityResolver
    preview: Optional[PreviewResolver] = None

    def preview_state(self) -> Mapping:
        return self.preview.state if self.preview is not None else {}


@dataclass
class Actions:
    """Caller-supplied callbacks; each receives the entity first."""
    edit:              Optional[Callable[..., Any]] = None
    delete:            Optional[Callable[..., Any]] = None
    toggle_visibility: Optional[Callable[..., Any]] = None
    link:              Optional[Callable[..., Any]] = None

    def available(self) -> List[str]:
        return [name for name in ADMIN_ACTIONS if getattr(self, name) is not None]


@dataclass
class RenderedCard:
    card:   Dict[str, Any]
    entity: Mapping[str, Any]
    expand: Callable[[], None]
    _actions: Actions = field(default_factory=Actions, repr=False)

    def invoke(self, action: str, *args: Any, **kwargs: Any) -> Any:
        """Forward *action* to its callback as ``callback(entity, *args)``."""
        if action not in self.card.get("actions", []):
            raise KeyError(f"Action '{action}' is not available in {self.card['mode']} mode")
        return getattr(self._actions, action)(self.entity, *args, **kwargs)


def _check_mode(mode: str) -> None:
    if mode not in MODES:
        raise ValueError(f"Unknown mode '{mode}'. Must be one of {MODES}")


def render(entity: Mapping[str, Any], adapter: EntityAdapter, mode: str,
           resolvers: Resolvers, actions: Optional[Actions] = None,
           on_expand: Optional[Callable[[str], None]] = None) -> RenderedCard:
    _check_mode(mode)
    actions = actions or Actions()
    item_id = adapter.get_id(entity)
    preview = adapter.get_preview_descriptor(entity, resolvers.preview_state())
    status = adapter.get_status_badge(entity)

    card = {
        "id": item_id,
        "kind": adapter.kind,
        "mode": mode,
        "title": adapter.get_title(entity),
        "subtitle": adapter.get_subtitle(entity),
        "description": adapter.get_description(entity),
        "date": adapter.get_date(entity),
        "categories": adapter.get_categories(entity),
        "technologies": adapter.get_technologies(entity),
        "preview": preview.to_dict(),
        "status": asdict(status) if status else None,
    }

    if mode == MODE_HOME:
        card["links"] = [asdict(link) for link in adapter.get_external_links(entity)]
        card["live_preview"] = preview.kind == "screenshot"
        card["actions"] = []
    else:
        visible = resolvers.visibility.effective_visible(entity)
        card["visible"] = visible
        card["visibility"] = asdict(adapter.get_visibility({**entity, "visible": visible}))
        card["actions"] = actions.available()

    def expand() -> None:
        if on_expand is not None:
            on_expand(item_id)

    return RenderedCard(card=card, entity=entity, expand=expand, _actions=actions)


def render_modal(entity: Mapping[str, Any], adapter: EntityAdapter, mode: str,
                 resolvers: Resolvers, linked_pool: Sequence[Mapping[str, Any]] = (),
                 actions: Optional[Actions] = None) -> Dict[str, Any]:
    """Card fields plus the detail-only ones (full description, links, linked items)."""
    modal = render(entity, adapter, mode, resolvers, actions).card
    linked = adapter.get_linked_items(entity, linked_pool)
    if mode == MODE_HOME:
        linked = resolvers.visibility.visible_only(linked)

    modal["full_description"] = adapter.get_full_description(entity) or modal["description"]
    modal["links"] = [asdict(link) for link in adapter.get_external_links(entity)]
    modal["linked_items"] = [
        {"id": item.get("_id", item.get("id")), "title": item.get("title") or item.get("name")}
        for item in linked
    ]
    expiry = getattr(adapter, "get_expiry_info", None)
    if expiry is not None:
        modal["expiry"] = expiry(entity)
    return modal


class UnifiedList:
    """
    One list instance: facet selection, the expanded item and rendering.

    Args:
        adapter:      adapter for the kind being listed
        mode:         "home" or "admin"
        resolvers:    visibility (and optional preview) resolvers
        actions:      admin callbacks, ignored in home mode
        filters:      facet list; defaults to the adapter's
        empty_state:  configured ``{mode: {icon, title, message}}``
        linked_pool:  entities the modal's linked items are looked up in
    """

    def __init__(self, adapter: EntityAdapter, mode: str, resolvers: Resolvers,
                 actions: Optional[Actions] = None,
                 filters: Optional[Sequence[str]] = None,
                 empty_state: Optional[Mapping[str, Any]] = None,
                 linked_pool: Sequence[Mapping[str, Any]] = ()):
        _check_mode(mode)
        self.adapter = adapter
        self.mode = mode
        self.resolvers = resolvers
        self.actions = actions if mode == MODE_ADMIN else None
        self.filters = adapter.get_filter_categories(filters)
        self.empty_state = adapter.get_empty_state(mode, empty_state)
        self.linked_pool = linked_pool
        self.selected_filter = FILTER_ALL
        self.expanded_id: Optional[str] = None

    # --- facet ---

    def select_filter(self, facet: Optional[str]) -> None:
        self.selected_filter = facet or FILTER_ALL

    def _matches_facet(self, entity: Mapping[str, Any]) -> bool:
        if self.selected_filter == FILTER_ALL:
            return True
        return self.selected_filter in self.adapter.get_categories(entity)

    # --- expansion ---

    def open(self, item_id: str) -> None:
        self.expanded_id = item_id

    def close(self) -> None:
        self.expanded_id = None

    def is_open(self, item_id: str) -> bool:
        return self.expanded_id == item_id

    # --- pipeline ---

    def items(self, entities: Iterable[Mapping[str, Any]]) -> List[Tuple[Mapping[str, Any], bool]]:
        """Entities that survive the mode and facet filters, with their visibility."""
        annotated = self.resolvers.visibility.annotate(entities)
        if self.mode == MODE_HOME:
            annotated = [(e, visible) for e, visible in annotated if visible]
        return [(e, visible) for e, visible in annotated if self._matches_facet(e)]

    def cards(self, entities: Iterable[Mapping[str, Any]]) -> List[RenderedCard]:
        return [
            render(entity, self.adapter, self.mode, self.resolvers, self.actions, on_expand=self.open)
            for entity, _ in self.items(entities)
        ]

    def find(self, entities: Iterable[Mapping[str, Any]], item_id: str) -> Optional[RenderedCard]:
        for card in self.cards(entities):
            if card.card["id"] == item_id:
                return card
        return None

    def render(self, entities: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
        shown = [entity for entity, _ in self.items(entities)]
        cards = [
            render(entity, self.adapter, self.mode, self.resolvers, self.actions, on_expand=self.open).card
            for entity in shown
        ]

        modal = None
        if self.expanded_id is not None:
            expanded = next((e for e in shown if self.adapter.get_id(e) == self.expanded_id), None)
            if expanded is not None:
                modal = render_modal(expanded, self.adapter, self.mode, self.resolvers,
                                     self.linked_pool, self.actions)

        return {
            "kind": self.adapter.kind,
            "mode": self.mode,
            "filters": self.filters,
            "selected_filter": self.selected_filter,
            "items": cards,
            "count": len(cards),
            "empty_state": None if cards else self.empty_state,
            "expanded_id": self.expanded_id,
            "modal": modal,
        }


def render_skills(skills: Iterable[Skill], resolver: VisibilityResolver, mode: str,
                  search: Optional[str] = None, category: str = FILTER_ALL,
                  source: str = FILTER_ALL) -> Dict[str, Any]:
    """Skills board: grouped by category, hidden skills dropped in home mode."""
    _check_mode(mode)
    skills = list(skills)
    maps = resolver.store.get()
    visible = {skill.id: resolver.effective_visible(skill, maps) for skill in skills}
    if mode == MODE_HOME:
        skills = [s for s in skills if visible[s.id]]

    groups = group_skills(skills, visible=visible, search=search, category=category, source=source)
    rendered = {}
    for name, group in groups.items():
        entries = []
        for skill in group["skills"]:
            entry = {"id": skill.id, "name": skill.name, "source": skill.source, "level": skill.level}
            if skill.source_name:
                entry["source_name"] = skill.source_name
            if mode == MODE_ADMIN:
                entry["visible"] = visible[skill.id]
                entry["marked_for_deletion"] = resolver.is_marked_for_deletion(skill)
                if skill.override_action:
                    entry["override_action"] = skill.override_action
            entries.append(entry)
        rendered[name] = {"skills": entries, "total": group["total"], "visible": group["visible"]}
        if mode == MODE_ADMIN:
            rendered[name]["category_override"] = maps.categories.get(name)
    return {"mode": mode, "categories": rendered}
