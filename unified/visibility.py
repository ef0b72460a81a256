"""
unified/visibility.py — Effective visibility of skills and content items
========================================================================

Three override channels sit on top of each record's stored baseline flag:

  categories  category  → bool        bulk switch for a whole category
  items       item id   → bool        one skill / item
  sources     (name, source, source_id) → hide | show | delete
                                      one derived skill, at its origin

Resolution order (first match wins):
  1. derived skill with source action hide/delete  → hidden
     derived skill whose origin entity is gone      → hidden (orphan)
  2. category override                              → its value
  3. item override                                  → its value
  4. baseline ``visible`` / ``visibility``

The maps live behind VisibilityOverrideStore so the resolver never touches
globals. Stores hand out read-only OverrideMaps and every write publishes a
complete replacement, so a reader holding the previous maps never sees a
half-applied change.
"""

import abc
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple

import yaml

from unified.models import (
    ACTION_DELETE, ACTION_HIDE, DERIVED_SOURCES, OVERRIDE_ACTIONS,
    SourceKey, source_key,
)

logger = logging.getLogger(__name__)

Listener = Callable[["OverrideMaps"], None]

_HIDDEN_VALUES = {"private", "hidden", "false"}


def _frozen(data: Optional[Mapping] = None) -> Mapping:
    return MappingProxyType(dict(data or {}))


@dataclass(frozen=True)
class OverrideMaps:
    categories: Mapping[str, bool] = field(default_factory=_frozen)
    items:      Mapping[str, bool] = field(default_factory=_frozen)
    sources:    Mapping[SourceKey, str] = field(default_factory=_frozen)

    def with_category(self, category: str, visible: Optional[bool]) -> "OverrideMaps":
        categories = dict(self.categories)
        if visible is None:
            categories.pop(category, None)
        else:
            categories[category] = visible
        return OverrideMaps(_frozen(categories), self.items, self.sources)

    def with_items(self, item_ids: Iterable[str], visible: Optional[bool]) -> "OverrideMaps":
        items = dict(self.items)
        for item_id in item_ids:
            if visible is None:
                items.pop(item_id, None)
            else:
                items[item_id] = visible
        return OverrideMaps(self.categories, _frozen(items), self.sources)

    def with_source(self, key: SourceKey, action: Optional[str]) -> "OverrideMaps":
        if action is not None and action not in OVERRIDE_ACTIONS:
            raise ValueError(f"Invalid override action '{action}'. Must be one of {OVERRIDE_ACTIONS}")
        sources = dict(self.sources)
        if action is None:
            sources.pop(key, None)
        else:
            sources[key] = action
        return OverrideMaps(self.categories, self.items, _frozen(sources))

    # --- serialization (YAML-friendly: tuple keys become records) ---

    def to_dict(self) -> dict:
        return {
            "categories": dict(self.categories),
            "items": dict(self.items),
            "sources": [
                {"skillName": name, "source": source, "sourceId": source_id, "action": action}
                for (name, source, source_id), action in self.sources.items()
            ],
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "OverrideMaps":
        data = data or {}
        sources = {}
        for entry in data.get("sources") or []:
            if entry.get("action") not in OVERRIDE_ACTIONS:
                logger.warning(f"Skipping source override with unknown action: {entry}")
                continue
            key = source_key(entry["skillName"], entry["source"], entry["sourceId"])
            sources[key] = entry["action"]
        return cls(
            categories=_frozen({k: bool(v) for k, v in (data.get("categories") or {}).items()}),
            items=_frozen({str(k): bool(v) for k, v in (data.get("items") or {}).items()}),
            sources=_frozen(sources),
        )


class VisibilityOverrideStore(abc.ABC):
    """get/set/subscribe over the current OverrideMaps."""

    def __init__(self):
        self._listeners: List[Listener] = []

    @abc.abstractmethod
    def get(self) -> OverrideMaps:
        ...

    @abc.abstractmethod
    def _write(self, maps: OverrideMaps) -> None:
        ...

    def set(self, maps: OverrideMaps) -> None:
        self._write(maps)
        for listener in list(self._listeners):
            listener(maps)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


class InMemoryOverrideStore(VisibilityOverrideStore):
    def __init__(self, maps: Optional[OverrideMaps] = None):
        super().__init__()
        self._maps = maps or OverrideMaps()

    def get(self) -> OverrideMaps:
        return self._maps

    def _write(self, maps: OverrideMaps) -> None:
        self._maps = maps


class YamlOverrideStore(VisibilityOverrideStore):
    """Override maps persisted to a YAML file, rewritten on every set()."""

    def __init__(self, path: Path | str):
        super().__init__()
        self.path = Path(path)
        self._maps = self._load()

    def _load(self) -> OverrideMaps:
        if not self.path.exists():
            return OverrideMaps()
        with open(self.path) as f:
            return OverrideMaps.from_dict(yaml.safe_load(f) or {})

    def get(self) -> OverrideMaps:
        return self._maps

    def _write(self, maps: OverrideMaps) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            yaml.dump(maps.to_dict(), f, default_flow_style=False, allow_unicode=True, sort_keys=False)
        self._maps = maps
        logger.debug(f"Saved visibility overrides to {self.path}")


# --- record accessors (Skill dataclasses and raw entity dicts alike) ---

def _field(record: Any, *names: str) -> Any:
    for name in names:
        if isinstance(record, Mapping):
            if name in record:
                return record[name]
        elif hasattr(record, name):
            return getattr(record, name)
    return None


def record_id(record: Any) -> Optional[str]:
    value = _field(record, "id", "_id")
    return str(value) if value is not None else None


def record_key(record: Any) -> Optional[SourceKey]:
    """Source identity of a derived skill, None for everything else."""
    source = _field(record, "source")
    source_id = _field(record, "source_id", "sourceId")
    name = _field(record, "name")
    if source not in DERIVED_SOURCES or source_id is None or not name:
        return None
    return source_key(name, source, source_id)


def baseline_visible(record: Any) -> bool:
    visible = _field(record, "visible")
    if isinstance(visible, bool):
        return visible
    visibility = _field(record, "visibility")
    if isinstance(visibility, bool):
        return visibility
    if isinstance(visibility, str):
        return visibility.strip().lower() not in _HIDDEN_VALUES
    return True


class VisibilityResolver:
    """
    Computes effective visibility from a VisibilityOverrideStore.

    Args:
        store:         Override maps provider
        origin_exists: ``(source, source_id) -> bool``; when given, derived
                       skills whose origin entity is missing resolve hidden
    """

    def __init__(self, store: VisibilityOverrideStore,
                 origin_exists: Optional[Callable[[str, str], bool]] = None):
        self.store = store
        self.origin_exists = origin_exists

    def effective_visible(self, record: Any, maps: Optional[OverrideMaps] = None) -> bool:
        maps = maps or self.store.get()

        key = record_key(record)
        if key is not None:
            if maps.sources.get(key) in (ACTION_HIDE, ACTION_DELETE):
                return False
            if self.origin_exists is not None and not self.origin_exists(key[1], key[2]):
                return False

        category = _field(record, "category")
        if category is not None and category in maps.categories:
            return maps.categories[category]

        item_id = record_id(record)
        if item_id is not None and item_id in maps.items:
            return maps.items[item_id]

        return baseline_visible(record)

    def is_marked_for_deletion(self, record: Any) -> bool:
        key = record_key(record)
        return key is not None and self.store.get().sources.get(key) == ACTION_DELETE

    def annotate(self, records: Iterable[Any]) -> List[Tuple[Any, bool]]:
        maps = self.store.get()
        return [(record, self.effective_visible(record, maps)) for record in records]

    def visible_only(self, records: Iterable[Any]) -> List[Any]:
        return [record for record, visible in self.annotate(records) if visible]

    # --- writers; each publishes a full replacement ---

    def set_category_visible(self, category: str, visible: Optional[bool]) -> None:
        """Set (or with None, clear) the category override."""
        self.store.set(self.store.get().with_category(category, visible))

    def toggle_category(self, category: str) -> bool:
        current = self.store.get().categories.get(category, True)
        self.set_category_visible(category, not current)
        return not current

    def set_item_visible(self, item_id: str, visible: Optional[bool]) -> None:
        self.store.set(self.store.get().with_items([item_id], visible))

    def set_items_visible(self, item_ids: Iterable[str], visible: bool) -> None:
        self.store.set(self.store.get().with_items(list(item_ids), visible))

    def hide_all_in_category(self, category: str, records: Iterable[Any]) -> int:
        return self._bulk_category(category, records, False)

    def show_all_in_category(self, category: str, records: Iterable[Any]) -> int:
        return self._bulk_category(category, records, True)

    def _bulk_category(self, category: str, records: Iterable[Any], visible: bool) -> int:
        # Item channel only; the category override is left untouched
        ids = [record_id(r) for r in records if _field(r, "category") == category]
        ids = [i for i in ids if i is not None]
        self.set_items_visible(ids, visible)
        logger.info(f"{'Showed' if visible else 'Hid'} {len(ids)} items in category '{category}'")
        return len(ids)

    def set_source_action(self, record: Any, action: Optional[str]) -> None:
        key = record_key(record)
        if key is None:
            raise ValueError("Source overrides apply only to derived skills")
        self.store.set(self.store.get().with_source(key, action))
