"""
unified/store.py — Optimistic content store
============================================

Client-side state for about / projects / certificates / skills /
configuration (plus read-only repository summaries).

Every mutation follows the same three phases:

  1. apply   synthesize the post-mutation state and publish it right away
             (temp id for create, shallow merge for update, removal for delete)
  2. call    issue the matching content API request
  3. settle  success → swap in the server's record (temp id → real id)
             failure → put the affected record back exactly as it was
                       (same fields, same position) and return
                       MutationResult(success=False, message=...)

Phase 1 runs synchronously before the first await, so subscribers see the
change in the same tick as the user action. Snapshots are per record:
independent mutations on different records settle independently, and two
overlapping edits of the same record are not queued (the last one to settle
wins).

This is the only place where ContentAPIError becomes a structured result;
callers never see the exception.
"""

import logging
import uuid
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from connectors.content_api import COLLECTIONS, SINGLETONS, ContentAPIError
from unified.models import (
    ACTION_DELETE, SOURCE_CERTIFICATE, SOURCE_PROJECT,
    LocalValidationError, MutationResult, Skill, entity_id,
)
from unified.skills import without_mention
from unified.visibility import InMemoryOverrideStore, VisibilityOverrideStore, record_key

logger = logging.getLogger(__name__)

READ_ONLY = ("repositories",)

# Origin collection and mention field of each derived-skill source
ORIGINS = {
    SOURCE_PROJECT: ("projects", "technologies"),
    SOURCE_CERTIFICATE: ("certificates", "skills"),
}

Listener = Callable[[str, Any], None]


def _temp_id() -> str:
    return f"temp_{uuid.uuid4().hex[:12]}"


class OptimisticStore:
    """
    Args:
        api:             content API connector (or a test double with the same methods)
        overrides:       visibility override store used for skill source overrides
        required_fields: ``{resource: [field, ...]}`` plural fields that may never become empty
        id_factory:      temp id generator for optimistic creates
    """

    def __init__(self, api, overrides: Optional[VisibilityOverrideStore] = None,
                 required_fields: Optional[Mapping[str, Sequence[str]]] = None,
                 id_factory: Callable[[], str] = _temp_id):
        self.api = api
        self.overrides = overrides or InMemoryOverrideStore()
        self.required_fields = {k: tuple(v) for k, v in (required_fields or {}).items()}
        self.id_factory = id_factory
        self._collections: Dict[str, Tuple[Mapping[str, Any], ...]] = {
            name: () for name in COLLECTIONS + READ_ONLY
        }
        self._singletons: Dict[str, Optional[Mapping[str, Any]]] = {name: None for name in SINGLETONS}
        self._listeners: List[Listener] = []
        self._closed = False
        self.loaded = False

    @classmethod
    def from_config(cls, api, config: dict,
                    overrides: Optional[VisibilityOverrideStore] = None) -> "OptimisticStore":
        required = config.get("content", {}).get("required_fields", {})
        return cls(api, overrides=overrides, required_fields=required)

    # --- reading ---

    def get(self, resource: str) -> Any:
        if resource in self._collections:
            return self._collections[resource]
        if resource in self._singletons:
            return self._singletons[resource]
        raise KeyError(f"Unknown resource '{resource}'")

    @property
    def about(self) -> Optional[Mapping[str, Any]]:
        return self._singletons["about"]

    @property
    def configuration(self) -> Optional[Mapping[str, Any]]:
        return self._singletons["configuration"]

    @property
    def projects(self) -> Tuple[Mapping[str, Any], ...]:
        return self._collections["projects"]

    @property
    def certificates(self) -> Tuple[Mapping[str, Any], ...]:
        return self._collections["certificates"]

    @property
    def repositories(self) -> Tuple[Mapping[str, Any], ...]:
        return self._collections["repositories"]

    def skills(self) -> List[Skill]:
        return [Skill.from_record(record) for record in self._collections["skills"]]

    def find(self, resource: str, item_id: str) -> Optional[Mapping[str, Any]]:
        _, item = self._locate(resource, item_id)
        return item

    def has_origin(self, source: str, source_id: str) -> bool:
        """True when the entity a derived skill came from is still present."""
        origin = ORIGINS.get(source)
        return origin is not None and self.find(origin[0], source_id) is not None

    # --- publishing ---

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Listener is called as ``listener(resource, new_value)``; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        """Stop applying and publishing state; late reconciles become no-ops."""
        self._closed = True
        self._listeners.clear()

    def _commit(self, resource: str, value: Any) -> None:
        if self._closed:
            return
        if resource in self._collections:
            self._collections[resource] = tuple(value)
            value = self._collections[resource]
        else:
            value = MappingProxyType(dict(value)) if value is not None else None
            self._singletons[resource] = value
        for listener in list(self._listeners):
            listener(resource, value)

    def load(self, data: Mapping[str, Any]) -> None:
        """Seed state from a content fetch payload, publishing each resource."""
        for resource, value in data.items():
            if resource in self._collections:
                self._commit(resource, [dict(item) for item in value or []])
            elif resource in self._singletons:
                self._commit(resource, value)
        self.loaded = True

    # --- fetching ---

    async def fetch_all(self) -> MutationResult:
        try:
            data = await self.api.fetch_all()
        except ContentAPIError as e:
            logger.error(f"Error fetching content: {e.message}")
            return MutationResult(False, e.message or "Fetch failed")
        self.load(data)
        logger.info(
            f"Loaded {len(self.projects)} projects, {len(self.certificates)} certificates, "
            f"{len(self._collections['skills'])} skills"
        )
        return MutationResult(True)

    async def refresh(self, resource: str) -> MutationResult:
        try:
            records = await self.api.fetch(resource)
        except ContentAPIError as e:
            logger.error(f"Error refreshing {resource}: {e.message}")
            return MutationResult(False, e.message or "Refresh failed")
        self._commit(resource, [dict(r) for r in records or []])
        return MutationResult(True)

    async def refresh_skills(self) -> MutationResult:
        return await self.refresh("skills")

    async def fetch_repositories(self, username: str) -> MutationResult:
        try:
            repos = await self.api.fetch_repositories(username)
        except ContentAPIError as e:
            logger.error(f"Error fetching repositories for {username}: {e.message}")
            return MutationResult(False, e.message or "Fetch failed")
        self._commit("repositories", [dict(r) for r in repos or []])
        return MutationResult(True)

    # --- helpers ---

    def _locate(self, resource: str, item_id: str) -> Tuple[int, Optional[Mapping[str, Any]]]:
        for index, item in enumerate(self._collections.get(resource, ())):
            if entity_id(item) == str(item_id):
                return index, item
        return -1, None

    def _without(self, resource: str, item_id: str) -> List[Mapping[str, Any]]:
        return [i for i in self._collections[resource] if entity_id(i) != str(item_id)]

    def _replace(self, resource: str, item_id: str, record: Mapping[str, Any]) -> None:
        self._commit(resource, [record if entity_id(i) == str(item_id) else i
                                for i in self._collections[resource]])

    def _restore(self, resource: str, item_id: str, snapshot: Mapping[str, Any], index: int) -> None:
        """Put *snapshot* back in place, or at its old position if it was removed."""
        if self._locate(resource, item_id)[1] is not None:
            self._replace(resource, item_id, snapshot)
            return
        items = list(self._collections[resource])
        items.insert(min(index, len(items)), snapshot)
        self._commit(resource, items)

    def _check_writable(self, resource: str) -> None:
        if resource in READ_ONLY:
            raise LocalValidationError(f"'{resource}' is read-only")
        if resource not in self._collections and resource not in self._singletons:
            raise LocalValidationError(f"Unknown resource '{resource}'")

    @staticmethod
    def _check_not_derived(resource: str, item_id: Any, verb: str) -> None:
        if resource == "skills" and str(item_id).startswith(("proj_", "cert_")):
            raise LocalValidationError(
                f"Derived skills cannot be {verb} directly; change their project or certificate instead"
            )

    def validate(self, resource: str, record: Mapping[str, Any]) -> None:
        """Raise LocalValidationError if *record* empties a required plural field."""
        for field_name in self.required_fields.get(resource, ()):
            if field_name in record and not record[field_name]:
                raise LocalValidationError(f"{resource}: '{field_name}' must keep at least one entry")

    @staticmethod
    def _failed(operation: str, resource: str, error: ContentAPIError, default: str) -> MutationResult:
        message = error.message or default
        logger.warning(f"{operation} on {resource} failed, rolled back: {message}")
        return MutationResult(False, message)

    # --- mutations ---

    async def create(self, resource: str, data: Mapping[str, Any]) -> MutationResult:
        self._check_writable(resource)
        if resource in self._singletons:
            return await self._put_singleton(resource, dict(data), replace=True)

        self.validate(resource, data)
        temp_id = self.id_factory()
        self._commit(resource, list(self._collections[resource]) + [{**data, "_id": temp_id}])

        try:
            created = await self.api.create(resource, dict(data))
        except ContentAPIError as e:
            self._commit(resource, self._without(resource, temp_id))
            return self._failed("create", resource, e, "Creation failed")

        real_id = entity_id(created) if created else None
        if real_id is None:
            # No server record to swap in; the temp id must not outlive the call
            self._commit(resource, self._without(resource, temp_id))
            logger.warning(f"Create of {resource} returned no record, refetching")
            await self.refresh(resource)
            return MutationResult(True, data=created or None)
        if self._locate(resource, real_id)[1] is not None:
            # Already present (e.g. a refetch landed first); just drop the temp entry
            self._commit(resource, self._without(resource, temp_id))
        else:
            self._replace(resource, temp_id, created)
        logger.info(f"Created {resource} record {real_id}")
        return MutationResult(True, data=created)

    async def update(self, resource: str, item_id: Optional[str], data: Mapping[str, Any]) -> MutationResult:
        self._check_writable(resource)
        if resource in self._singletons:
            return await self._put_singleton(resource, dict(data), replace=False)
        self._check_not_derived(resource, item_id, "edited")

        index, previous = self._locate(resource, item_id)
        if previous is None:
            return MutationResult(False, f"{resource} record {item_id} not found")
        merged = {**previous, **data}
        self.validate(resource, merged)
        self._replace(resource, item_id, merged)

        try:
            if set(data) == {"visible"} and isinstance(data["visible"], bool):
                saved = await self.api.set_visibility(resource, item_id, data["visible"])
            else:
                saved = await self.api.update(resource, item_id, dict(data))
        except ContentAPIError as e:
            self._restore(resource, item_id, previous, index)
            return self._failed("update", resource, e, "Update failed")

        if saved:
            self._replace(resource, item_id, saved)
        logger.info(f"Updated {resource} record {item_id}")
        return MutationResult(True, data=saved)

    async def delete(self, resource: str, item_id: str) -> MutationResult:
        self._check_writable(resource)
        if resource in self._singletons:
            raise LocalValidationError(f"'{resource}' cannot be deleted")
        self._check_not_derived(resource, item_id, "deleted")

        index, previous = self._locate(resource, item_id)
        if previous is None:
            return MutationResult(False, f"{resource} record {item_id} not found")
        self._commit(resource, self._without(resource, item_id))

        try:
            await self.api.delete(resource, item_id)
        except ContentAPIError as e:
            self._restore(resource, item_id, previous, index)
            return self._failed("delete", resource, e, "Deletion failed")

        logger.info(f"Deleted {resource} record {item_id}")
        return MutationResult(True)

    async def bulk_delete(self, resource: str, item_ids: Iterable[str]) -> MutationResult:
        self._check_writable(resource)
        wanted = {str(i) for i in item_ids}
        snapshots = [(index, item) for index, item in enumerate(self._collections[resource])
                     if entity_id(item) in wanted]
        self._commit(resource, [i for i in self._collections[resource] if entity_id(i) not in wanted])

        try:
            await self.api.bulk_delete(resource, sorted(wanted))
        except ContentAPIError as e:
            for index, item in snapshots:
                self._restore(resource, entity_id(item), item, index)
            return self._failed("bulk delete", resource, e, "Bulk deletion failed")

        logger.info(f"Deleted {len(snapshots)} {resource} records")
        return MutationResult(True)

    async def _put_singleton(self, name: str, data: dict, replace: bool) -> MutationResult:
        previous = self._singletons[name]
        self._commit(name, data if replace else {**(previous or {}), **data})

        try:
            saved = await self.api.replace_singleton(name, data)
        except ContentAPIError as e:
            self._commit(name, previous)
            return self._failed("update", name, e, "Update failed")

        if saved:
            self._commit(name, saved)
        logger.info(f"Saved {name}")
        return MutationResult(True, data=saved)

    async def reset_configuration(self) -> MutationResult:
        # Defaults live server-side, so there is nothing to apply optimistically
        try:
            saved = await self.api.reset_configuration()
        except ContentAPIError as e:
            logger.warning(f"Configuration reset failed: {e.message}")
            return MutationResult(False, e.message or "Reset failed")
        self._commit("configuration", saved)
        return MutationResult(True, data=saved)

    # --- derived skill overrides ---

    async def override_skill(self, skill: Any, action: str) -> MutationResult:
        """Set a hide/show/delete source override for one derived skill."""
        return await self._set_source_override(skill, action)

    async def restore_skill(self, skill: Any) -> MutationResult:
        """Remove the source override of one derived skill."""
        return await self._set_source_override(skill, None)

    async def _set_source_override(self, skill: Any, action: Optional[str]) -> MutationResult:
        key = record_key(skill)
        if key is None:
            raise LocalValidationError("Source overrides apply only to project or certificate skills")
        previous = self.overrides.get().sources.get(key)
        self.overrides.set(self.overrides.get().with_source(key, action))

        name, source, source_id = self._skill_identity(skill)
        try:
            if action is None:
                await self.api.clear_skill_override(name, source, source_id)
            else:
                await self.api.set_skill_override(name, source, source_id, action)
        except ContentAPIError as e:
            self.overrides.set(self.overrides.get().with_source(key, previous))
            return self._failed("skill override", "skills", e, "Failed to update skill")

        logger.info(f"Skill override for '{name}' ({source} {source_id}): {action or 'restored'}")
        return MutationResult(True)

    @staticmethod
    def _skill_identity(skill: Any) -> Tuple[str, str, str]:
        if isinstance(skill, Mapping):
            skill = Skill.from_record(skill)
        return skill.name, skill.source, skill.source_id

    async def remove_derived_skill(self, skill: Any) -> MutationResult:
        """
        Permanently remove a derived skill by editing its origin entity.

        The skill is marked ``delete`` at once so it disappears from view; the
        origin's mention list is then updated through the normal update path.
        """
        key = record_key(skill)
        if key is None:
            raise LocalValidationError("Only project or certificate skills can be removed from their origin")
        name, source, source_id = self._skill_identity(skill)
        resource, field_name = ORIGINS[source]

        origin = self.find(resource, source_id)
        if origin is None:
            return MutationResult(False, f"'{name}' no longer has a {source} to remove it from")
        remaining = without_mention(origin.get(field_name), name)
        self.validate(resource, {field_name: remaining})

        previous = self.overrides.get().sources.get(key)
        self.overrides.set(self.overrides.get().with_source(key, ACTION_DELETE))

        result = await self.update(resource, source_id, {field_name: remaining})
        if not result.success:
            self.overrides.set(self.overrides.get().with_source(key, previous))
            return result

        self._commit("skills", [s for s in self._collections["skills"]
                                if record_key(s) != key])
        self.overrides.set(self.overrides.get().with_source(key, None))
        logger.info(f"Removed '{name}' from {source} {source_id}")
        return MutationResult(True)
