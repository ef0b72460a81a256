"""
unified/models.py — Value types shared by the Unified layer
============================================================

Entities (projects, certificates, repository summaries) stay plain dicts as
they arrive from the content API; only the small value objects the pipeline
produces or passes around are typed here.

Entity ids:
  The content API keys records by ``_id``; repository summaries and test
  doubles may use ``id``. ``entity_id()`` hides the difference.

Skill sources:
  manual       → stored skill record, deletable directly
  project      → derived from a project's ``technologies`` list
  certificate  → derived from a certificate's ``skills`` list
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple

SOURCE_MANUAL = "manual"
SOURCE_PROJECT = "project"
SOURCE_CERTIFICATE = "certificate"
DERIVED_SOURCES = (SOURCE_PROJECT, SOURCE_CERTIFICATE)

ACTION_HIDE = "hide"
ACTION_SHOW = "show"
ACTION_DELETE = "delete"
OVERRIDE_ACTIONS = (ACTION_HIDE, ACTION_SHOW, ACTION_DELETE)

MODE_HOME = "home"
MODE_ADMIN = "admin"
MODES = (MODE_HOME, MODE_ADMIN)

FILTER_ALL = "all"

# (lower-cased skill name, source, source id)
SourceKey = Tuple[str, str, str]


def entity_id(entity: Mapping[str, Any]) -> Optional[str]:
    """Return the stable identifier of a raw entity record."""
    value = entity.get("_id", entity.get("id"))
    return str(value) if value is not None else None


def source_key(name: str, source: str, source_id: str) -> SourceKey:
    return (name.strip().lower(), source, str(source_id))


@dataclass(frozen=True)
class Skill:
    """A skill as shown on the Skills section, stored or derived."""
    id:          str
    name:        str
    category:    Optional[str] = None
    visible:     bool = True
    source:      str = SOURCE_MANUAL
    source_id:   Optional[str] = None
    source_name: Optional[str] = None
    level:       Optional[str] = None
    # Set by the server when a source override already shaped this record
    override_action: Optional[str] = None

    @property
    def is_derived(self) -> bool:
        return self.source in DERIVED_SOURCES

    @property
    def key(self) -> Optional[SourceKey]:
        if not self.is_derived or self.source_id is None:
            return None
        return source_key(self.name, self.source, self.source_id)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Skill":
        """Build a Skill from a content-API skill record (camelCase keys)."""
        source_id = record.get("sourceId", record.get("source_id"))
        return cls(
            id=str(record.get("_id", record.get("id", ""))),
            name=(record.get("name") or "").strip(),
            category=record.get("category"),
            visible=record.get("visible", True) is not False,
            source=record.get("source") or SOURCE_MANUAL,
            source_id=str(source_id) if source_id is not None else None,
            source_name=record.get("sourceName", record.get("source_name")),
            level=record.get("level"),
            override_action=record.get("overrideAction"),
        )


@dataclass(frozen=True)
class PreviewEntry:
    """Preview state of one entity: ``loading``, resolved (url set) or ``error``."""
    url:     Optional[str] = None
    loading: bool = False
    error:   bool = False

    @property
    def resolved(self) -> bool:
        return not self.loading and self.url is not None


@dataclass(frozen=True)
class PreviewDescriptor:
    kind: str                 # custom | screenshot | image | pdf | fallback
    url:  Optional[str]
    alt:  str
    file: Optional[Mapping[str, Any]] = None

    def to_dict(self) -> dict:
        data = {"kind": self.kind, "url": self.url, "alt": self.alt}
        if self.file is not None:
            data["file"] = dict(self.file)
        return data


@dataclass(frozen=True)
class StatusBadge:
    text:        str
    style_class: str


@dataclass(frozen=True)
class ExternalLink:
    type:  str
    url:   str
    label: str


@dataclass(frozen=True)
class MutationResult:
    """Structured outcome of a store mutation; the only error surface for callers."""
    success: bool
    message: Optional[str] = None
    data:    Any = field(default=None, compare=False)


class LocalValidationError(ValueError):
    """Raised before any network call when a mutation is locally invalid."""
