"""
unified/skills.py — Skill projection
=====================================
Project and certificate skills are not stored records: they are projected
from each visible origin entity's ``technologies`` / ``skills`` list every
time content is loaded. Removing one therefore means editing the origin
entity, never deleting a skill record.

Derived ids:
  proj_<project id>_<slug>
  cert_<certificate id>_<slug>
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from unified.adapters import parse_skill_list
from unified.models import (
    FILTER_ALL, SOURCE_CERTIFICATE, SOURCE_PROJECT,
    Skill, entity_id,
)

logger = logging.getLogger(__name__)

# category → (exact names, substring keywords)
CATEGORY_RULES = [
    ("languages", {
        "python", "javascript", "typescript", "java", "c++", "c#", "php", "ruby", "go", "rust",
        "swift", "kotlin", "scala", "r", "matlab", "sql", "html", "css", "sass", "scss", "less",
    }, ()),
    ("frameworks", set(), (
        "react", "vue", "angular", "node.js", "express", "django", "flask", "spring", "laravel",
        "rails", "asp.net", "jquery", "bootstrap", "tailwind css", "material-ui", "framer motion",
        "next.js", "nuxt.js", "svelte", "ember.js", "express.js", "formik", "yup", "vite",
    )),
    ("databases", {
        "mysql", "postgresql", "mongodb", "redis", "sqlite", "oracle", "sql server", "mariadb",
        "cassandra", "elasticsearch", "neo4j", "dynamodb", "firebase", "supabase",
    }, ()),
    ("cloud", set(), (
        "aws", "azure", "google cloud", "docker", "kubernetes", "jenkins", "gitlab",
        "github actions", "terraform", "ansible", "nginx", "apache", "linux", "ubuntu", "centos",
    )),
    ("ai-ml", set(), (
        "tensorflow", "pytorch", "scikit-learn", "pandas", "numpy", "opencv", "nltk", "spacy",
        "hugging face", "keras", "xgboost", "lightgbm", "catboost", "machine learning",
        "deep learning", "computer vision", "nlp", "data analysis", "data science",
    )),
    ("tools", {
        "git", "github", "gitlab", "bitbucket", "vscode", "intellij", "webstorm", "postman",
        "insomnia", "figma", "adobe xd", "sketch", "zeplin",
    }, ()),
    ("security", {
        "cybersecurity", "penetration testing", "ethical hacking", "owasp", "ssl", "tls",
        "encryption", "vulnerability assessment", "security auditing", "network security",
        "vulnerabilities",
    }, ()),
    ("concepts", {
        "agile", "scrum", "devops", "ci/cd", "microservices", "api development", "rest", "graphql",
        "oauth", "jwt", "tcp/ip", "http", "https", "compliance", "system administration",
        "operating system", "networking", "cryptography", "digital forensics",
    }, ()),
    ("data", {
        "statistics", "data visualization", "tableau", "power bi",
    }, ()),
]

SKILL_CATEGORIES = [name for name, _, _ in CATEGORY_RULES] + ["other"]


def classify_skill(name: str) -> str:
    """Map a free-text skill name to one of SKILL_CATEGORIES."""
    skill = name.strip().lower()
    for category, exact, keywords in CATEGORY_RULES:
        if skill in exact:
            return category
        if any(keyword in skill or skill in keyword for keyword in keywords):
            return category
    return "other"


def slugify(name: str) -> str:
    return "_".join(name.strip().lower().split())


def _is_visible(entity: Mapping[str, Any]) -> bool:
    return entity.get("visible", True) is not False


def derive_skills(projects: Iterable[Mapping[str, Any]],
                  certificates: Iterable[Mapping[str, Any]]) -> List[Skill]:
    """Project technology/skill mentions of visible entities into Skill records."""
    derived: List[Skill] = []
    seen = set()

    origins = [(SOURCE_PROJECT, "proj", p, p.get("technologies")) for p in projects]
    origins += [(SOURCE_CERTIFICATE, "cert", c, c.get("skills")) for c in certificates]

    for source, prefix, entity, mentions in origins:
        if not _is_visible(entity):
            continue
        origin_id = entity_id(entity)
        for name in parse_skill_list(mentions):
            skill_id = f"{prefix}_{origin_id}_{slugify(name)}"
            if skill_id in seen:
                continue
            seen.add(skill_id)
            derived.append(Skill(
                id=skill_id,
                name=name,
                category=classify_skill(name),
                source=source,
                source_id=origin_id,
                source_name=entity.get("title"),
            ))

    logger.debug(f"Derived {len(derived)} skills from projects and certificates")
    return derived


def without_mention(mentions: Any, name: str) -> List[str]:
    """Origin-entity list with every case-insensitive mention of *name* removed."""
    target = name.strip().lower()
    return [m for m in parse_skill_list(mentions) if m.lower() != target]


def group_skills(skills: Iterable[Skill],
                 visible: Optional[Mapping[str, bool]] = None,
                 search: Optional[str] = None,
                 category: str = FILTER_ALL,
                 source: str = FILTER_ALL) -> Dict[str, dict]:
    """
    Filter skills by search term, category and source, then group by category.

    Args:
        visible: effective visibility by skill id, for the per-group counts

    Returns:
        {category: {"skills": [...], "total": int, "visible": int}}, in
        SKILL_CATEGORIES order with unknown categories last.
    """
    term = (search or "").strip().lower()
    groups: Dict[str, dict] = {}
    for skill in skills:
        if term and term not in skill.name.lower() and term not in (skill.source_name or "").lower():
            continue
        if category != FILTER_ALL and skill.category != category:
            continue
        if source != FILTER_ALL and skill.source != source:
            continue
        group = groups.setdefault(skill.category or "other", {"skills": [], "total": 0, "visible": 0})
        group["skills"].append(skill)
        group["total"] += 1
        if (skill.visible if visible is None else visible.get(skill.id, skill.visible)):
            group["visible"] += 1

    order = {name: index for index, name in enumerate(SKILL_CATEGORIES)}
    return dict(sorted(groups.items(), key=lambda kv: (order.get(kv[0], len(order)), kv[0])))
