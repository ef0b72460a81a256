# Admin Router
# Purpose: Admin-mode endpoints; every mutation goes through the optimistic store
# Main functions: content CRUD per kind, singletons, skill overrides and visibility
# Dependent files: app/dependencies/access_control.py, app/dependencies/portfolio.py

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from typing import Any, Dict, List, Literal, Optional
import logging

from pydantic import BaseModel

from app.dependencies.access_control import require_admin
from app.dependencies.portfolio import Portfolio, get_portfolio
from app.responses import ok, settle
from unified.adapters import RESOURCE_FOR_KIND
from unified.models import FILTER_ALL, MODE_ADMIN, LocalValidationError, Skill
from unified.renderer import render_skills

logger = logging.getLogger(__name__)

# --- Pydantic models ---


class VisibilityUpdate(BaseModel):
    visible: bool


class OverrideUpdate(BaseModel):
    visible: Optional[bool] = None


class SkillOverride(BaseModel):
    skillName: str
    source: Literal["project", "certificate"]
    sourceId: str
    action: Optional[Literal["hide", "show", "delete"]] = None


class BulkDelete(BaseModel):
    ids: List[str]


# --- Helpers ---


def _skill_from(body: SkillOverride) -> Skill:
    return Skill(id="", name=body.skillName, source=body.source, source_id=body.sourceId)


async def _run(mutation):
    """Await a store mutation; local validation failures become 422."""
    try:
        return settle(await mutation())
    except LocalValidationError as e:
        raise HTTPException(422, str(e))


# --- ROUTER SETUP ---

router = APIRouter(dependencies=[Depends(require_admin)])


# ============================================================================
# SINGLETONS
# ============================================================================

@router.put("/about")
async def update_about(data: Dict[str, Any] = Body(...), portfolio: Portfolio = Depends(get_portfolio)):
    return await _run(lambda: portfolio.store.update("about", None, data))


@router.get("/configuration")
async def get_configuration(portfolio: Portfolio = Depends(get_portfolio)):
    configuration = portfolio.store.configuration
    return ok(dict(configuration) if configuration is not None else None)


@router.put("/configuration")
async def update_configuration(data: Dict[str, Any] = Body(...), portfolio: Portfolio = Depends(get_portfolio)):
    return await _run(lambda: portfolio.store.update("configuration", None, data))


@router.post("/configuration/reset")
async def reset_configuration(portfolio: Portfolio = Depends(get_portfolio)):
    return await _run(portfolio.store.reset_configuration)


# ============================================================================
# SKILLS
# ============================================================================

@router.get("/skills")
async def list_skills(
    portfolio: Portfolio = Depends(get_portfolio),
    search: Optional[str] = Query(None),
    category: str = Query(FILTER_ALL),
    source: str = Query(FILTER_ALL),
):
    return ok(render_skills(portfolio.skills(), portfolio.visibility, MODE_ADMIN,
                            search=search, category=category, source=source))


@router.post("/skills")
async def create_skill(data: Dict[str, Any] = Body(...), portfolio: Portfolio = Depends(get_portfolio)):
    return await _run(lambda: portfolio.store.create("skills", {**data, "source": "manual"}))


@router.post("/skills/bulk-delete")
async def bulk_delete_skills(body: BulkDelete, portfolio: Portfolio = Depends(get_portfolio)):
    return await _run(lambda: portfolio.store.bulk_delete("skills", body.ids))


@router.post("/skills/override")
async def override_skill(body: SkillOverride, portfolio: Portfolio = Depends(get_portfolio)):
    if body.action is None:
        raise HTTPException(422, "action is required")
    return await _run(lambda: portfolio.store.override_skill(_skill_from(body), body.action))


@router.delete("/skills/override")
async def restore_skill(body: SkillOverride, portfolio: Portfolio = Depends(get_portfolio)):
    return await _run(lambda: portfolio.store.restore_skill(_skill_from(body)))


@router.post("/skills/remove")
async def remove_derived_skill(body: SkillOverride, portfolio: Portfolio = Depends(get_portfolio)):
    """Remove a project/certificate skill by editing the entity it was derived from."""
    return await _run(lambda: portfolio.store.remove_derived_skill(_skill_from(body)))


@router.put("/skills/items/{skill_id}")
async def set_skill_visible(skill_id: str, body: OverrideUpdate, portfolio: Portfolio = Depends(get_portfolio)):
    portfolio.visibility.set_item_visible(skill_id, body.visible)
    return ok({"id": skill_id, "visible": body.visible})


@router.put("/skills/categories/{category}")
async def set_category_visible(category: str, body: OverrideUpdate, portfolio: Portfolio = Depends(get_portfolio)):
    portfolio.visibility.set_category_visible(category, body.visible)
    return ok({"category": category, "visible": body.visible})


@router.post("/skills/categories/{category}/{action}")
async def bulk_category(
    category: str,
    action: str,
    portfolio: Portfolio = Depends(get_portfolio),
):
    """Set the item override of every skill currently in *category*."""
    if action not in ("hide", "show"):
        raise HTTPException(404, f"Unknown action '{action}'")
    skills = portfolio.skills()
    if action == "hide":
        count = portfolio.visibility.hide_all_in_category(category, skills)
    else:
        count = portfolio.visibility.show_all_in_category(category, skills)
    return ok({"category": category, "updated": count})


@router.put("/skills/{skill_id}")
async def update_skill(skill_id: str, data: Dict[str, Any] = Body(...), portfolio: Portfolio = Depends(get_portfolio)):
    """Edit a manual skill; project and certificate skills are edited through their origin."""
    return await _run(lambda: portfolio.store.update("skills", skill_id, data))


@router.delete("/skills/{skill_id}")
async def delete_skill(skill_id: str, portfolio: Portfolio = Depends(get_portfolio)):
    return await _run(lambda: portfolio.store.delete("skills", skill_id))


# ============================================================================
# CONTENT ITEMS (project | certificate | repository)
# ============================================================================

@router.get("/{kind}")
async def list_items(
    kind: str,
    portfolio: Portfolio = Depends(get_portfolio),
    category: Optional[str] = Query(None),
):
    view = portfolio.list_view(kind, MODE_ADMIN)
    view.select_filter(category)
    return ok(view.render(portfolio.entities(kind)))


@router.get("/{kind}/{item_id}")
async def item_detail(kind: str, item_id: str, portfolio: Portfolio = Depends(get_portfolio)):
    view = portfolio.list_view(kind, MODE_ADMIN)
    view.open(item_id)
    rendered = view.render(portfolio.entities(kind))
    if rendered["modal"] is None:
        raise HTTPException(404, f"{kind.capitalize()} '{item_id}' not found")
    return ok(rendered)


@router.post("/{kind}")
async def create_item(kind: str, data: Dict[str, Any] = Body(...), portfolio: Portfolio = Depends(get_portfolio)):
    portfolio.adapter(kind)
    return await _run(lambda: portfolio.store.create(RESOURCE_FOR_KIND[kind], data))


def _card(portfolio: Portfolio, kind: str, item_id: str):
    card = portfolio.list_view(kind, MODE_ADMIN).find(portfolio.entities(kind), item_id)
    if card is None:
        raise HTTPException(404, f"{kind.capitalize()} '{item_id}' not found")
    return card


@router.put("/{kind}/{item_id}")
async def update_item(kind: str, item_id: str, data: Dict[str, Any] = Body(...),
                      portfolio: Portfolio = Depends(get_portfolio)):
    card = _card(portfolio, kind, item_id)
    if "edit" not in card.card["actions"]:
        raise HTTPException(405, f"{kind.capitalize()} items are read-only")
    return await _run(lambda: card.invoke("edit", data))


@router.patch("/{kind}/{item_id}/visibility")
async def toggle_visibility(kind: str, item_id: str, body: VisibilityUpdate,
                            portfolio: Portfolio = Depends(get_portfolio)):
    card = _card(portfolio, kind, item_id)
    if "toggle_visibility" not in card.card["actions"]:
        raise HTTPException(405, f"{kind.capitalize()} items are read-only")
    return await _run(lambda: card.invoke("toggle_visibility", body.visible))


@router.delete("/{kind}/{item_id}")
async def delete_item(kind: str, item_id: str, portfolio: Portfolio = Depends(get_portfolio)):
    card = _card(portfolio, kind, item_id)
    if "delete" not in card.card["actions"]:
        raise HTTPException(405, f"{kind.capitalize()} items are read-only")
    return await _run(lambda: card.invoke("delete"))
