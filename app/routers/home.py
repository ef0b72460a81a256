"""
app/routers/home.py — Public (home mode) endpoints
===================================================

Endpoints:
  GET  /home/about                      → about singleton
  GET  /home/skills                     → visible skills grouped by category
  GET  /home/{kind}?category=           → visible cards, facet-filtered
  GET  /home/{kind}/{item_id}           → same list with the item's modal open
  POST /home/previews/{item_id}/error   → a preview image failed to load

Hidden items never leave this router; 404 is returned for them exactly as
for ids that do not exist.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.dependencies.portfolio import Portfolio, get_portfolio
from app.responses import ok
from unified.models import FILTER_ALL, MODE_HOME
from unified.renderer import render_skills

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/home", tags=["Home"])


@router.get("/about", summary="About section")
async def about(portfolio: Portfolio = Depends(get_portfolio)):
    record = portfolio.store.about
    return ok(dict(record) if record is not None else None)


@router.get("/skills", summary="Visible skills grouped by category")
async def skills(
    portfolio: Portfolio = Depends(get_portfolio),
    search: Optional[str] = Query(None),
    category: str = Query(FILTER_ALL),
    source: str = Query(FILTER_ALL),
):
    return ok(render_skills(portfolio.skills(), portfolio.visibility, MODE_HOME,
                            search=search, category=category, source=source))


@router.post("/previews/{item_id}/error", summary="Report a broken preview image")
async def preview_error(item_id: str, portfolio: Portfolio = Depends(get_portfolio)):
    if portfolio.preview is None:
        raise HTTPException(404, "Previews are not enabled")
    project = portfolio.store.find("projects", item_id)
    if project is None:
        raise HTTPException(404, f"Project '{item_id}' not found")
    entry = portfolio.preview.report_image_error(item_id, portfolio.adapter("project").get_live_url(project))
    return ok({"url": entry.url, "error": entry.error})


@router.get("/{kind}", summary="Cards of one kind")
async def list_items(
    kind: str,
    portfolio: Portfolio = Depends(get_portfolio),
    category: Optional[str] = Query(None, description="Facet, e.g. web | course"),
):
    view = portfolio.list_view(kind, MODE_HOME)
    view.select_filter(category)
    return ok(view.render(portfolio.entities(kind)))


@router.get("/{kind}/{item_id}", summary="Cards of one kind with one item expanded")
async def item_detail(
    kind: str,
    item_id: str,
    portfolio: Portfolio = Depends(get_portfolio),
    category: Optional[str] = Query(None),
):
    view = portfolio.list_view(kind, MODE_HOME)
    view.select_filter(category)
    view.open(item_id)
    rendered = view.render(portfolio.entities(kind))
    if rendered["modal"] is None:
        raise HTTPException(404, f"{kind.capitalize()} '{item_id}' not found")
    return ok(rendered)
