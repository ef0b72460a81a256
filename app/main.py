"""
app/main.py — Portfolio view service
=====================================
Serves the Unified renderer's output as JSON, backed by the optimistic store.

Routes:
  GET  /health                            → liveness + load state
  POST /admin/login                       → admin JWT
  GET  /home/...                          → public views (app/routers/home.py)
  *    /admin/...                         → admin views + mutations (app/routers/admin.py)

Startup (lifespan):
  1. load config.tech.yaml + config.content.yaml (and .env)
  2. build ContentAPI, override store, OptimisticStore, PreviewResolver
  3. fetch all content; repositories too when github.username is set
  4. start staggered preview auto-loading for projects

Tests pass a ready Portfolio to create_app() and skip steps 1-4.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from app.dependencies.access_control import AdminAuth
from app.dependencies.portfolio import Portfolio
from app.routers import admin, home
from config_loader import load_config
from connectors.content_api import ContentAPI
from unified.preview import PreviewResolver
from unified.store import OptimisticStore
from unified.visibility import YamlOverrideStore

logger = logging.getLogger(__name__)

ROOT = Path(__file__).resolve().parent.parent
CONFIG = load_config(root=ROOT)
APP_VERSION = "1.0.0"


class LoginRequest(BaseModel):
    username: str
    password: str


async def _start_portfolio(app: FastAPI, config: dict) -> None:
    api = ContentAPI.from_config(config)
    overrides = YamlOverrideStore(ROOT / config.get("overrides", {}).get("path", "data/overrides.yaml"))
    store = OptimisticStore.from_config(api, config, overrides=overrides)
    preview = PreviewResolver.from_config(api, config)
    portfolio = Portfolio(store, preview=preview, config=config, screenshot_url=api.screenshot_url)
    app.state.portfolio = portfolio
    app.state.api = api

    result = await store.fetch_all()
    if not result.success:
        logger.error(f"Initial content fetch failed: {result.message}")

    username = config.get("github", {}).get("username")
    if username:
        await store.fetch_repositories(username)

    stagger = float(config.get("preview", {}).get("stagger_seconds", 0.5))
    app.state.preview_task = asyncio.create_task(
        preview.auto_load(store.projects, portfolio.adapter("project"), stagger=stagger)
    )


async def _stop_portfolio(app: FastAPI) -> None:
    task = getattr(app.state, "preview_task", None)
    if task is not None and not task.done():
        task.cancel()
    app.state.portfolio.store.close()
    await app.state.api.aclose()


def create_app(portfolio: Optional[Portfolio] = None, config: Optional[dict] = None) -> FastAPI:
    """Create the view service; a given *portfolio* is used as-is (no network at startup)."""
    config = config if config is not None else CONFIG

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if portfolio is not None:
            app.state.portfolio = portfolio
            yield
            return
        await _start_portfolio(app, config)
        try:
            yield
        finally:
            await _stop_portfolio(app)

    app = FastAPI(
        title="Portfolio View Service",
        description="Unified card / modal / list views over portfolio content.",
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url=None,
    )

    app.state.auth = AdminAuth.from_config(config)

    cors_origins = config.get("security", {}).get("cors_origins", ["*"])
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health(request: Request):
        current = getattr(request.app.state, "portfolio", None)
        return {
            "status": "ok",
            "ts": time.time(),
            "version": APP_VERSION,
            "loaded": bool(current and current.store.loaded),
        }

    # --- Login endpoint (on app root, not behind auth) ---

    @app.post("/admin/login")
    async def admin_login(body: LoginRequest, request: Request):
        token = request.app.state.auth.login(body.username, body.password)
        if token is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid admin credentials",
            )
        return {"access_token": token, "token_type": "bearer"}

    app.include_router(home.router)
    app.include_router(admin.router, prefix="/admin", tags=["Admin"])

    logger.info("Portfolio view service initialized")
    return app


# Allow uvicorn app.main:app
app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    server_cfg = CONFIG.get("server", {})
    uvicorn.run(app, host=server_cfg.get("host", "0.0.0.0"), port=int(server_cfg.get("port", 8000)), log_level="info")
