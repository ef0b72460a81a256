"""
config_loader.py — Unified configuration loader
================================================
Merges config.tech.yaml (API endpoint, preview and override-store settings)
and config.content.yaml (filters, empty states, required fields) into a
single dict, so all code can call load_config() and get the combined result.

Precedence: config.content.yaml values overwrite config.tech.yaml values
on key collision (content is site-specific, tech is more generic defaults).
"""

import os
import yaml
from pathlib import Path


DEFAULTS = {
    "api": {
        "base_url": "http://localhost:5000",
        "prefix": "/api",
        "timeout_seconds": 15,
    },
    "preview": {
        "freshness_hours": 12,
        "stagger_seconds": 0.5,
    },
    "overrides": {
        "path": "data/overrides.yaml",
    },
    "server": {
        "host": "0.0.0.0",
        "port": 8000,
    },
    "content": {},
}


def load_config(root: Path | str | None = None) -> dict:
    """
    Load and merge config.tech.yaml + config.content.yaml on top of DEFAULTS.

    Args:
        root: Project root directory. Defaults to the directory containing
              this file (i.e. the project root).

    Returns:
        Merged configuration dict. PORTFOLIO_API_URL / PORTFOLIO_API_TOKEN
        environment variables override api.base_url / api.token.
    """
    if root is None:
        root = Path(__file__).parent
    root = Path(root)

    merged: dict = {key: dict(value) for key, value in DEFAULTS.items()}
    for name in ("config.tech.yaml", "config.content.yaml"):
        path = root / name
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}
            for key, value in data.items():
                if isinstance(value, dict) and isinstance(merged.get(key), dict):
                    merged[key].update(value)
                else:
                    merged[key] = value

    api_url = os.environ.get("PORTFOLIO_API_URL")
    if api_url:
        merged["api"]["base_url"] = api_url
    api_token = os.environ.get("PORTFOLIO_API_TOKEN")
    if api_token:
        merged["api"]["token"] = api_token

    return merged
