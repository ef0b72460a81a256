"""Response envelope and MutationResult → HTTP mapping shared by the routers."""

from typing import Any

from fastapi import HTTPException

from unified.models import MutationResult


def ok(data: Any, meta: dict = None) -> dict:
    resp = {"status": "success", "data": data}
    if meta:
        resp["meta"] = meta
    return resp


def settle(result: MutationResult) -> dict:
    """Envelope a successful result; a failed one (already rolled back) becomes a 502."""
    if not result.success:
        raise HTTPException(502, result.message or "Content API request failed")
    return ok(result.data, meta={"message": result.message} if result.message else None)
