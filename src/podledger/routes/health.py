"""Liveness endpoint."""

from __future__ import annotations

from fastapi import APIRouter

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Healthcheck endpoint; does not touch storage."""
    return {"status": "ok"}
