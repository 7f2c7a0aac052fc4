"""Aggregate API router for all v1 endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from trials_api.api import search

api_router = APIRouter()
api_router.include_router(search.router, prefix="/search", tags=["search"])
