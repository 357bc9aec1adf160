"""
Aggregates all v1 API routers into a single APIRouter.
"""
from __future__ import annotations

from fastapi import APIRouter

from huddle.api.v1 import comments, groups

api_router = APIRouter()

api_router.include_router(groups.router)
api_router.include_router(comments.router)
