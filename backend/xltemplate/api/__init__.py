# backend/xltemplate/api/__init__.py
from __future__ import annotations

from fastapi import APIRouter

from .exports import router as exports_router
from .templates import router as templates_router

api_router = APIRouter()
api_router.include_router(templates_router)
api_router.include_router(exports_router)
