import logging
import os
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from xltemplate.api import api_router


def _parse_cors_origins(env_value: str | None) -> List[str]:
    """
    Parses comma-separated origins:
      CORS_ALLOW_ORIGINS="http://localhost:5173,http://127.0.0.1:5173"
    Empty/None -> default list.
    """
    if not env_value:
        return [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
    parts = [p.strip() for p in env_value.split(",")]
    return [p for p in parts if p]


def _configure_logging(level_name: str | None) -> None:
    level = getattr(logging, (level_name or "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("xltemplate").setLevel(level)


_configure_logging(os.getenv("LOG_LEVEL"))

app = FastAPI(title="xltemplate")


# ----------------------------
# Healthcheck (for Docker)
# ----------------------------
@app.get("/health", include_in_schema=False)
def health() -> PlainTextResponse:
    return PlainTextResponse("ok")


# ----------------------------
# CORS
# ----------------------------
allow_origins = _parse_cors_origins(os.getenv("CORS_ALLOW_ORIGINS"))

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

# ----------------------------
# API routers
# ----------------------------
# nginx proxies /api/ -> http://backend:8000/api/, so every router hangs under /api
app.include_router(api_router, prefix="/api")
