from __future__ import annotations

from datetime import UTC, datetime
import logging

from dotenv import load_dotenv
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from ..config import Settings
from ..observability.metrics import metrics_middleware_factory
from .routers.session import router as session_router

load_dotenv()  # GEMINI_API_KEY and NEXUS_* settings from .env if present

SYSTEM_NAME = "Nexus Architect Backend"
VERSION = "0.1.0"

settings = Settings.from_env()

app = FastAPI(title=SYSTEM_NAME, version=VERSION)
app.state.max_body_bytes = settings.max_body_bytes

logging.basicConfig(level=logging.INFO)

app.middleware("http")(metrics_middleware_factory())


@app.middleware("http")
async def limit_body_size(request: Request, call_next):
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > request.app.state.max_body_bytes:
        return JSONResponse(status_code=413, content={"error": "Request body too large"})
    return await call_next(request)


app.include_router(session_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def root():
    return {"status": "online", "system": SYSTEM_NAME}


@app.get("/health")
def health():
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        "components": {
            "api": "ok",
            "store": settings.session_store_impl,
            "model": settings.model.provider,
        },
    }


@app.get("/metrics")
def metrics() -> Response:
    data = generate_latest(REGISTRY)
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
