from __future__ import annotations

from typing import Any
import json
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from ...domain.errors import ValidationError
from ...domain.models import files_to_wire
from ...domain.validation import validate_project_state
from ...services.orchestrator import Orchestrator
from ..deps import get_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["session"])


class BodyTooLargeError(Exception):
    pass


async def _read_json(request: Request) -> Any:
    # Content-Length is checked by middleware; chunked bodies are capped here.
    limit = request.app.state.max_body_bytes
    received = bytearray()
    async for chunk in request.stream():
        received.extend(chunk)
        if len(received) > limit:
            raise BodyTooLargeError(f"Request body exceeds {limit} bytes")
    body = bytes(received)
    try:
        return json.loads(body or b"null")
    except (ValueError, UnicodeDecodeError) as exc:
        raise ValidationError([{"path": [], "message": f"Body is not valid JSON: {exc}", "code": "json_invalid"}]) from exc


@router.get("/boot")
async def boot(orchestrator: Orchestrator = Depends(get_orchestrator)):
    try:
        state = await run_in_threadpool(orchestrator.boot_session)
    except Exception:
        logger.exception("Failed to restore session state")
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": "Failed to boot system"})
    if state is None:
        # No saved session; the client starts fresh.
        return None
    logger.info("Restored previous session state files=%d", len(state.files))
    return state.to_wire()


@router.post("/process")
async def process(request: Request, orchestrator: Orchestrator = Depends(get_orchestrator)):
    try:
        state = validate_project_state(await _read_json(request))
    except BodyTooLargeError:
        return JSONResponse(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, content={"error": "Request body too large"})
    except ValidationError as exc:
        logger.info("Rejected malformed process payload issues=%d", len(exc.issues))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": str(exc), "details": exc.issues},
        )
    try:
        files = await run_in_threadpool(orchestrator.process_request, state)
    except Exception as exc:
        logger.exception("Unexpected server error while processing request")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(exc) or "Internal Server Error"},
        )
    return files_to_wire(files)
