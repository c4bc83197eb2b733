"""API routes for the watcher console.

Routes that touch cached results resolve the caller's ``AnalysisSession``
from the session header and delegate to it. History and backend health are
read straight through the shared gateway and never start a session.
Errors are mapped to HTTP responses by the handlers registered in
``app.main``.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import BaseModel, Field
import structlog

from libs.common.logging import bind_session_context
from libs.gateway.session import AnalysisSession, fetch_health, fetch_history
from libs.introspection.models import CanonicalResult, HealthStatus, HistoryItem

logger = structlog.get_logger("console_service.api")

router = APIRouter()


class AnalyzeRequest(BaseModel):
    """Request model for the analyze endpoint."""
    prompt: str = Field(..., min_length=1, description="Prompt given to the inspected model")
    output: str = Field(..., min_length=1, description="Output the model produced")


class AnalyzeResponse(BaseModel):
    """Response model for the analyze endpoint."""
    id: str = Field(..., description="Identifier of the cached analysis")


class SessionEndResponse(BaseModel):
    """Response model for ending a session."""
    session_id: str = Field(..., description="Session identifier")
    ended: bool = Field(..., description="Whether a live session was discarded")


def _session_header(request: Request) -> str:
    return request.app.state.config.watcher_session_header


async def get_session(request: Request, response: Response) -> AnalysisSession:
    """Resolve (or start) the caller's session and echo its id back."""
    header = _session_header(request)
    session = await request.app.state.sessions.open(request.headers.get(header))
    bind_session_context(session.session_id)
    response.headers[header] = session.session_id
    return session


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze(
    request: AnalyzeRequest,
    session: AnalysisSession = Depends(get_session)
):
    """Submit a prompt/output pair for analysis."""
    result_id = await session.analyze(request.prompt, request.output)
    return AnalyzeResponse(id=result_id)


@router.get("/results/{result_id}", response_model=CanonicalResult)
async def get_result(
    result_id: str,
    session: AnalysisSession = Depends(get_session)
):
    """Return a canonical analysis record."""
    return await session.get_result(result_id)


@router.get("/history", response_model=List[HistoryItem])
async def get_history(
    request: Request,
    limit: Optional[int] = Query(None, ge=1, le=100, description="Maximum number of items"),
    offset: int = Query(0, ge=0, description="Number of items to skip")
):
    """List previous analyses known to the backend."""
    if limit is None:
        limit = request.app.state.config.watcher_history_default_limit
    items = await fetch_history(request.app.state.gateway, limit=limit, offset=offset)
    logger.info("History retrieved", count=len(items), limit=limit, offset=offset)
    return items


@router.get("/health", response_model=HealthStatus)
async def backend_health(request: Request):
    """Report the introspection backend's health."""
    return await fetch_health(request.app.state.gateway)


@router.delete("/session", response_model=SessionEndResponse)
async def end_session(request: Request):
    """Discard the caller's session and everything cached in it."""
    session_id = request.headers.get(_session_header(request), "")
    ended = await request.app.state.sessions.end(session_id) if session_id else False
    logger.info("Session end requested", session_id=session_id, ended=ended)
    return SessionEndResponse(session_id=session_id, ended=ended)
