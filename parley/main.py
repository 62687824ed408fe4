"""
FastAPI application, the parley entry point.

  POST   /api/chat                          send one chat turn
  GET    /api/assistants                    list assistants
  GET    /api/models                        list completion models
  POST   /api/template-import               park a template in a session
  GET    /api/template-import/{session_id}  redeem it
  DELETE /api/template-import/{session_id}  drop it
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from parley import __version__
from parley.config import get_config
from parley.errors import ParleyError, ValidationError
from parley.models import ProviderTag
from parley.providers.router import ProviderRouter
from parley.sessions import SessionStore, SessionSweeper
from parley.template_import import TemplateImportService
from parley.turns import ChatTurnService

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Globals, initialized at startup
# ---------------------------------------------------------------------------
provider_router: ProviderRouter | None = None
session_store: SessionStore | None = None
session_sweeper: SessionSweeper | None = None
turn_service: ChatTurnService | None = None
import_service: TemplateImportService | None = None

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


def _setup_logging(cfg: dict):
    log_cfg = cfg.get("logging", {})
    level = getattr(logging, str(log_cfg.get("level", "INFO")).upper(), logging.INFO)
    log_file = log_cfg.get("file")

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        from pathlib import Path
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    global provider_router, session_store, session_sweeper, turn_service, import_service

    cfg = get_config()
    _setup_logging(cfg)

    sessions_cfg = cfg.get("sessions", {})
    session_store = SessionStore(sessions_cfg.get("sqlite_path", "./data/sessions.db"))
    session_sweeper = SessionSweeper(session_store, interval=sessions_cfg.get("sweep_interval", 60))
    session_sweeper.start()
    import_service = TemplateImportService(session_store)

    provider_router = ProviderRouter(cfg)
    turn_service = ChatTurnService(provider_router)

    logger.info(
        "Parley %s started, providers configured: %s",
        __version__, ", ".join(provider_router.available()) or "none",
    )

    yield

    await session_sweeper.stop()
    logger.info("Parley shutting down")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Parley",
    description="One chat contract, several backends.",
    version=__version__,
    lifespan=lifespan,
)


def _error_response(e: ParleyError, headers: dict | None = None) -> JSONResponse:
    return JSONResponse({"error": str(e)}, status_code=e.status_code, headers=headers)


@app.exception_handler(Exception)
async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"error": str(exc) or "Internal server error"}, status_code=500)


async def _json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Request body must be valid JSON") from None
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

@app.post("/api/chat")
async def chat(request: Request):
    """Send one chat turn to the provider named in the body."""
    try:
        body = await _json_body(request)
        result = await turn_service.send_chat_turn(body)
    except ParleyError as e:
        logger.error("Chat turn failed: %s", e)
        return _error_response(e)
    return JSONResponse(result.to_dict())


@app.get("/api/chat")
async def chat_info():
    return JSONResponse({
        "providers": [tag.value for tag in ProviderTag],
        "configured": provider_router.available(),
        "status": "Chat API is running",
    })


@app.get("/api/assistants")
async def list_assistants():
    try:
        provider = provider_router.get(ProviderTag.ASSISTANT)
        assistants = await provider.list_assistants()
    except ParleyError as e:
        return _error_response(e)
    return JSONResponse({"assistants": assistants})


@app.get("/api/models")
async def list_models():
    try:
        provider = provider_router.get(ProviderTag.CHAT)
    except ParleyError as e:
        return _error_response(e)
    return JSONResponse({"models": await provider.list_models()})


# ---------------------------------------------------------------------------
# Template import sessions
# ---------------------------------------------------------------------------

@app.options("/api/template-import")
async def template_import_preflight():
    return Response(status_code=200, headers=CORS_HEADERS)


@app.post("/api/template-import")
async def create_template_import(request: Request):
    try:
        body = await _json_body(request)
        result = import_service.create_import_session(
            document_name=body.get("documentName"),
            template=body.get("mustache"),
            schema=body.get("docSchema"),
            notes=body.get("notes"),
            thread_id=body.get("threadId"),
        )
    except ParleyError as e:
        return _error_response(e, headers=CORS_HEADERS)
    return JSONResponse(result, headers=CORS_HEADERS)


@app.get("/api/template-import")
async def template_import_info():
    return JSONResponse({
        "status": "Template Import API is running",
        "endpoint": "/api/template-import",
        "method": "POST",
    }, headers=CORS_HEADERS)


@app.get("/api/template-import/{session_id}")
async def get_template_import(session_id: str):
    try:
        session = import_service.get_import_session(session_id)
    except ParleyError as e:
        return _error_response(e)
    return JSONResponse(session.to_dict())


@app.delete("/api/template-import/{session_id}")
async def delete_template_import(session_id: str):
    try:
        result = import_service.delete_import_session(session_id)
    except ParleyError as e:
        return _error_response(e)
    return JSONResponse(result)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@app.get("/api/health")
async def health():
    return JSONResponse({
        "status": "ok",
        "version": __version__,
        "sessions": session_store.stats() if session_store else {},
        "sweeper": session_sweeper.running if session_sweeper else False,
    })
