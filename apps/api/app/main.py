from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.decks import router as decks_router
from app.api.study import router as study_router
from app.core.config import get_settings
from app.core.logging import get_logger, setup_logging
from app.services.study.error_policy import (
    build_http_error_payload,
    build_structured_error_detail,
    build_unexpected_error_payload,
)


settings = get_settings()
setup_logging(settings.log_level)
logger = get_logger(__name__)

app = FastAPI(
    title="Study Deck API",
    version="0.1.0",
    description="AI generated flashcards and quizzes, stored per user",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _trace_id(request: Request) -> str:
    return request.headers.get("x-trace-id") or uuid4().hex


@app.get("/health")
def health_check() -> dict[str, str]:
    return {"status": "ok", "env": settings.env}


@app.exception_handler(HTTPException)
async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    payload = build_http_error_payload(exc, _trace_id(request))
    return JSONResponse(status_code=exc.status_code, content=payload, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    reason = f"{field}: {first.get('msg', 'invalid value')}" if field else "invalid request"
    detail = build_structured_error_detail(error_code="input_error", message=reason, detail=reason)
    return JSONResponse(status_code=400, content={**detail, "trace_id": _trace_id(request)})


@app.exception_handler(Exception)
async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
    trace_id = _trace_id(request)
    logger.exception("unhandled error trace_id=%s", trace_id, exc_info=exc)
    return JSONResponse(status_code=500, content=build_unexpected_error_payload(trace_id))


app.include_router(study_router)
app.include_router(decks_router)
