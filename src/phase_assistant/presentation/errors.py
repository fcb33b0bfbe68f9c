"""Translate application errors into structured ``{"error": {...}}`` responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from phase_assistant.application.exceptions import PhaseAssistantError
from phase_assistant.application.use_cases.chat import TurnFailed


def error_response(error: PhaseAssistantError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content={"error": error.to_dict()})


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(PhaseAssistantError)
    async def handle_app_error(request: Request, exc: PhaseAssistantError) -> JSONResponse:
        logger.warning("{} {} -> {}: {}", request.method, request.url.path, exc.kind, exc.message)
        return error_response(exc)

    @app.exception_handler(TurnFailed)
    async def handle_turn_failed(request: Request, exc: TurnFailed) -> JSONResponse:
        return error_response(exc.error)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
            for err in exc.errors()
        )
        return JSONResponse(
            status_code=422,
            content={"error": {"kind": "validation_error", "message": problems or "Invalid request"}},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.opt(exception=exc).error("Unhandled error on {} {}", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": {"kind": "internal_error", "message": "Internal server error"}},
        )
