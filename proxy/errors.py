"""Anthropic-style error responses."""
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class ProxyAPIError(Exception):
    """Error reported to the client in the Anthropic error envelope."""

    def __init__(self, status_code: int, message: str, error_type: str = "api_error"):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.error_type = error_type

    def to_error(self) -> Dict[str, Any]:
        return {
            "type": "error",
            "error": {"type": self.error_type, "message": self.message},
        }


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ProxyAPIError)
    async def handle_proxy_error(_request: Request, exc: ProxyAPIError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_error())

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
        first_error = exc.errors()[0]["msg"] if exc.errors() else "Invalid request"
        error = ProxyAPIError(400, first_error, "invalid_request_error")
        return JSONResponse(status_code=error.status_code, content=error.to_error())
