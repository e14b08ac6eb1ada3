"""
FastAPI application and endpoints
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse

from . import __version__
from .exceptions import GatewayError, InvalidRequestError
from .models import ChatCompletionRequest, ErrorResponse, ModelCard, ModelList
from .registry import AdapterRegistry
from .relay import CompletionRelay

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _validation_error(exc: RequestValidationError) -> InvalidRequestError:
    errors = exc.errors()
    if not errors:
        return InvalidRequestError("invalid request body", param="body")
    first = errors[0]
    loc = [part for part in first.get("loc", ()) if part != "body"]
    # Undecodable JSON reports a character offset rather than a field
    if all(isinstance(part, int) for part in loc):
        loc = []
    param = ".".join(str(part) for part in loc) or "body"
    return InvalidRequestError(f"invalid request: {param}: {first.get('msg', 'invalid value')}", param=param)


def create_app(registry: AdapterRegistry) -> FastAPI:
    """
    Create and configure FastAPI application.
    Note: every model must be registered before the first request is served.
    """
    relay = CompletionRelay(registry)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Serving models: {registry.list_models()}")
        yield
        await registry.aclose()

    app = FastAPI(title="prism", version=__version__, lifespan=lifespan)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        error = _validation_error(exc)
        logger.info(f"Rejected request: {error.message}")
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(GatewayError)
    async def handle_gateway_error(request: Request, exc: GatewayError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/")
    async def welcome():
        return {
            "message": "Welcome to Prism AI Gateway!",
            "version": __version__,
            "status": "running",
            "description": "OpenAI-compatible AI Gateway for multiple LLM providers",
            "endpoints": {
                "health": "GET /health",
                "models": "GET /v1/models",
                "chat": "POST /v1/chat/completions",
            },
        }

    @app.get("/health")
    async def health(deep: bool = False):
        """Liveness by default; with ?deep=true every backend is probed"""
        if deep:
            try:
                await registry.health_check()
            except GatewayError as e:
                body = {"status": "unhealthy", "model": e.model}
                body.update(e.to_dict())
                return JSONResponse(status_code=503, content=body)
        return {"status": "healthy", "models": len(registry)}

    @app.get("/v1/models", response_model=ModelList)
    async def list_models():
        cards = [
            ModelCard(id=name, owned_by=registry.lookup(name).name)
            for name in sorted(registry.list_models())
        ]
        return ModelList(data=cards)

    @app.post(
        "/v1/chat/completions",
        responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    )
    async def chat_completions(request: ChatCompletionRequest, http_request: Request):
        """OpenAI-compatible chat completion endpoint"""
        logger.debug(f"Chat completion for {request.model} (stream={request.stream})")

        if request.stream:
            return StreamingResponse(
                relay.stream(request, is_disconnected=http_request.is_disconnected),
                media_type="text/event-stream",
                headers=SSE_HEADERS,
            )

        response = await relay.complete(request)
        return JSONResponse(content=response.to_wire())

    return app
