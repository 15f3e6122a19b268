"""HTTP surface: the caption route and the application factory."""

import hashlib
from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, File, Header, Request, UploadFile
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from postcap.captions.encoder import mime_type_for_path
from postcap.captions.exceptions import InvalidReferenceError
from postcap.captions.logging import configure_logging, log_error, log_info
from postcap.captions.models import CaptionRequest, CaptionResult
from postcap.captions.service import CaptionService
from postcap.captions.settings import CaptionSettings

_LOGGER_NAME = "postcap.captions.api"

CAPTION_ROUTE = "/api/posts/generate-caption"

NO_IMAGE_MESSAGE = "No image file provided"
RATE_LIMITED_MESSAGE = "Too many caption generation requests, please try again later."
FAILURE_MESSAGE = "Failed to generate caption"
UNAUTHENTICATED_MESSAGE = "Authentication required"


class AuthenticationRequired(Exception):
    """Raised by the bearer dependency when no usable token was sent."""


def bearer_caller_id(authorization: str | None = Header(default=None)) -> str:
    """Derive an opaque caller ID from ``Authorization: Bearer <token>``.

    Token verification belongs to the host application's auth middleware;
    replace this dependency with one that returns the verified user ID.
    The token itself is hashed so it never appears in logs.
    """
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationRequired()
    return hashlib.sha256(token.strip().encode("utf-8")).hexdigest()[:16]


def caller_key(request: Request) -> str:
    """slowapi key: the authenticated caller, else the client address."""
    return getattr(request.state, "caller_id", None) or get_remote_address(request)


def create_limiter() -> Limiter:
    """Per-application limiter for the caption endpoint, keyed by caller."""
    return Limiter(key_func=caller_key, strategy="moving-window")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _render(result: CaptionResult) -> dict[str, Any]:
    if len(result.captions) == 1:
        return {"caption": result.captions[0]}
    return {"success": True, "captions": result.captions}


def create_router(
    service: CaptionService,
    authenticate: Callable[..., str] = bearer_caller_id,
    limiter: Limiter | None = None,
    endpoint_limit: str | None = None,
) -> APIRouter:
    """Build the router exposing the caption endpoint.

    Args:
        service: The single, process-wide caption service
        authenticate: FastAPI dependency returning the caller ID
        limiter: slowapi limiter guarding the caption route; the including
            app must expose it as ``app.state.limiter`` and handle
            ``RateLimitExceeded``
        endpoint_limit: slowapi limit string such as ``"10/minute"``;
            the route is unthrottled when this or ``limiter`` is missing
    """
    router = APIRouter(tags=["captions"])

    async def current_caller(
        request: Request, caller_id: str = Depends(authenticate)
    ) -> str:
        request.state.caller_id = caller_id
        return caller_id

    async def generate_caption(
        request: Request,
        image: UploadFile | None = File(default=None),
        caller_id: str = Depends(current_caller),
    ):
        if image is None or not image.filename:
            return _error(400, NO_IMAGE_MESSAGE)

        try:
            content = await image.read()
            mime_type = image.content_type
            if not mime_type or not mime_type.startswith("image/"):
                mime_type = mime_type_for_path(image.filename)
            caption_request = CaptionRequest(
                caller_id=caller_id, image=content, mime_type=mime_type
            )
            result = await service.handle_async(caption_request)
        except InvalidReferenceError as ex:
            return _error(400, ex.message)
        except Exception as ex:
            log_error(
                "Caption generation error",
                context={"caller_id": caller_id, "error": str(ex)},
                logger_name=_LOGGER_NAME,
                exc_info=True,
            )
            return _error(500, FAILURE_MESSAGE)

        return _render(result)

    if limiter is not None and endpoint_limit:
        generate_caption = limiter.limit(endpoint_limit)(generate_caption)
    router.post(CAPTION_ROUTE)(generate_caption)

    @router.get(f"{CAPTION_ROUTE}/status")
    async def caption_status(caller_id: str = Depends(authenticate)):
        return {
            "configured": service.is_configured(),
            "provider": service.config.provider,
            "rate_limit": service.rate_limit_status(caller_id).model_dump(),
        }

    return router


def create_app(
    settings: CaptionSettings | None = None,
    service: CaptionService | None = None,
    authenticate: Callable[..., str] | None = None,
) -> FastAPI:
    """Application factory: one service built at startup, injected into routes."""
    settings = settings or CaptionSettings()
    if service is None:
        service = CaptionService(
            settings.to_provider_config(), upload_root=settings.upload_dir
        )

    limiter = create_limiter()
    endpoint_limit = None
    if settings.endpoint_max_per_minute > 0:
        endpoint_limit = f"{settings.endpoint_max_per_minute}/minute"

    app = FastAPI(title="postcap captions", version="0.1.0")
    app.state.caption_service = service
    app.state.limiter = limiter

    @app.exception_handler(AuthenticationRequired)
    async def _unauthenticated(request, exc):
        return _error(401, UNAUTHENTICATED_MESSAGE)

    @app.exception_handler(RateLimitExceeded)
    async def _throttled(request, exc):
        log_info(
            "Caption endpoint throttled",
            context={
                "caller_id": getattr(request.state, "caller_id", None),
                "limit": str(exc.detail),
            },
            logger_name=_LOGGER_NAME,
        )
        return _error(429, RATE_LIMITED_MESSAGE)

    app.include_router(
        create_router(
            service,
            authenticate=authenticate or bearer_caller_id,
            limiter=limiter,
            endpoint_limit=endpoint_limit,
        )
    )
    return app


def main() -> None:
    """Run the caption API with uvicorn."""
    import uvicorn

    settings = CaptionSettings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
