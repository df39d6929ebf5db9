"""
Global exception handler middleware and request validation handler.
"""

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from northpole.services.auth_service import get_current_user, has_valid_session


async def global_exception_handler(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as exc:
        logger.exception(f"Unhandled exception on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "type": type(exc).__name__,
            },
        )


def _requires_session(dependant) -> bool:
    for dep in dependant.dependencies:
        if dep.call is get_current_user or _requires_session(dep):
            return True
    return False


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Missing or malformed request fields are a plain 400."""
    # The body is parsed before auth dependencies run; a signed-out caller still gets 401
    route = request.scope.get("route")
    dependant = getattr(route, "dependant", None)
    if dependant is not None and _requires_session(dependant) and not has_valid_session(request):
        return JSONResponse(
            status_code=401,
            content={"detail": "Not authenticated"},
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info(f"Validation failed on {request.method} {request.url.path}: {len(exc.errors())} error(s)")
    return JSONResponse(
        status_code=400,
        content={"detail": jsonable_encoder(exc.errors())},
    )
