"""
Request / response logging middleware.
"""

import time
import uuid
from fastapi import Request
from loguru import logger


async def logging_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
    start = time.perf_counter()

    with logger.contextualize(request_id=request_id):
        logger.info(f"→ {request.method} {request.url.path} [{request_id}]")

        response = await call_next(request)

        elapsed = round((time.perf_counter() - start) * 1000, 2)
        logger.info(f"← {request.method} {request.url.path} [{response.status_code}] {elapsed}ms")

    response.headers["X-Request-ID"] = request_id
    return response
