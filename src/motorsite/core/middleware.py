# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import time
from typing import Callable

from fastapi import Request
from fastapi.responses import PlainTextResponse

logger = logging.getLogger(__name__)

SLOW_REQUEST_SECONDS = 1.0


def _request_id(request: Request) -> str:
    return f"{int(time.time() * 1000)}-{id(request)}"


async def log_requests(request: Request, call_next: Callable):
    start_time = time.time()
    request_id = _request_id(request)

    try:
        response = await call_next(request)
    except Exception as e:
        process_time = time.time() - start_time
        logger.error(f"[{request_id}] {request.method} {request.url.path} - ERROR: {e} - {process_time:.2f}s")
        raise

    process_time = time.time() - start_time
    # Only slow requests and client/server errors
    if process_time > SLOW_REQUEST_SECONDS or response.status_code >= 400:
        logger.info(f"[{request_id}] {request.method} {request.url.path} - {response.status_code} - {process_time:.2f}s")
    return response


async def global_exception_handler(request: Request, exc: Exception):
    request_id = _request_id(request)
    logger.error(f"[{request_id}] Unhandled exception in {request.method} {request.url.path}: {exc}", exc_info=exc)
    return PlainTextResponse("Internal server error", status_code=500)
