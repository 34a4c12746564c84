import time
import uuid
from typing import Callable

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from opencalendars.core.logger import request_id_var


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Generate request ID for tracing
        request_id = str(uuid.uuid4())[:8]

        request.state.request_id = request_id
        token = request_id_var.set(request_id)

        start_time = time.time()

        client_ip = request.client.host if request.client else "unknown"

        # Query strings are left out: OAuth callbacks carry codes and state tokens
        logger.trace(
            f"[{request_id}] {request.method} {request.url.path} - "
            f"Client: {client_ip} - User-Agent: {request.headers.get('user-agent', 'unknown')}"
        )

        try:
            response: Response = await call_next(request)

            process_time = time.time() - start_time
            logger.trace(
                f"[{request_id}] {request.method} {request.url.path} - "
                f"Status: {response.status_code} - Time: {process_time:.3f}s"
            )

            response.headers["X-Request-ID"] = request_id

            return response

        except Exception as e:
            process_time = time.time() - start_time

            logger.error(
                f"[{request_id}] {request.method} {request.url.path} - "
                f"Error: {str(e)} - Time: {process_time:.3f}s",
                request_path_params=request.path_params,
            )
            raise e

        finally:
            request_id_var.reset(token)
