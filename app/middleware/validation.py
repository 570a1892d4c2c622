"""
Validation middleware for request tracking, size limits and inbound rate limiting.
Rate limiting only applies to the Hospitable proxy routes, which spend the
shared outbound Hospitable quota.
"""

from typing import Callable, Dict, Any
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
import logging
import math
import time
import uuid

from app.services.error_handler import ErrorHandlerService
from app.utils.exceptions import BadRequestError, RateLimitExceededError

logger = logging.getLogger(__name__)


class ValidationMiddleware(BaseHTTPMiddleware):
    """
    Middleware for request preprocessing.
    Assigns request ids, enforces the request size limit, rate limits
    clients per IP and logs requests and responses.
    """

    def __init__(
        self,
        app: ASGIApp,
        max_request_size: int = 1024 * 1024,  # 1MB
        enable_request_logging: bool = True,
        enable_rate_limiting: bool = False,
        rate_limit_requests: int = 50,
        rate_limit_window: int = 300,
        rate_limit_path_prefix: str = "/api/hospitable"
    ):
        super().__init__(app)
        self.max_request_size = max_request_size
        self.enable_request_logging = enable_request_logging
        self.enable_rate_limiting = enable_rate_limiting
        self.rate_limit_requests = rate_limit_requests
        self.rate_limit_window = rate_limit_window
        self.rate_limit_path_prefix = rate_limit_path_prefix
        self.request_counts: Dict[str, Dict[str, Any]] = {}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Process request through validation middleware.

        Args:
            request: FastAPI request object
            call_next: Next middleware/handler in chain

        Returns:
            Response object
        """
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())[:8]
        request.state.request_id = request_id

        start_time = time.time()

        try:
            self._validate_request_size(request)

            if self.enable_rate_limiting and request.url.path.startswith(self.rate_limit_path_prefix):
                self._apply_rate_limiting(request)

            if self.enable_request_logging:
                self._log_request(request, request_id)

            response = await call_next(request)

            if self.enable_request_logging:
                processing_time = time.time() - start_time
                self._log_response(request, response, request_id, processing_time)

            response.headers["X-Request-ID"] = request_id
            return response

        except (BadRequestError, RateLimitExceededError) as exc:
            logger.warning(
                f"Request rejected [{request_id}]: {exc.detail}",
                extra={"request_id": request_id, "path": request.url.path, "method": request.method}
            )
            response = ErrorHandlerService.handle_api_exception(exc, request)
            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as exc:
            processing_time = time.time() - start_time
            logger.error(
                f"Middleware error [{request_id}]: {type(exc).__name__} - {str(exc)}",
                extra={
                    "request_id": request_id,
                    "path": request.url.path,
                    "method": request.method,
                    "processing_time": processing_time
                },
                exc_info=True
            )
            return ErrorHandlerService.handle_unexpected_error(exc, request)

    def _validate_request_size(self, request: Request) -> None:
        """
        Validate request content length.

        Raises:
            BadRequestError: If request size exceeds limit
        """
        content_length = request.headers.get("content-length")
        if not content_length:
            return

        try:
            size = int(content_length)
        except ValueError:
            raise BadRequestError("Invalid content-length header")

        if size > self.max_request_size:
            raise BadRequestError(
                f"Request size {size} bytes exceeds maximum allowed size {self.max_request_size} bytes"
            )

    def _apply_rate_limiting(self, request: Request) -> None:
        """
        Apply a fixed-window rate limit based on client IP.

        Raises:
            RateLimitExceededError: If rate limit is exceeded
        """
        client_ip = self._get_client_ip(request)
        current_time = time.time()

        self._clean_rate_limit_data(current_time)

        client_data = self.request_counts.setdefault(
            client_ip, {"count": 0, "window_start": current_time}
        )

        if current_time - client_data["window_start"] >= self.rate_limit_window:
            client_data["count"] = 0
            client_data["window_start"] = current_time

        if client_data["count"] >= self.rate_limit_requests:
            remaining = self.rate_limit_window - (current_time - client_data["window_start"])
            raise RateLimitExceededError(max(1, math.ceil(remaining)))

        client_data["count"] += 1

    def _get_client_ip(self, request: Request) -> str:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip

        return request.client.host if request.client else "unknown"

    def _clean_rate_limit_data(self, current_time: float) -> None:
        expired_clients = [
            client_ip for client_ip, data in self.request_counts.items()
            if current_time - data["window_start"] > self.rate_limit_window * 2
        ]
        for client_ip in expired_clients:
            del self.request_counts[client_ip]

    def _log_request(self, request: Request, request_id: str) -> None:
        logger.info(
            f"Request [{request_id}]: {request.method} {request.url.path}",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "client_ip": self._get_client_ip(request),
            }
        )

    def _log_response(
        self,
        request: Request,
        response: Response,
        request_id: str,
        processing_time: float
    ) -> None:
        logger.info(
            f"Response [{request_id}]: {response.status_code} - {processing_time:.3f}s",
            extra={
                "request_id": request_id,
                "status_code": response.status_code,
                "processing_time": processing_time,
                "path": request.url.path,
                "method": request.method
            }
        )
