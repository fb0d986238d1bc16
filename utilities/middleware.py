import time
import logging
import redis
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from config.settings import settings

logger = logging.getLogger(__name__)

# Gateway callbacks: never rate limited, flagged in request logs
GATEWAY_CALLBACK_PATHS = (
    "/api/payments/stripe/webhook",
    "/api/payments/sslcommerz/ipn",
)

class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging requests and responses"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        client_ip = request.client.host if request.client else "unknown"
        logger.info(f"Request: {request.method} {request.url.path} from {client_ip}")

        response = await call_next(request)

        process_time = time.time() - start_time
        tag = " [GATEWAY]" if request.url.path in GATEWAY_CALLBACK_PATHS else ""
        logger.info(
            f"Response: {request.method} {request.url.path} "
            f"status={response.status_code} time={process_time:.4f}s{tag}"
        )

        response.headers["X-Process-Time"] = str(process_time)
        return response

class ErrorLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging errors"""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(
                f"Error processing {request.method} {request.url.path}: {str(e)}",
                exc_info=True
            )
            raise

class RateLimitMiddleware(BaseHTTPMiddleware):
    """Redis-based fixed window rate limiting middleware"""

    def __init__(self, app, requests_per_window: int = None, window_size: int = None, redis_client=None):
        super().__init__(app)
        self.requests_per_window = requests_per_window or settings.RATE_LIMIT_REQUESTS
        self.window_size = window_size or settings.RATE_LIMIT_WINDOW  # seconds

        if redis_client is not None:
            self.redis_client = redis_client
            return
        try:
            self.redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True, socket_connect_timeout=2)
            self.redis_client.ping()
            logger.info("Connected to Redis for rate limiting")
        except redis.RedisError as e:
            logger.warning(f"Could not connect to Redis: {e}. Rate limiting disabled.")
            self.redis_client = None

    async def dispatch(self, request: Request, call_next):
        if not self.redis_client:
            return await call_next(request)

        # Health checks, docs and gateway callbacks are never limited
        if request.url.path in ("/", "/health", "/docs", "/redoc", "/openapi.json") or \
                request.url.path in GATEWAY_CALLBACK_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        key = f"rate_limit:{client_ip}"

        try:
            current = self.redis_client.incr(key)
            if current == 1:
                self.redis_client.expire(key, self.window_size)
            ttl = self.redis_client.ttl(key)
        except redis.RedisError as e:
            logger.error(f"Rate limiting error: {e}")
            return await call_next(request)

        if current > self.requests_per_window:
            logger.warning(f"Rate limit exceeded for {client_ip}")
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "success": False,
                    "message": f"Maximum {self.requests_per_window} requests per {self.window_size} seconds allowed",
                    "data": {"retry_after": ttl},
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.requests_per_window)
        response.headers["X-RateLimit-Remaining"] = str(max(0, self.requests_per_window - current))
        response.headers["X-RateLimit-Reset"] = str(int(time.time()) + max(ttl, 0))
        return response
