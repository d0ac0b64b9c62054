"""aiohttp middlewares: access log, error handling, CORS, rate limiting."""

import time
from typing import Awaitable, Callable

from aiohttp import web
from loguru import logger

from pairgate.gateway.ratelimit import RateLimiter

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-DNS-Prefetch-Control": "off",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
}

CORS_ALLOW_METHODS = "GET,HEAD,PUT,PATCH,POST,DELETE"


@web.middleware
async def access_log_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Log one line per request, after the response status is known."""
    started = time.perf_counter()
    status = 500
    try:
        response = await handler(request)
        status = response.status
        return response
    except web.HTTPException as e:
        status = e.status
        raise
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f'{request.remote} "{request.method} {request.path_qs} '
            f'HTTP/{request.version.major}.{request.version.minor}" {status} {elapsed_ms:.1f}ms'
        )


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Turn unmatched routes and unhandled exceptions into JSON responses."""
    try:
        return await handler(request)
    except (web.HTTPNotFound, web.HTTPMethodNotAllowed):
        return web.json_response(
            {"success": False, "message": "Endpoint not found"},
            status=404,
        )
    except web.HTTPException:
        raise
    except Exception:
        logger.exception(f"Unhandled error on {request.method} {request.path}")
        return web.json_response(
            {"success": False, "message": "Internal server error"},
            status=500,
        )


@web.middleware
async def cors_preflight_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Answer preflight requests; the origin header itself is added on prepare."""
    if request.method == "OPTIONS":
        headers = {"Access-Control-Allow-Methods": CORS_ALLOW_METHODS}
        requested = request.headers.get("Access-Control-Request-Headers")
        if requested:
            headers["Access-Control-Allow-Headers"] = requested
        return web.Response(status=204, headers=headers)
    return await handler(request)


def rate_limit_middleware(limiter: RateLimiter):
    """Reject clients exceeding ``limiter``'s window with 429."""

    @web.middleware
    async def middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
        key = request.remote or "unknown"
        if not limiter.is_allowed(key):
            logger.warning(f"Rate limit exceeded for {key}")
            return web.json_response(
                {"success": False, "message": "Too many requests from this IP, please try again later"},
                status=429,
                headers={"Retry-After": str(limiter.retry_after(key))},
            )
        return await handler(request)

    return middleware


def response_headers_hook(cors_origin: str):
    """``on_response_prepare`` hook adding security and CORS headers to every response."""

    async def on_prepare(request: web.Request, response: web.StreamResponse) -> None:
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        response.headers["Access-Control-Allow-Origin"] = cors_origin
        if cors_origin != "*":
            response.headers["Vary"] = "Origin"

    return on_prepare
