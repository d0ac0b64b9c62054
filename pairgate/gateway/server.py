"""HTTP API server for device pairing."""

import asyncio
import json

from aiohttp import web
from loguru import logger

from pairgate.config.schema import Config
from pairgate.gateway.middleware import (
    access_log_middleware,
    cors_preflight_middleware,
    error_middleware,
    rate_limit_middleware,
    response_headers_hook,
)
from pairgate.gateway.ratelimit import RateLimiter
from pairgate.gateway.validation import validate_pair_request
from pairgate.pairing.service import PairingService
from pairgate.pairing.types import PairFailure, utcnow

# (status, message) per refusal reason
FAILURE_RESPONSES: dict[PairFailure, tuple[int, str]] = {
    PairFailure.NOT_FOUND: (404, "Invalid pairing code"),
    PairFailure.DEVICE_MISMATCH: (404, "Invalid pairing code"),
    PairFailure.EXPIRED: (410, "Pairing code has expired"),
    PairFailure.ALREADY_CONSUMED: (410, "Pairing code has already been used"),
}


class GatewayServer:
    """
    HTTP API server for device pairing.

    Provides endpoints for:
    - Health check (GET /health)
    - Device pairing (POST /pair)
    """

    def __init__(self, service: PairingService, config: Config | None = None):
        """
        Initialize the gateway server.

        Args:
            service: Pairing service handling redemption.
            config: Root configuration; defaults are used when omitted.
        """
        self.service = service
        self.config = config or Config()
        self.host = self.config.gateway.host
        self.port = self.config.gateway.port
        self.app = self._create_app()
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None
        self._prune_task: asyncio.Task | None = None

    def _create_app(self) -> web.Application:
        """Create the aiohttp application."""
        gateway = self.config.gateway
        middlewares = [access_log_middleware, error_middleware, cors_preflight_middleware]
        if gateway.rate_limit.enabled:
            limiter = RateLimiter(
                max_requests=gateway.rate_limit.max_requests,
                window_seconds=gateway.rate_limit.window_seconds,
            )
            middlewares.append(rate_limit_middleware(limiter))

        app = web.Application(middlewares=middlewares)
        app.on_response_prepare.append(response_headers_hook(gateway.cors_origin))
        app.router.add_get("/health", self._handle_health)
        app.router.add_post("/pair", self._handle_pair)
        return app

    async def _handle_health(self, request: web.Request) -> web.Response:
        """Health check endpoint."""
        return web.json_response({
            "status": "healthy",
            "timestamp": utcnow().isoformat().replace("+00:00", "Z"),
        })

    async def _handle_pair(self, request: web.Request) -> web.Response:
        """
        Redeem a pairing code.

        Expected JSON body:
        {
            "userId": "u1",
            "deviceId": "d1",
            "code": "123456"
        }

        Returns:
        {
            "success": true,
            "message": "Device paired successfully",
            "pairingToken": "...",
            "expiresIn": 3600
        }
        """
        try:
            data = await request.json()
        except ValueError:
            data = None

        pair_request, errors = validate_pair_request(data)
        if errors:
            logger.warning(f"Validation errors: {json.dumps(errors)}")
            return web.json_response({"errors": errors}, status=400)

        try:
            result = await asyncio.to_thread(
                self.service.pair,
                pair_request.user_id,
                pair_request.device_id,
                pair_request.code,
            )
        except Exception as e:
            logger.exception(f"Pairing error: {e}")
            body = {"success": False, "message": "Internal server error during pairing"}
            if self.config.expose_error_detail:
                body["error"] = str(e)
            return web.json_response(body, status=500)

        if not result.success:
            status, message = FAILURE_RESPONSES[result.failure]
            return web.json_response({"success": False, "message": message}, status=status)

        return web.json_response({
            "success": True,
            "message": "Device paired successfully",
            "pairingToken": result.session.token,
            "expiresIn": result.session.expires_in,
        })

    async def start(self) -> None:
        """Start the HTTP server."""
        self._runner = web.AppRunner(
            self.app,
            access_log=None,
            shutdown_timeout=self.config.gateway.shutdown_timeout,
        )
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()
        self._prune_task = asyncio.create_task(self._prune_loop())
        logger.info(
            f"Server running in {self.config.environment} mode on http://{self.host}:{self.bound_port}"
        )

    @property
    def bound_port(self) -> int | None:
        """Port actually listened on; differs from config when it was 0."""
        if not self._runner or not self._runner.addresses:
            return None
        return self._runner.addresses[0][1]

    async def _prune_loop(self) -> None:
        """Periodically drop stale consumed and expired codes."""
        interval = self.config.pairing.prune_interval_seconds
        while True:
            try:
                await asyncio.sleep(interval)
                removed = await asyncio.to_thread(self.service.store.prune)
                if removed:
                    logger.info(f"Pruned {removed} stale pairing code(s)")
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error pruning pairing codes: {e}")

    async def stop(self) -> None:
        """Stop accepting connections and drain in-flight requests."""
        if self._prune_task:
            self._prune_task.cancel()
            try:
                await self._prune_task
            except asyncio.CancelledError:
                pass
            self._prune_task = None

        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._site = None
        logger.info("Server closed")
