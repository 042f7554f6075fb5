from typing import Optional

from fastapi import FastAPI, Request, Response

from chess_gateway.config import GatewayConfig, load_config
from chess_gateway.errors import register_exception_handlers
from chess_gateway.logging import EventType, configure_logging, get_logger
from chess_gateway.metrics import get_metrics
from chess_gateway.middleware import add_logging_middleware
from chess_gateway.models.challenge import ChallengeRequest
from chess_gateway.models.route import RouteSpec
from chess_gateway.proxy import LichessProxy
from chess_gateway.routes import ACCOUNT_ROUTE, CHALLENGE_ROUTE, ROUTES, auth_routes

logger = get_logger("chess_gateway.app")


def _proxy_endpoint(proxy: LichessProxy, spec: RouteSpec):
    """Build the FastAPI endpoint for one declarative route."""

    async def endpoint(request: Request) -> Response:
        return await proxy.handle_simple_proxy(
            spec, dict(request.path_params), list(request.query_params.multi_items())
        )

    endpoint.__name__ = spec.name
    return endpoint


def create_app(config: Optional[GatewayConfig] = None) -> FastAPI:
    """Create the gateway application around an injected configuration."""
    if config is None:
        config = load_config()

    configure_logging(config.log_level)

    app = FastAPI(title="Chess Gateway")
    app.state.config = config
    proxy = LichessProxy(config)
    app.state.proxy = proxy

    add_logging_middleware(app, exclude_paths=["/health", "/metrics", "/favicon.ico"])
    register_exception_handlers(app)

    for spec in ROUTES:
        app.add_api_route(
            spec.path, _proxy_endpoint(proxy, spec), methods=[spec.method], name=spec.name
        )

    @app.post(CHALLENGE_ROUTE.path, name=CHALLENGE_ROUTE.name)
    async def create_challenge(challenge: ChallengeRequest):
        """Validate the opponent, then send them a challenge."""
        result = await proxy.handle_challenge_create(challenge)
        return result.model_dump(by_alias=True)

    @app.get(ACCOUNT_ROUTE.path, name=ACCOUNT_ROUTE.name)
    async def account_overview():
        """Configured account together with its online status."""
        return await proxy.fetch_account_overview()

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/metrics")
    def get_metrics_endpoint():
        """Get all collected metrics."""
        return get_metrics().get_all_metrics()

    if not config.has_api_token:
        logger.warning(
            "API token not configured; authenticated routes will fail",
            event_type=EventType.GATEWAY_START,
            metadata={"disabled_routes": auth_routes()},
        )

    logger.log_event(
        EventType.GATEWAY_START,
        "Chess Gateway starting up",
        metadata={"upstream": config.upstream_base_url, "routes": len(ROUTES) + 2},
    )
    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8080)
