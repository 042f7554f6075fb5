"""
Upstream request translation for Chess Gateway.

``LichessProxy`` turns one inbound request into one outbound call described by a
``RouteSpec`` (two calls for challenge creation and the account overview) and
translates the outcome into a response or a ``GatewayError``.
"""

import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
from fastapi import Response
from fastapi.responses import JSONResponse

from .config import GatewayConfig
from .errors import (
    ConfigurationError,
    GatewayError,
    InvalidRequestError,
    NotFoundError,
    RateLimitError,
    UpstreamError,
)
from .logging import EventType, get_logger
from .metrics import MetricNames, get_metrics
from .models.challenge import ChallengeRequest, ChallengeResponse, extract_challenge_id
from .models.route import RouteSpec
from .routes import ACCOUNT_ROUTE, ACCOUNT_STATUS_ROUTE, CHALLENGE_ROUTE, CHALLENGE_USER_LOOKUP

QueryItems = List[Tuple[str, str]]

TOKEN_MISSING_MESSAGE = "API token not configured"
ACCOUNT_ID_MISSING_MESSAGE = "Account ID not configured"
INVALID_CHALLENGE_MESSAGE = "Invalid challenge parameters"


def find_missing_param(spec: RouteSpec, query_items: QueryItems) -> Optional[str]:
    """Return the validation message of the first missing required parameter.

    A parameter counts as present when any of its occurrences is non-blank.
    """
    for name, message in spec.required_params.items():
        if not any(k == name and v.strip() for k, v in query_items):
            return message
    return None


def build_query(spec: RouteSpec, query_items: QueryItems) -> QueryItems:
    """Build the outbound query string from the caller's parameters and route defaults.

    Multi-valued parameters are forwarded once per non-blank occurrence in caller
    order; any other parameter supplied more than once forwards its first value.
    Defaults are appended only for names the caller did not supply at all.
    """
    supplied = set()
    query: QueryItems = []

    for name, value in query_items:
        if name in spec.trimmed_params:
            value = value.strip()

        if name in spec.true_only_params:
            if value == "true" and (name, "true") not in query:
                query.append((name, "true"))
            supplied.add(name)
            continue

        if name in spec.multi_value_params:
            if not value.strip():
                continue
            allowed = spec.allowed_values.get(name)
            if allowed is None or value in allowed:
                query.append((name, value))
            supplied.add(name)
            continue

        if name in supplied:
            continue
        allowed = spec.allowed_values.get(name)
        if allowed is None or value in allowed:
            query.append((name, value))
        supplied.add(name)

    for name, defaults in spec.default_query_values.items():
        if name not in supplied:
            query.extend((name, default) for default in defaults)

    return query


def classify_failure(spec: RouteSpec, response: httpx.Response) -> GatewayError:
    """Map an unsuccessful upstream status to the gateway error taxonomy."""
    if response.status_code == 404 and spec.not_found_message:
        return NotFoundError(spec.not_found_message)
    if response.status_code == 429:
        return RateLimitError()
    return UpstreamError(spec.error_message, upstream_status=response.status_code)


def classify_challenge_failure(spec: RouteSpec, response: httpx.Response) -> GatewayError:
    """Challenge creation surfaces the upstream's own message for rejected parameters."""
    if response.status_code == 400:
        return InvalidRequestError(_upstream_error_message(response) or INVALID_CHALLENGE_MESSAGE)
    if response.status_code == 429:
        return RateLimitError()
    return UpstreamError(spec.error_message, upstream_status=response.status_code)


def _upstream_error_message(response: httpx.Response) -> Optional[str]:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict) and isinstance(payload.get("error"), str):
        return payload["error"]
    return None


def _is_json(content_type: str) -> bool:
    media_type = content_type.split(";")[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


class LichessProxy:
    """Stateless translator between gateway routes and the upstream API."""

    def __init__(self, config: GatewayConfig):
        self.config = config
        self.logger = get_logger("chess_gateway.proxy")
        self.metrics = get_metrics()

    def build_url(self, spec: RouteSpec, path_params: Dict[str, str]) -> str:
        return self.config.upstream_base_url + spec.format_upstream_path(path_params)

    def build_headers(self, spec: RouteSpec) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if spec.requires_auth:
            if not self.config.has_api_token:
                raise self._config_failed(spec, TOKEN_MISSING_MESSAGE)
            headers["Authorization"] = f"Bearer {self.config.api_token}"
        return headers

    async def handle_simple_proxy(
        self, spec: RouteSpec, path_params: Dict[str, str], query_items: QueryItems
    ) -> Response:
        """Proxy one GET route: validate, merge defaults, call upstream once."""
        missing = find_missing_param(spec, query_items)
        if missing:
            raise self._validation_failed(spec, missing)

        query = build_query(spec, query_items)
        url = self.build_url(spec, path_params)
        headers = self.build_headers(spec)

        response = await self._send(spec, spec.method, url, headers=headers, params=query)
        if not response.is_success:
            raise self._upstream_failed(spec, url, response)

        return self._render(spec, url, response)

    async def handle_challenge_create(self, challenge: ChallengeRequest) -> ChallengeResponse:
        """Validate the opponent exists, then create the challenge."""
        spec = CHALLENGE_ROUTE
        username = challenge.username
        if not username or not username.strip():
            raise self._validation_failed(spec, spec.required_params["username"])

        lookup_url = self.build_url(CHALLENGE_USER_LOOKUP, {"username": username})
        lookup = await self._send(
            CHALLENGE_USER_LOOKUP,
            "GET",
            lookup_url,
            headers=self.build_headers(CHALLENGE_USER_LOOKUP),
        )
        if lookup.status_code == 404:
            raise self._upstream_failed(CHALLENGE_USER_LOOKUP, lookup_url, lookup)
        if not lookup.is_success:
            raise self._upstream_failed(spec, lookup_url, lookup, classify_challenge_failure)

        headers = self.build_headers(spec)
        form = spec.body_transform(challenge)
        url = self.build_url(spec, {"username": username})

        response = await self._send(spec, "POST", url, headers=headers, data=dict(form))
        if not response.is_success:
            raise self._upstream_failed(spec, url, response, classify_challenge_failure)

        payload = self._parse_json(spec, url, response)
        challenge_id = extract_challenge_id(payload)
        lichess_url = f"{self.config.site_url}/{challenge_id}" if challenge_id else None

        self.logger.log_event(
            EventType.CHALLENGE_CREATED,
            f"Challenge sent to {username}",
            route=spec.name,
            metadata={"challenge_id": challenge_id, "form_fields": [name for name, _ in form]},
        )

        return ChallengeResponse(
            challenge=payload,
            lichess_url=lichess_url,
            message=f"Challenge sent successfully to {username}!",
        )

    async def fetch_account_overview(self) -> Dict[str, Any]:
        """Fetch the configured account and its online status."""
        headers = self.build_headers(ACCOUNT_ROUTE)
        account_id = self.config.account_id
        if not account_id:
            raise self._config_failed(ACCOUNT_ROUTE, ACCOUNT_ID_MISSING_MESSAGE)

        account = await self._fetch_json(ACCOUNT_ROUTE, headers)
        statuses = await self._fetch_json(
            ACCOUNT_STATUS_ROUTE,
            self.build_headers(ACCOUNT_STATUS_ROUTE),
            params=[("ids", account_id)],
        )

        status = statuses[0] if isinstance(statuses, list) and statuses else None
        return {"account": account, "status": status}

    async def _fetch_json(
        self, spec: RouteSpec, headers: Dict[str, str], params: Optional[QueryItems] = None
    ) -> Any:
        url = self.build_url(spec, {})
        response = await self._send(spec, "GET", url, headers=headers, params=params)
        if not response.is_success:
            raise self._upstream_failed(spec, url, response)
        return self._parse_json(spec, url, response)

    async def _send(
        self,
        spec: RouteSpec,
        method: str,
        url: str,
        headers: Dict[str, str],
        params: Optional[QueryItems] = None,
        data: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """Issue exactly one outbound request; transport failures become UpstreamError."""
        start_time = time.time()
        self.logger.log_upstream_start(
            spec.name,
            method,
            url,
            metadata={"query": params or [], "auth": "Authorization" in headers},
        )
        self.metrics.increment_counter(
            MetricNames.UPSTREAM_REQUESTS, route=spec.name, labels={"method": method}
        )

        try:
            async with httpx.AsyncClient(timeout=self.config.request_timeout_seconds) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    params=params or None,
                    data=data,
                    headers=headers,
                    follow_redirects=False,
                )
        except httpx.HTTPError as e:
            self.logger.log_upstream_error(spec.name, url, f"{type(e).__name__}: {e}")
            self.metrics.increment_counter(
                MetricNames.UPSTREAM_ERRORS,
                route=spec.name,
                labels={"error": type(e).__name__},
            )
            raise UpstreamError(spec.error_message, cause=e) from e

        duration_ms = (time.time() - start_time) * 1000
        self.logger.log_upstream_end(spec.name, url, response.status_code, duration_ms)
        self.metrics.record_timer(
            MetricNames.UPSTREAM_DURATION,
            duration_ms,
            route=spec.name,
            labels={"status": str(response.status_code)},
        )
        return response

    def _render(self, spec: RouteSpec, url: str, response: httpx.Response) -> Response:
        """Return the upstream body with status 200, whatever 2xx the upstream used."""
        content_type = response.headers.get("content-type", "")
        if not response.content:
            return Response(status_code=200)
        if _is_json(content_type):
            return JSONResponse(status_code=200, content=self._parse_json(spec, url, response))
        # ndjson and PGN exports pass through untouched
        return Response(
            content=response.content,
            status_code=200,
            media_type=content_type or None,
        )

    def _parse_json(self, spec: RouteSpec, url: str, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            self.logger.log_upstream_error(
                spec.name, url, f"Invalid JSON body: {e}", status_code=response.status_code
            )
            self.metrics.increment_counter(
                MetricNames.UPSTREAM_ERRORS, route=spec.name, labels={"error": "invalid_json"}
            )
            raise UpstreamError(
                spec.error_message, upstream_status=response.status_code, cause=e
            ) from e

    def _upstream_failed(
        self,
        spec: RouteSpec,
        url: str,
        response: httpx.Response,
        classify: Callable[[RouteSpec, httpx.Response], GatewayError] = classify_failure,
    ) -> GatewayError:
        error = classify(spec, response)
        self.logger.log_upstream_error(
            spec.name, url, error.message, status_code=response.status_code
        )
        self.metrics.increment_counter(
            MetricNames.UPSTREAM_ERRORS,
            route=spec.name,
            labels={"status": str(response.status_code)},
        )
        return error

    def _validation_failed(self, spec: RouteSpec, message: str) -> InvalidRequestError:
        self.logger.log_validation_error(spec.name, message)
        self.metrics.increment_counter(MetricNames.VALIDATION_ERRORS, route=spec.name)
        return InvalidRequestError(message)

    def _config_failed(self, spec: RouteSpec, message: str) -> ConfigurationError:
        self.logger.log_config_error(spec.name, message)
        self.metrics.increment_counter(MetricNames.CONFIG_ERRORS, route=spec.name)
        return ConfigurationError(message)
