"""
Declarative description of one proxied endpoint.
"""

from string import Formatter
from typing import Any, Callable, Dict, FrozenSet, List, Literal, Optional, Tuple
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

FormPairs = List[Tuple[str, str]]


class RouteSpec(BaseModel):
    """Parameter rules, defaults and auth requirement of one gateway route.

    Instances are frozen and built once at import time; the executor only reads
    them.
    """

    name: str = Field(..., description="Route identifier used in logs and metrics")
    path: str = Field(..., description="Inbound path template, e.g. /swiss/{id}/results")
    upstream_path: str = Field(..., description="Upstream path template relative to base URL")
    method: Literal["GET", "POST"] = "GET"

    required_params: Dict[str, str] = Field(
        default_factory=dict,
        description="Required query parameter -> validation message",
    )
    default_query_values: Dict[str, Tuple[str, ...]] = Field(
        default_factory=dict,
        description="Query parameter -> default value(s), used when the caller omits it",
    )
    multi_value_params: FrozenSet[str] = frozenset()
    true_only_params: FrozenSet[str] = Field(
        default=frozenset(),
        description="Flags forwarded as name=true only when the caller sent 'true'",
    )
    allowed_values: Dict[str, FrozenSet[str]] = Field(
        default_factory=dict,
        description="Per-parameter whitelist; other values are dropped",
    )
    trimmed_params: FrozenSet[str] = frozenset()

    requires_auth: bool = False
    error_message: str = Field(..., description="Generic failure message")
    not_found_message: Optional[str] = Field(
        default=None, description="Message for an upstream 404; unset means generic failure"
    )
    body_transform: Optional[Callable[[Any], FormPairs]] = Field(
        default=None, description="POST only: maps the parsed body to form pairs"
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("default_query_values", mode="before")
    @classmethod
    def wrap_single_defaults(cls, v):
        if isinstance(v, dict):
            return {k: (d,) if isinstance(d, str) else tuple(d) for k, d in v.items()}
        return v

    @model_validator(mode="after")
    def check_path_params(self):
        # POST routes fill upstream placeholders from the request body
        missing = set(_placeholders(self.upstream_path)) - set(self.path_params)
        if missing and self.method == "GET":
            raise ValueError(f"upstream_path uses unknown path parameters: {sorted(missing)}")
        if self.body_transform is not None and self.method != "POST":
            raise ValueError("body_transform is only valid for POST routes")
        return self

    @property
    def path_params(self) -> List[str]:
        return _placeholders(self.path)

    def format_upstream_path(self, path_params: Dict[str, str]) -> str:
        """Substitute path parameters, URL-component encoded."""
        return self.upstream_path.format(
            **{name: quote(str(value), safe="") for name, value in path_params.items()}
        )


def _placeholders(template: str) -> List[str]:
    return [field for _, field, _, _ in Formatter().parse(template) if field]
