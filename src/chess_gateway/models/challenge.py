"""
Request and response models for the challenge creation endpoint.
"""

from typing import Any, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class ChallengeRequest(BaseModel):
    """Body of POST /challenge.

    Parameters are forwarded as given: clock and correspondence settings are not
    checked for exclusivity and ``variant`` is not checked against a known set.
    """

    username: Optional[str] = Field(default=None, description="Player to challenge")
    rated: Optional[bool] = None
    clock_limit: Optional[Union[int, str]] = Field(
        default=None, alias="clockLimit", description="Initial clock in seconds"
    )
    clock_increment: Optional[Union[int, str]] = Field(
        default=None, alias="clockIncrement", description="Increment in seconds"
    )
    days: Optional[Union[int, str]] = Field(
        default=None, description="Days per move for correspondence games"
    )
    color: Optional[str] = Field(default=None, description="random, white or black")
    variant: Optional[str] = None
    fen: Optional[str] = Field(default=None, description="Start position for fromPosition")

    model_config = ConfigDict(populate_by_name=True)


class ChallengeResponse(BaseModel):
    """Success envelope returned after the upstream accepted the challenge."""

    success: bool = True
    challenge: Any = Field(..., description="Raw upstream challenge payload")
    lichess_url: Optional[str] = Field(
        default=None, alias="lichessUrl", description="Viewer URL for the created challenge"
    )
    message: str

    model_config = ConfigDict(populate_by_name=True)


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_challenge_form(challenge: ChallengeRequest) -> List[Tuple[str, str]]:
    """Map a challenge request to the upstream form-encoded fields."""
    form: List[Tuple[str, str]] = []

    if challenge.rated is not None:
        form.append(("rated", _form_value(challenge.rated)))

    # Clock fields travel together or not at all
    if challenge.clock_limit is not None and challenge.clock_increment is not None:
        form.append(("clock.limit", _form_value(challenge.clock_limit)))
        form.append(("clock.increment", _form_value(challenge.clock_increment)))

    if challenge.days is not None:
        form.append(("days", _form_value(challenge.days)))

    for name in ("color", "variant", "fen"):
        value = getattr(challenge, name)
        if value:
            form.append((name, value))

    return form


def extract_challenge_id(payload: Any) -> Optional[str]:
    """Find the challenge identifier in an upstream creation response."""
    if not isinstance(payload, dict):
        return None

    nested = payload.get("challenge")
    if isinstance(nested, dict) and nested.get("id"):
        return str(nested["id"])
    if payload.get("id"):
        return str(payload["id"])
    return None
