from .challenge import ChallengeRequest, ChallengeResponse, build_challenge_form
from .route import RouteSpec

__all__ = ["ChallengeRequest", "ChallengeResponse", "RouteSpec", "build_challenge_form"]
