"""
Route table for the gateway.

Order matters: FastAPI matches routes in registration order, so literal segments
(``/team/search``, ``/team/of/{username}``) are listed before ``/team/{id}``.
"""

from typing import Dict, List

from .models.challenge import build_challenge_form
from .models.route import RouteSpec

USERNAME_REQUIRED = "Username is required"
USER_NOT_FOUND = "User not found"
TEAM_NOT_FOUND = "Team not found"
TOURNAMENT_NOT_FOUND = "Tournament not found"
SWISS_NOT_FOUND = "Swiss tournament not found"

# Game export flags defaulted on for tournament game exports
TOURNAMENT_GAME_DEFAULTS = {
    "moves": "true",
    "pgnInJson": "true",
    "tags": "true",
    "clocks": "true",
    "evals": "true",
    "accuracy": "true",
    "opening": "true",
    "division": "true",
}

USER_GAME_DEFAULTS = {
    "moves": "true",
    "tags": "true",
    "clocks": "true",
    "evals": "true",
    "accuracy": "true",
    "opening": "true",
    "division": "true",
    "finished": "true",
    "literate": "true",
    "lastFen": "true",
    "withBookmarked": "true",
    "sort": "dateDesc",
}

# Arena tournament statuses: created, started, finished
TOURNAMENT_STATUSES = ("10", "20", "30")


ROUTES: List[RouteSpec] = [
    RouteSpec(
        name="broadcasts",
        path="/broadcast",
        upstream_path="/broadcast",
        default_query_values={"nb": "20", "html": "false"},
        error_message="Failed to fetch broadcasts",
    ),
    RouteSpec(
        name="external_engines",
        path="/external-engine",
        upstream_path="/external-engine",
        requires_auth=True,
        error_message="Failed to fetch external engines",
    ),
    RouteSpec(
        name="fide_player_search",
        path="/fide/player",
        upstream_path="/fide/player",
        required_params={"q": "Search query (q) is required"},
        error_message="Failed to fetch FIDE players",
    ),
    RouteSpec(
        name="user_games",
        path="/games/user/{username}",
        upstream_path="/games/user/{username}",
        default_query_values=USER_GAME_DEFAULTS,
        error_message="Failed to fetch user games",
        not_found_message=USER_NOT_FOUND,
    ),
    RouteSpec(
        name="player_leaderboards",
        path="/player",
        upstream_path="/player",
        error_message="Failed to fetch player leaderboards",
    ),
    RouteSpec(
        name="daily_puzzle",
        path="/puzzle/daily",
        upstream_path="/puzzle/daily",
        error_message="Failed to fetch daily puzzle",
    ),
    RouteSpec(
        name="live_streamers",
        path="/streamer/live",
        upstream_path="/streamer/live",
        error_message="Failed to fetch live streamers",
    ),
    RouteSpec(
        name="swiss_tournament",
        path="/swiss/{id}",
        upstream_path="/swiss/{id}",
        error_message="Failed to fetch Swiss tournament",
        not_found_message=SWISS_NOT_FOUND,
    ),
    RouteSpec(
        name="swiss_games",
        path="/swiss/{id}/games",
        upstream_path="/swiss/{id}/games",
        default_query_values=TOURNAMENT_GAME_DEFAULTS,
        error_message="Failed to fetch Swiss tournament games",
        not_found_message=SWISS_NOT_FOUND,
    ),
    RouteSpec(
        name="swiss_results",
        path="/swiss/{id}/results",
        upstream_path="/swiss/{id}/results",
        default_query_values={"nb": "100"},
        error_message="Failed to fetch Swiss tournament results",
        not_found_message=SWISS_NOT_FOUND,
    ),
    RouteSpec(
        name="all_teams",
        path="/team",
        upstream_path="/team/all",
        default_query_values={"page": "1"},
        error_message="Failed to fetch all teams",
    ),
    RouteSpec(
        name="team_search",
        path="/team/search",
        upstream_path="/team/search",
        required_params={"text": "Search text is required"},
        default_query_values={"page": "1"},
        trimmed_params=frozenset({"text"}),
        error_message="Failed to search teams",
    ),
    RouteSpec(
        name="user_teams",
        path="/team/of/{username}",
        upstream_path="/team/of/{username}",
        error_message="Failed to fetch user teams",
        not_found_message=USER_NOT_FOUND,
    ),
    RouteSpec(
        name="team",
        path="/team/{id}",
        upstream_path="/team/{id}",
        error_message="Failed to fetch team",
        not_found_message=TEAM_NOT_FOUND,
    ),
    RouteSpec(
        name="team_arena_tournaments",
        path="/team/{id}/arena",
        upstream_path="/team/{id}/arena",
        default_query_values={"max": "100"},
        error_message="Failed to fetch team arena tournaments",
        not_found_message=TEAM_NOT_FOUND,
    ),
    RouteSpec(
        name="arena_tournaments",
        path="/tournament",
        upstream_path="/tournament",
        error_message="Failed to fetch arena tournaments",
    ),
    RouteSpec(
        name="arena_tournament",
        path="/tournament/{id}",
        upstream_path="/tournament/{id}",
        error_message="Failed to fetch arena tournament",
        not_found_message=TOURNAMENT_NOT_FOUND,
    ),
    RouteSpec(
        name="arena_tournament_games",
        path="/tournament/{id}/games",
        upstream_path="/tournament/{id}/games",
        default_query_values=TOURNAMENT_GAME_DEFAULTS,
        error_message="Failed to fetch arena tournament games",
        not_found_message=TOURNAMENT_NOT_FOUND,
    ),
    RouteSpec(
        name="arena_tournament_results",
        path="/tournament/{id}/results",
        upstream_path="/tournament/{id}/results",
        error_message="Failed to fetch arena tournament results",
        not_found_message=TOURNAMENT_NOT_FOUND,
    ),
    RouteSpec(
        name="tournament_team_standings",
        path="/tournament/{id}/teams",
        upstream_path="/tournament/{id}/teams",
        error_message="Failed to fetch tournament team standings",
        not_found_message=TOURNAMENT_NOT_FOUND,
    ),
    RouteSpec(
        name="tv_channels",
        path="/tv/channels",
        upstream_path="/tv/channels",
        error_message="Failed to fetch TV channels",
    ),
    RouteSpec(
        name="user_profile",
        path="/user/{username}",
        upstream_path="/user/{username}",
        requires_auth=True,
        error_message="Failed to fetch user profile",
        not_found_message=USER_NOT_FOUND,
    ),
    RouteSpec(
        name="user_note",
        path="/user/{username}/note",
        upstream_path="/user/{username}/note",
        requires_auth=True,
        error_message="Failed to fetch user notes",
        not_found_message=USER_NOT_FOUND,
    ),
    RouteSpec(
        name="user_performance",
        path="/user/{username}/perf/{perf}",
        upstream_path="/user/{username}/perf/{perf}",
        error_message="Failed to fetch user performance stats",
        not_found_message=USER_NOT_FOUND,
    ),
    RouteSpec(
        name="user_rating_history",
        path="/user/{username}/rating-history",
        upstream_path="/user/{username}/rating-history",
        error_message="Failed to fetch user rating history",
        not_found_message=USER_NOT_FOUND,
    ),
    RouteSpec(
        name="user_created_tournaments",
        path="/user/{username}/tournament/created",
        upstream_path="/user/{username}/tournament/created",
        default_query_values={"nb": "50", "status": TOURNAMENT_STATUSES},
        multi_value_params=frozenset({"status"}),
        allowed_values={"status": frozenset(TOURNAMENT_STATUSES)},
        error_message="Failed to fetch user created tournaments",
        not_found_message=USER_NOT_FOUND,
    ),
    RouteSpec(
        name="user_played_tournaments",
        path="/user/{username}/tournament/played",
        upstream_path="/user/{username}/tournament/played",
        default_query_values={"nb": "50", "performance": "true"},
        error_message="Failed to fetch user played tournaments",
        not_found_message=USER_NOT_FOUND,
    ),
    RouteSpec(
        name="users_status",
        path="/users/status",
        upstream_path="/users/status",
        required_params={"ids": "ids parameter is required"},
        multi_value_params=frozenset({"ids"}),
        true_only_params=frozenset({"withSignal", "withGameIds", "withGameMetas"}),
        error_message="Failed to fetch users status",
    ),
]

CHALLENGE_ROUTE = RouteSpec(
    name="challenge_create",
    path="/challenge",
    upstream_path="/challenge/{username}",
    method="POST",
    required_params={"username": USERNAME_REQUIRED},
    requires_auth=True,
    error_message="Failed to create challenge",
    not_found_message=USER_NOT_FOUND,
    body_transform=build_challenge_form,
)

# Lookup used to validate the opponent before creating a challenge
CHALLENGE_USER_LOOKUP = RouteSpec(
    name="challenge_user_lookup",
    path="/user/{username}",
    upstream_path="/user/{username}",
    error_message="Failed to create challenge",
    not_found_message=USER_NOT_FOUND,
)

ACCOUNT_ROUTE = RouteSpec(
    name="account_overview",
    path="/account",
    upstream_path="/account",
    requires_auth=True,
    error_message="Failed to fetch account",
)

ACCOUNT_STATUS_ROUTE = RouteSpec(
    name="account_status",
    path="/account",
    upstream_path="/users/status",
    error_message="Failed to fetch account",
)

_ROUTES_BY_NAME: Dict[str, RouteSpec] = {
    spec.name: spec
    for spec in [*ROUTES, CHALLENGE_ROUTE, CHALLENGE_USER_LOOKUP, ACCOUNT_ROUTE, ACCOUNT_STATUS_ROUTE]
}


def route_by_name(name: str) -> RouteSpec:
    """Get a route spec by name."""
    if name not in _ROUTES_BY_NAME:
        raise KeyError(f"Route '{name}' not found")
    return _ROUTES_BY_NAME[name]


def auth_routes() -> List[str]:
    """Names of inbound routes that need the API token."""
    return [
        spec.name for spec in [*ROUTES, CHALLENGE_ROUTE, ACCOUNT_ROUTE] if spec.requires_auth
    ]
