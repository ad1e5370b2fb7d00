from __future__ import annotations

from collections.abc import Iterator, Sequence
from itertools import combinations
import math
import random

from .errors import TooManyParticipants
from .models import BalancedSplit, Player, RandomSplit
from .signatures import older_history, repeat_penalty, team_signature

DEFAULT_MAX_BALANCED_PLAYERS = 14
# Point difference is scaled so balance outweighs the similarity penalties.
DIFF_WEIGHT = 10


def _sum_points(players: Sequence[Player]) -> int:
    return sum(player.points for player in players)


def _keys(players: Sequence[Player]) -> list[str]:
    return [player.id.key for player in players]


def split_balanced(
    players: Sequence[Player],
    last_signature: str | None = None,
    recent_signatures: Sequence[str] = (),
    *,
    rng: random.Random | None = None,
    max_players: int = DEFAULT_MAX_BALANCED_PLAYERS,
) -> BalancedSplit:
    """Split into two teams with the closest point sums, avoiding recent line-ups.

    Every subset of size ``len(players) // 2`` is tried, so the cost grows
    with C(n, n/2); ``max_players`` bounds it. Repeats of ``last_signature``
    and overlap with older history are soft penalties, not hard constraints.
    """
    rng = rng or random.Random()
    players = list(players)
    total = len(players)

    if total < 2:
        return BalancedSplit(
            team_a=players,
            team_b=[],
            sum_a=_sum_points(players),
            sum_b=0,
            diff=_sum_points(players),
            signature=None,
        )
    if total > max_players:
        raise TooManyParticipants(total, max_players)

    older = older_history(last_signature, recent_signatures)
    scored = _scored_splits(players, total // 2, rng, last_signature, older)
    # min() keeps the first of equal scores.
    return min(scored, key=lambda item: item[0])[1]


def _scored_splits(
    players: list[Player],
    size_a: int,
    rng: random.Random,
    last_signature: str | None,
    older: list[str],
) -> Iterator[tuple[int, BalancedSplit]]:
    total = len(players)
    total_points = _sum_points(players)
    for combo in combinations(range(total), size_a):
        chosen = set(combo)
        candidate_a = [players[i] for i in range(total) if i in chosen]
        candidate_b = [players[i] for i in range(total) if i not in chosen]

        # Coin flip on labels so repeated calls do not always favour one side.
        if rng.random() < 0.5:
            team_a, team_b = candidate_a, candidate_b
        else:
            team_a, team_b = candidate_b, candidate_a

        sum_a = _sum_points(team_a)
        sum_b = total_points - sum_a
        diff = abs(sum_a - sum_b)

        keys_a = _keys(team_a)
        keys_b = _keys(team_b)
        signature = team_signature(keys_a, keys_b)
        score = diff * DIFF_WEIGHT + repeat_penalty(keys_a, keys_b, signature, last_signature, older)
        yield score, BalancedSplit(
            team_a=team_a,
            team_b=team_b,
            sum_a=sum_a,
            sum_b=sum_b,
            diff=diff,
            signature=signature,
        )


def split_random(players: Sequence[Player], *, rng: random.Random | None = None) -> RandomSplit:
    rng = rng or random.Random()
    shuffled = list(players)
    rng.shuffle(shuffled)
    half = math.ceil(len(shuffled) / 2)
    first, second = shuffled[:half], shuffled[half:]
    if rng.random() < 0.5:
        return RandomSplit(team_a=first, team_b=second)
    return RandomSplit(team_a=second, team_b=first)
