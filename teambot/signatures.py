"""Team composition signatures and the similarity measure used to avoid repeats.

A signature is a JSON pair of the two sorted id lists, itself sorted, so the
same partition always encodes to the same string regardless of which side
was labelled A.
"""

from __future__ import annotations

from collections.abc import Iterable
import json

EXACT_REPEAT_PENALTY = 100_000
LAST_SIMILARITY_WEIGHT = 200
HISTORY_DEPTH = 5
HISTORY_TOP_WEIGHT = 100
HISTORY_WEIGHT_STEP = 20
HISTORY_FLOOR_WEIGHT = 20


def team_signature(team_a_keys: Iterable[str], team_b_keys: Iterable[str]) -> str:
    sides = sorted([sorted(team_a_keys), sorted(team_b_keys)])
    return json.dumps(sides, ensure_ascii=False, separators=(",", ":"))


def decode_signature(signature: str | None) -> tuple[frozenset[str], frozenset[str]] | None:
    if not signature:
        return None
    try:
        raw = json.loads(signature)
    except (TypeError, json.JSONDecodeError):
        return None
    if not isinstance(raw, list) or len(raw) != 2:
        return None
    if not all(isinstance(side, list) for side in raw):
        return None
    return frozenset(str(key) for key in raw[0]), frozenset(str(key) for key in raw[1])


def jaccard(left: frozenset[str], right: frozenset[str]) -> float:
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)


def similarity(team_a_keys: Iterable[str], team_b_keys: Iterable[str], previous: str | None) -> float:
    """Highest Jaccard overlap between either current team and either previous team.

    Comparing all four pairings catches a repeat whose labels were swapped.
    """
    decoded = decode_signature(previous)
    if decoded is None:
        return 0.0
    prev_a, prev_b = decoded
    cur_a = frozenset(team_a_keys)
    cur_b = frozenset(team_b_keys)
    return max(
        jaccard(cur_a, prev_a),
        jaccard(cur_a, prev_b),
        jaccard(cur_b, prev_a),
        jaccard(cur_b, prev_b),
    )


def history_weights(depth: int = HISTORY_DEPTH) -> list[int]:
    return [max(HISTORY_FLOOR_WEIGHT, HISTORY_TOP_WEIGHT - i * HISTORY_WEIGHT_STEP) for i in range(depth)]


def older_history(last_signature: str | None, recent_signatures: Iterable[str]) -> list[str]:
    """Up to ``HISTORY_DEPTH`` signatures preceding ``last_signature``, newest first."""
    recent = list(recent_signatures)
    if recent and last_signature is not None and recent[0] == last_signature:
        recent = recent[1:]
    return recent[:HISTORY_DEPTH]


def repeat_penalty(
    team_a_keys: list[str],
    team_b_keys: list[str],
    signature: str,
    last_signature: str | None,
    older: list[str],
) -> int:
    penalty = 0
    if last_signature is not None and signature == last_signature:
        penalty += EXACT_REPEAT_PENALTY
    else:
        penalty += int(similarity(team_a_keys, team_b_keys, last_signature) * LAST_SIMILARITY_WEIGHT)

    for weight, previous in zip(history_weights(len(older)), older):
        penalty += int(similarity(team_a_keys, team_b_keys, previous) * weight)
    return penalty
