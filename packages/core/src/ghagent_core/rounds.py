"""Reconstruct the current conversation round from comment history."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from ghagent_core.errors import RoundsExhausted
from ghagent_core.markers import has_reset_command, parse_round

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoundState:
    current: int
    next: int
    max_rounds: int


def compute_round_state(bodies: Iterable[str | None], max_rounds: int) -> RoundState:
    """Derive the round from comment bodies in chronological order.

    Only comments strictly after the last ``/reset`` count. Raises
    RoundsExhausted when the next round would exceed ``max_rounds``.
    """
    bodies = list(bodies)
    last_reset = None
    for index, body in enumerate(bodies):
        if has_reset_command(body):
            last_reset = index
    if last_reset is not None:
        bodies = bodies[last_reset + 1 :]

    current = max((parse_round(body) for body in bodies), default=0)
    state = RoundState(current=current, next=current + 1, max_rounds=max_rounds)
    if state.next > max_rounds:
        raise RoundsExhausted(max_rounds)
    return state


def check_round_limit(platform, number: int | None, max_rounds: int) -> RoundState:
    """Fetch the history of issue/PR ``number`` and return its RoundState.

    Without an issue/PR number the run is always round 1 and nothing is fetched.
    """
    if not number:
        return RoundState(current=0, next=1, max_rounds=max_rounds)

    bodies = platform.list_comment_bodies(number)
    state = compute_round_state(bodies, max_rounds)
    logger.info("Round %d of %d", state.next, max_rounds)
    return state
