"""Assignment engine: turns a participant list into giver/receiver pairs."""
import random
from collections.abc import Hashable, Sequence
from typing import TypeVar

from secret_santa.draw.errors import InsufficientParticipants

T = TypeVar("T", bound=Hashable)

_system_random = random.SystemRandom()


def assign(participant_ids: Sequence[T], rng: random.Random | None = None) -> list[tuple[T, T]]:
    """
    Draw a derangement of the given participants.

    The list is shuffled uniformly, then each participant gives to the
    next one in the shuffled order and the last gives to the first. The
    result is a single cycle through everybody, so nobody can draw
    themselves and every id appears exactly once as giver and once as
    receiver.

    With two participants the only possible outcome is the reciprocal
    pair (A gives to B, B gives to A).

    Ids must be unique; duplicates are not removed.

    Args:
        participant_ids: At least two distinct participant ids.
        rng: Random source, mainly for reproducible tests. Defaults to
            the operating system's generator.

    Returns:
        One (giver, receiver) tuple per participant, in cycle order.

    Raises:
        InsufficientParticipants: Fewer than two ids were given.
    """
    if len(participant_ids) < 2:
        raise InsufficientParticipants(len(participant_ids))

    shuffled = list(participant_ids)
    (rng or _system_random).shuffle(shuffled)

    count = len(shuffled)
    return [(shuffled[i], shuffled[(i + 1) % count]) for i in range(count)]


def is_derangement(pairs: Sequence[tuple[T, T]], participant_ids: Sequence[T]) -> bool:
    """Check that pairs form a permutation of participant_ids with no fixed point."""
    givers = [giver for giver, _ in pairs]
    receivers = [receiver for _, receiver in pairs]
    expected = set(participant_ids)
    return (
        len(pairs) == len(expected)
        and set(givers) == expected
        and set(receivers) == expected
        and len(set(givers)) == len(givers)
        and len(set(receivers)) == len(receivers)
        and all(giver != receiver for giver, receiver in pairs)
    )
