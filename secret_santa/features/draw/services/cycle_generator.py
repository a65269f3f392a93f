"""
Assignment generator.

Builds a single gift-giving cycle through every participant: each person
gives to the next one in the order and the last gives to the first. Pairs
named by exclusion rules may never be adjacent in the cycle, in either
direction.

The search is randomized: shuffle, then repair broken adjacencies with local
swaps, then reshuffle when repair stalls. The shuffle budget bounds the run
time, so "infeasible" after exhausting it is a heuristic answer. Cheap
necessary conditions are checked first so hopeless inputs fail immediately.
"""

import random
from collections.abc import Iterable, Sequence

from secret_santa.features.draw.domain import (
    CycleResult,
    ExclusionPair,
    InsufficientParticipantsError,
    InvalidDrawInputError,
)

MIN_PARTICIPANTS = 3
DEFAULT_MAX_SHUFFLES = 500

PairLike = ExclusionPair | tuple[str, str]


def build_forbidden_set(
    pairs: Iterable[PairLike], participants: Iterable[str] | None = None
) -> set[frozenset[str]]:
    """
    Normalize exclusion pairs into a set of unordered keys.

    Raises:
        InvalidDrawInputError: a pair names the same person twice, or a
            participant outside ``participants`` when that is given
    """
    known = set(participants) if participants is not None else None
    forbidden: set[frozenset[str]] = set()

    for pair in pairs:
        first, second = (
            (pair.first_id, pair.second_id) if isinstance(pair, ExclusionPair) else pair
        )
        if first == second:
            raise InvalidDrawInputError("An exclusion rule must name two different participants.")
        if known is not None and (first not in known or second not in known):
            raise InvalidDrawInputError(
                "Exclusion rules may only reference participants of the group."
            )
        forbidden.add(frozenset((first, second)))

    return forbidden


def find_infeasibility(participants: Sequence[str], forbidden: set[frozenset[str]]) -> str | None:
    """
    Check necessary conditions for a cycle to exist.

    Returns a human-readable reason when no cycle can exist, otherwise None.
    Passing this check does not prove that a cycle exists.
    """
    allowed = {
        person: {
            other
            for other in participants
            if other != person and frozenset((person, other)) not in forbidden
        }
        for person in participants
    }

    # Every person needs a santa and a recipient, and they must differ
    for person, partners in allowed.items():
        if not partners:
            return "a participant is excluded from everyone else"
        if len(partners) < 2:
            return "a participant can only be paired with one other participant"

    # Reachability over allowed pairs
    start = participants[0]
    seen = {start}
    frontier = [start]
    while frontier:
        current = frontier.pop()
        for other in allowed[current]:
            if other not in seen:
                seen.add(other)
                frontier.append(other)
    if len(seen) != len(participants):
        return "exclusion rules split the group into parts that cannot exchange gifts"

    # People with exactly two options force both of their pairings
    forced: set[frozenset[str]] = set()
    for person, partners in allowed.items():
        if len(partners) == 2:
            forced.update(frozenset((person, other)) for other in partners)

    degree: dict[str, int] = {}
    for edge in forced:
        for person in edge:
            degree[person] = degree.get(person, 0) + 1
    if any(count > 2 for count in degree.values()):
        return "exclusion rules force a participant into more than two pairings"

    # Forced pairings must not close a loop that leaves someone out
    parent = {person: person for person in participants}
    size = {person: 1 for person in participants}

    def find(person: str) -> str:
        while parent[person] != person:
            parent[person] = parent[parent[person]]
            person = parent[person]
        return person

    for edge in forced:
        first, second = tuple(edge)
        root_a, root_b = find(first), find(second)
        if root_a == root_b:
            if size[root_a] < len(participants):
                return "exclusion rules force a closed circle that leaves other participants out"
            continue
        if size[root_a] < size[root_b]:
            root_a, root_b = root_b, root_a
        parent[root_b] = root_a
        size[root_a] += size[root_b]

    return None


def generate_cycle(
    participants: Iterable[str],
    exclusions: Iterable[PairLike],
    rng: random.Random,
    *,
    max_shuffles: int = DEFAULT_MAX_SHUFFLES,
    max_repair_swaps: int | None = None,
) -> CycleResult:
    """
    Generate a random single cycle through all participants.

    Args:
        participants: unique participant ids, at least three
        exclusions: unordered pairs that may not be adjacent
        rng: random source owned by the caller
        max_shuffles: reshuffle budget before giving up
        max_repair_swaps: swap budget per shuffle (defaults to group size)

    Returns:
        CycleResult; ``order`` is None when no cycle was found

    Raises:
        InsufficientParticipantsError: fewer than three participants
        InvalidDrawInputError: duplicate ids or malformed exclusion pairs
    """
    ids = list(participants)
    if len(set(ids)) != len(ids):
        raise InvalidDrawInputError("Participant ids must be unique.")
    if len(ids) < MIN_PARTICIPANTS:
        raise InsufficientParticipantsError(len(ids), MIN_PARTICIPANTS)

    # Sorted so a seeded rng yields the same cycle regardless of input order
    ids.sort()
    forbidden = build_forbidden_set(exclusions, ids)

    reason = find_infeasibility(ids, forbidden)
    if reason is not None:
        return CycleResult(order=None, attempts=0, reason=reason)

    swap_budget = len(ids) if max_repair_swaps is None else max_repair_swaps

    for attempt in range(1, max_shuffles + 1):
        cycle = ids[:]
        rng.shuffle(cycle)
        if _repair(cycle, forbidden, rng, swap_budget):
            return CycleResult(order=tuple(cycle), attempts=attempt)

    return CycleResult(
        order=None,
        attempts=max_shuffles,
        reason=f"no valid arrangement found after {max_shuffles} attempts",
    )


def verify_cycle(
    order: Sequence[str], participants: Iterable[str], forbidden: set[frozenset[str]]
) -> list[str]:
    """Return every problem with ``order`` as a cycle; empty when it is valid."""
    issues = []
    expected = set(participants)

    if len(order) != len(set(order)):
        issues.append("participant appears more than once")
    if set(order) != expected:
        missing = expected - set(order)
        extra = set(order) - expected
        if missing:
            issues.append(f"missing participants: {sorted(missing)}")
        if extra:
            issues.append(f"unexpected participants: {sorted(extra)}")

    size = len(order)
    for index in range(size):
        santa, recipient = order[index], order[(index + 1) % size]
        if santa == recipient:
            issues.append(f"{santa} is assigned to themselves")
        elif frozenset((santa, recipient)) in forbidden:
            issues.append(f"{santa} -> {recipient} violates an exclusion rule")

    return issues


def _is_blocked(cycle: list[str], edge: int, forbidden: set[frozenset[str]]) -> bool:
    return frozenset((cycle[edge], cycle[(edge + 1) % len(cycle)])) in forbidden


def _first_violation(cycle: list[str], forbidden: set[frozenset[str]]) -> int | None:
    for edge in range(len(cycle)):
        if _is_blocked(cycle, edge, forbidden):
            return edge
    return None


def _edges_clear(cycle: list[str], positions: tuple[int, ...], forbidden) -> bool:
    size = len(cycle)
    for position in positions:
        for edge in ((position - 1) % size, position):
            if _is_blocked(cycle, edge, forbidden):
                return False
    return True


def _swap_out(cycle: list[str], edge: int, forbidden, rng: random.Random) -> bool:
    """
    Move the recipient of a blocked edge elsewhere.

    Accepts the first swap (in random order) after which every edge touching
    both swapped positions is allowed; reverts and reports False otherwise.
    """
    size = len(cycle)
    target = (edge + 1) % size
    candidates = [position for position in range(size) if position != target]
    rng.shuffle(candidates)

    for position in candidates:
        cycle[target], cycle[position] = cycle[position], cycle[target]
        if _edges_clear(cycle, (target, position), forbidden):
            return True
        cycle[target], cycle[position] = cycle[position], cycle[target]

    return False


def _repair(cycle: list[str], forbidden, rng: random.Random, max_swaps: int) -> bool:
    """Fix blocked edges in place; each accepted swap removes at least one."""
    swaps = 0
    while True:
        edge = _first_violation(cycle, forbidden)
        if edge is None:
            return True
        if swaps >= max_swaps or not _swap_out(cycle, edge, forbidden, rng):
            return False
        swaps += 1
