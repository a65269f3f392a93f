"""
Domain models for the draw feature.

Plain dataclasses shared by the generator, the orchestrator, the repository
and the API layer.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True, slots=True)
class ExclusionPair:
    """Unordered pair of participants who must not draw each other."""

    first_id: str
    second_id: str

    def key(self) -> frozenset[str]:
        return frozenset((self.first_id, self.second_id))


@dataclass(frozen=True, slots=True)
class CycleResult:
    """
    Outcome of the assignment generator.

    On success ``order`` holds every participant exactly once; each entry
    gives to the next one and the last gives to the first.
    """

    order: tuple[str, ...] | None
    attempts: int
    reason: str | None = None

    @property
    def is_success(self) -> bool:
        return self.order is not None

    def edges(self) -> list[tuple[str, str]]:
        """santa -> recipient pairs, closing the cycle."""
        if self.order is None:
            return []
        size = len(self.order)
        return [(self.order[i], self.order[(i + 1) % size]) for i in range(size)]


@dataclass(slots=True)
class Assignment:
    """Represents an assignments row: one santa gives to one recipient."""

    id: str
    group_id: str
    santa_id: str
    recipient_id: str
    assigned_at: datetime


@dataclass(slots=True)
class DrawRequest:
    """Everything the draw trigger supplies for one group."""

    group_id: str
    participant_ids: list[str]
    exclusion_pairs: list[ExclusionPair] = field(default_factory=list)
    budget: Decimal | None = None


@dataclass(slots=True)
class DrawOutcome:
    """Result of a completed draw."""

    group_id: str
    budget: Decimal
    drawn_at: datetime
    assignments: list[Assignment]
    notifications_scheduled: int

    @property
    def participant_count(self) -> int:
        return len(self.assignments)

    def recipient_for(self, santa_id: str) -> str | None:
        for assignment in self.assignments:
            if assignment.santa_id == santa_id:
                return assignment.recipient_id
        return None


@dataclass(slots=True)
class DrawValidation:
    """Dry-run verdict for a prospective draw."""

    group_id: str
    is_valid: bool
    can_draw: bool
    participant_count: int
    exclusion_rule_count: int
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
