"""
Domain subpackage for the draw feature.
"""

from .errors import (
    AlreadyDrawnError,
    DrawError,
    GroupNotFoundError,
    InfeasibleExclusionsError,
    InsufficientParticipantsError,
    InvalidBudgetError,
    InvalidDrawInputError,
)
from .models import (
    Assignment,
    CycleResult,
    DrawOutcome,
    DrawRequest,
    DrawValidation,
    ExclusionPair,
)

__all__ = [
    "AlreadyDrawnError",
    "Assignment",
    "CycleResult",
    "DrawError",
    "DrawOutcome",
    "DrawRequest",
    "DrawValidation",
    "ExclusionPair",
    "GroupNotFoundError",
    "InfeasibleExclusionsError",
    "InsufficientParticipantsError",
    "InvalidBudgetError",
    "InvalidDrawInputError",
]
