"""
Draw orchestration.

Validates the request, runs the assignment generator, and hands the cycle,
the group stamp and one DrawCompleted notification per participant to the
repository as a single write. Rejections are raised as DrawError subclasses
before anything is written.
"""

import random
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation

from secret_santa.features.draw.domain import (
    AlreadyDrawnError,
    Assignment,
    DrawError,
    DrawOutcome,
    DrawRequest,
    DrawValidation,
    InfeasibleExclusionsError,
    InvalidBudgetError,
    InvalidDrawInputError,
)
from secret_santa.features.draw.repository import DrawRepository
from secret_santa.features.draw.services.cycle_generator import (
    DEFAULT_MAX_SHUFFLES,
    MIN_PARTICIPANTS,
    build_forbidden_set,
    find_infeasibility,
    generate_cycle,
    verify_cycle,
)
from secret_santa.features.notifications.domain import NotificationKind, NotificationRecord
from secret_santa.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

MIN_BUDGET = Decimal("0.01")
MAX_BUDGET = Decimal("99999999.99")


def utcnow() -> datetime:
    return datetime.now(UTC)


def validate_budget(budget) -> Decimal:
    """
    Coerce and check the final budget.

    Raises:
        InvalidBudgetError: not a number, out of range, or finer than cents
    """
    try:
        value = budget if isinstance(budget, Decimal) else Decimal(str(budget))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise InvalidBudgetError("Budget must be a valid decimal value.") from e

    if not value.is_finite():
        raise InvalidBudgetError("Budget must be a valid decimal value.")
    if value < MIN_BUDGET or value > MAX_BUDGET:
        raise InvalidBudgetError(f"Budget must be between {MIN_BUDGET} and {MAX_BUDGET}.")
    if value.as_tuple().exponent < -2 and value != value.quantize(Decimal("0.01")):
        raise InvalidBudgetError("Budget must have at most 2 decimal places.")

    return value.quantize(Decimal("0.01"))


class DrawService:
    """Coordinates one-shot draws for groups."""

    def __init__(
        self,
        repository: DrawRepository,
        *,
        rng_factory: Callable[[], random.Random] = random.Random,
        clock: Callable[[], datetime] = utcnow,
        max_shuffle_attempts: int = DEFAULT_MAX_SHUFFLES,
    ):
        self.repository = repository
        self.rng_factory = rng_factory
        self.clock = clock
        self.max_shuffle_attempts = max_shuffle_attempts

    async def execute_draw(self, request: DrawRequest) -> DrawOutcome:
        """
        Run the draw for a group.

        Raises:
            InvalidBudgetError, InvalidDrawInputError: malformed request
            GroupNotFoundError: no such group
            AlreadyDrawnError: the group already has assignments
            InsufficientParticipantsError: fewer than three participants
            InfeasibleExclusionsError: no cycle satisfies the exclusions
        """
        group_id = request.group_id

        if request.budget is None:
            raise InvalidBudgetError("A final budget is required to run the draw.", group_id=group_id)
        budget = validate_budget(request.budget)

        if await self.repository.is_drawn(group_id):
            raise AlreadyDrawnError(group_id=group_id)

        logger.info(
            "Executing draw",
            group_id=group_id,
            participant_count=len(request.participant_ids),
            exclusion_count=len(request.exclusion_pairs),
        )

        # A fresh rng per draw keeps concurrent draws independent
        try:
            result = generate_cycle(
                request.participant_ids,
                request.exclusion_pairs,
                self.rng_factory(),
                max_shuffles=self.max_shuffle_attempts,
            )
        except DrawError as e:
            e.group_id = group_id
            logger.warning("Draw rejected", group_id=group_id, code=e.code, error=e.message)
            raise

        if not result.is_success:
            logger.warning(
                "Draw infeasible", group_id=group_id, reason=result.reason, attempts=result.attempts
            )
            raise InfeasibleExclusionsError(result.reason, group_id=group_id)

        issues = verify_cycle(
            result.order,
            request.participant_ids,
            build_forbidden_set(request.exclusion_pairs),
        )
        if issues:
            # Generator bug; never persist a broken cycle
            raise RuntimeError(f"Generated cycle failed verification: {'; '.join(issues)}")

        drawn_at = self.clock()
        assignments = [
            Assignment(
                id=str(uuid.uuid4()),
                group_id=group_id,
                santa_id=santa_id,
                recipient_id=recipient_id,
                assigned_at=drawn_at,
            )
            for santa_id, recipient_id in result.edges()
        ]
        notifications = [
            NotificationRecord.pending(
                NotificationKind.DRAW_COMPLETED,
                recipient_id=participant_id,
                group_id=group_id,
                scheduled_at=drawn_at,
            )
            for participant_id in result.order
        ]

        saved = await self.repository.save_draw(
            group_id, budget, drawn_at, assignments, notifications
        )
        if not saved:
            raise AlreadyDrawnError(group_id=group_id)

        logger.info(
            "Draw completed",
            group_id=group_id,
            assignment_count=len(assignments),
            attempts=result.attempts,
        )

        return DrawOutcome(
            group_id=group_id,
            budget=budget,
            drawn_at=drawn_at,
            assignments=assignments,
            notifications_scheduled=len(notifications),
        )

    async def validate_draw(self, request: DrawRequest) -> DrawValidation:
        """
        Dry run: report whether the draw could run, without writing.

        Raises:
            GroupNotFoundError: no such group
        """
        group_id = request.group_id
        participant_ids = request.participant_ids
        errors: list[str] = []
        warnings: list[str] = []

        already_drawn = await self.repository.is_drawn(group_id)
        if already_drawn:
            warnings.append("Draw has already been completed for this group")

        if len(set(participant_ids)) != len(participant_ids):
            errors.append("Duplicate participant IDs detected")
        elif len(participant_ids) < MIN_PARTICIPANTS:
            errors.append(f"Minimum {MIN_PARTICIPANTS} participants required for draw")
        else:
            try:
                forbidden = build_forbidden_set(request.exclusion_pairs, participant_ids)
            except InvalidDrawInputError as e:
                errors.append(e.message)
            else:
                reason = find_infeasibility(sorted(participant_ids), forbidden)
                if reason:
                    errors.append(f"Current exclusion rules prevent a valid draw: {reason}")

        is_valid = not errors
        validation = DrawValidation(
            group_id=group_id,
            is_valid=is_valid,
            can_draw=is_valid and not already_drawn,
            participant_count=len(participant_ids),
            exclusion_rule_count=len(request.exclusion_pairs),
            errors=errors,
            warnings=warnings,
        )

        logger.info(
            "Draw validation",
            group_id=group_id,
            is_valid=validation.is_valid,
            can_draw=validation.can_draw,
            participant_count=validation.participant_count,
            exclusion_rule_count=validation.exclusion_rule_count,
        )
        return validation

