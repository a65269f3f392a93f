"""
Draw errors.

Each error carries a stable ``code`` for API clients and a message that tells
the organizer what to do next.
"""


class DrawError(Exception):
    """Base class for draw rejections."""

    code = "DrawFailed"

    def __init__(self, message: str, *, group_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.group_id = group_id


class InsufficientParticipantsError(DrawError):
    code = "InsufficientParticipants"

    def __init__(self, participant_count: int, minimum: int, *, group_id: str | None = None):
        super().__init__(
            f"At least {minimum} participants are required for a draw "
            f"(currently {participant_count}). Invite more participants.",
            group_id=group_id,
        )
        self.participant_count = participant_count
        self.minimum = minimum


class InfeasibleExclusionsError(DrawError):
    code = "InfeasibleExclusions"

    def __init__(self, detail: str, *, group_id: str | None = None):
        super().__init__(
            f"No valid assignment exists with the current exclusion rules: {detail}. "
            "Remove some exclusion rules and try again.",
            group_id=group_id,
        )
        self.detail = detail


class AlreadyDrawnError(DrawError):
    code = "DrawAlreadyCompleted"

    def __init__(self, *, group_id: str | None = None):
        super().__init__(
            "The draw has already been completed for this group.", group_id=group_id
        )


class InvalidBudgetError(DrawError):
    code = "InvalidBudget"


class InvalidDrawInputError(DrawError):
    code = "InvalidDrawInput"


class GroupNotFoundError(DrawError):
    code = "GroupNotFound"

    def __init__(self, *, group_id: str | None = None):
        super().__init__(
            "The group does not exist. Check the group id and try again.", group_id=group_id
        )
