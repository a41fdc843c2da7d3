"""
Failure Envelope: Unified Response Classification.

Every failure an endpoint reports is wrapped in an ApiResponse and passes
through `finalize_response()`, the single exit point for user-visible
failures. Successful responses use their own response models.

INVARIANT: No raw 500 errors may reach the frontend.

Response types:
- KnownFailure: System knows why it failed (bad card choice, match over, ...)
- UnknownFailure: System does not know why it failed
"""

from enum import Enum

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Classification of failure types."""

    # Resource failures
    NOT_FOUND = "not_found"

    # Game rule violations
    INSUFFICIENT_CARDS = "insufficient_cards"
    MATCH_ALREADY_OVER = "match_already_over"
    CARD_NOT_IN_HAND = "card_not_in_hand"
    CARD_USAGE_LIMIT_EXCEEDED = "card_usage_limit_exceeded"

    # Service failures
    SERVICE_UNAVAILABLE = "service_unavailable"
    IMAGE_UNAVAILABLE = "image_unavailable"

    # Unknown
    UNKNOWN = "unknown"


class OutcomeType(str, Enum):
    """High-level outcome classification."""

    KNOWN_FAILURE = "known_failure"
    UNKNOWN_FAILURE = "unknown_failure"


class FailureDetail(BaseModel):
    """Detailed information about a failure."""

    kind: FailureKind = Field(
        ...,
        description="Classification of the failure",
    )
    message: str = Field(
        ...,
        description="User-appropriate explanation of what went wrong",
    )
    detail: str | None = Field(
        default=None,
        description="Additional technical detail (optional)",
    )
    suggestion: str | None = Field(
        default=None,
        description="Suggested action for the user",
    )


class ApiResponse(BaseModel):
    """
    Response envelope for failed requests.

    Every failure is classified into one of two outcome types, ensuring
    none reaches the player unexplained.
    """

    outcome: OutcomeType = Field(
        ...,
        description="High-level classification of the result",
    )
    failure: FailureDetail = Field(
        ...,
        description="What went wrong and what to do next",
    )

    @classmethod
    def known_failure(
        cls,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
    ) -> "ApiResponse":
        """
        Create a known failure response.

        Use when the system knows exactly why the operation failed.
        Example: Card already played twice, match already over.
        """
        return cls(
            outcome=OutcomeType.KNOWN_FAILURE,
            failure=FailureDetail(
                kind=kind,
                message=message,
                detail=detail,
                suggestion=suggestion,
            ),
        )


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    The message is shown to the player, so it must say what to do next.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
        status_code: int = 400,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ApiResponse:
        """Convert to a finalized ApiResponse."""
        return finalize_response(
            ApiResponse.known_failure(
                kind=self.kind,
                message=self.message,
                detail=self.detail,
                suggestion=self.suggestion,
            )
        )


# =============================================================================
# FAILURE AUTHORITY BOUNDARY
# =============================================================================


# Standard messages are fixed and never customized

STANDARD_MESSAGES: dict[OutcomeType, str] = {
    OutcomeType.KNOWN_FAILURE: "The operation failed due to a known issue.",
    OutcomeType.UNKNOWN_FAILURE: (
        "I failed and I don't know why. Try simplifying the request or retrying."
    ),
}

STANDARD_SUGGESTIONS: dict[OutcomeType, str] = {
    OutcomeType.KNOWN_FAILURE: "Check the error details and adjust your request.",
    OutcomeType.UNKNOWN_FAILURE: "If this persists, please report the issue.",
}


def finalize_response(response: ApiResponse) -> ApiResponse:
    """
    Validate a failure response and fill in standard wording.

    The input is not modified. A blank message or missing suggestion is
    replaced with the standard text for the outcome.

    Args:
        response: The ApiResponse to finalize

    Returns:
        A response ready to send

    Raises:
        ValueError: If the kind contradicts the outcome
    """
    is_unknown_kind = response.failure.kind == FailureKind.UNKNOWN
    if is_unknown_kind != (response.outcome == OutcomeType.UNKNOWN_FAILURE):
        raise ValueError(
            f"{response.outcome.value} response cannot carry kind "
            f"{response.failure.kind.value}"
        )

    failure = response.failure.model_copy(
        update={
            "message": response.failure.message.strip() or STANDARD_MESSAGES[response.outcome],
            "suggestion": response.failure.suggestion or STANDARD_SUGGESTIONS[response.outcome],
        }
    )
    return response.model_copy(update={"failure": failure})


def create_unknown_failure(
    exception: Exception,
    include_type: bool = True,
) -> ApiResponse:
    """
    Create an unknown failure response from an exception.

    The message is fixed and cannot be customized; the exception text is
    never included.

    Args:
        exception: The exception that caused the failure
        include_type: Whether to include exception type in detail

    Returns:
        A finalized unknown failure response
    """
    detail = None
    if include_type:
        detail = f"{type(exception).__name__}"

    response = ApiResponse(
        outcome=OutcomeType.UNKNOWN_FAILURE,
        failure=FailureDetail(
            kind=FailureKind.UNKNOWN,
            message=STANDARD_MESSAGES[OutcomeType.UNKNOWN_FAILURE],
            detail=detail,
        ),
    )

    return finalize_response(response)
