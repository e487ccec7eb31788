"""Unit tests for error classification utilities."""

import pytest
from pydantic import ValidationError

from grindset.core.db_client import DatabaseError
from grindset.core.errors import (
    AlreadyQuittedError,
    ErrorCategory,
    ErrorCode,
    ErrorSeverity,
    ForbiddenError,
    GrindNotFoundError,
    ParticipantNotFoundError,
    ProblemSourceUnavailableError,
    SameSenderReceiverError,
    category_of,
    classify_error_with_response,
)
from grindset.domain.grind import GrindCreate


@pytest.mark.unit
class TestErrorTaxonomy:
    """Concrete errors carry their taxonomy category and code."""

    @pytest.mark.parametrize(
        ("error", "category", "code"),
        [
            (GrindNotFoundError(), ErrorCategory.NOT_FOUND, ErrorCode.ERR_GRIND_NOT_FOUND),
            (ParticipantNotFoundError(), ErrorCategory.NOT_FOUND, ErrorCode.ERR_PARTICIPANT_NOT_FOUND),
            (ForbiddenError(), ErrorCategory.FORBIDDEN, ErrorCode.ERR_FORBIDDEN),
            (AlreadyQuittedError(), ErrorCategory.CONFLICT, ErrorCode.ERR_ALREADY_QUITTED),
            (SameSenderReceiverError(), ErrorCategory.VALIDATION, ErrorCode.ERR_SAME_SENDER_RECEIVER),
            (
                ProblemSourceUnavailableError(),
                ErrorCategory.UPSTREAM_UNAVAILABLE,
                ErrorCode.ERR_PROBLEM_SOURCE_UNAVAILABLE,
            ),
        ],
    )
    def test_category_and_code(self, error, category, code):
        assert error.category == category
        assert error.code == code
        assert category_of(error) == category

    def test_custom_message_overrides_default(self):
        error = ParticipantNotFoundError("Participant ghost@example.com not found.")

        assert error.message == "Participant ghost@example.com not found."
        assert str(error) == "Participant ghost@example.com not found."


@pytest.mark.unit
class TestClassifyErrorWithResponse:
    """Tests for classify_error_with_response function."""

    def test_domain_error(self):
        response = classify_error_with_response(AlreadyQuittedError())

        assert response.code == ErrorCode.ERR_ALREADY_QUITTED
        assert response.message == "You have already quitted this grind."
        assert response.severity == ErrorSeverity.LOW

    def test_upstream_error_is_high_severity(self):
        response = classify_error_with_response(ProblemSourceUnavailableError())

        assert response.severity == ErrorSeverity.HIGH
        assert "try again" in response.suggestion.lower()

    def test_pydantic_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            GrindCreate(duration=0, budget=1, participants=["a@example.com"], startDate="2024-01-01T00:00:00")

        response = classify_error_with_response(exc_info.value)

        assert response.code == ErrorCode.ERR_VALIDATION
        assert category_of(exc_info.value) == ErrorCategory.VALIDATION

    def test_internal_details_do_not_leak(self):
        error = DatabaseError("Failed to create record in tasks: no such column: secret_column")

        response = classify_error_with_response(error)

        assert response.code == ErrorCode.ERR_UNKNOWN
        assert "secret_column" not in response.message
        assert category_of(error) == ErrorCategory.UNKNOWN
