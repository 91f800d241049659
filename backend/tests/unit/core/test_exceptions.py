"""
Unit tests for the application exception hierarchy.
"""

from arsenal.core.exceptions import (
    AppException,
    BusinessRuleViolation,
    InvalidStateTransitionError,
    TicketConflictError,
    TicketNotFoundError,
    ValidationError,
)


def test_status_codes():
    assert ValidationError().status_code == 400
    assert InvalidStateTransitionError().status_code == 400
    assert BusinessRuleViolation().status_code == 422
    assert TicketNotFoundError().status_code == 404
    assert TicketConflictError().status_code == 409


def test_status_code_override():
    assert AppException("teapot", status_code=418).status_code == 418


def test_to_dict_filters_sensitive_context():
    error = ValidationError("Bad input", field="title", password="hunter2", token="abc")

    body = error.to_dict()

    assert body == {
        "error": "ValidationError",
        "message": "Bad input",
        "status_code": 400,
        "details": {"field": "title"},
    }


def test_to_dict_without_context():
    assert TicketNotFoundError().to_dict()["details"] is None
