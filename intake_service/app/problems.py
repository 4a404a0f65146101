"""
Problem responses and exception handlers.

Every expected failure has a fixed ``type`` URN that clients can switch
on; ``title`` and ``detail`` are for humans. Unexpected faults get a
generic 500 that carries no internal detail.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.config import MAX_TRANSACTIONS
from app.errors import StoreUnavailableError
from app.models import IdempotencyConflictProblem, Problem, Transaction, ValidationProblem
from app.records import InsertOutcome

logger = logging.getLogger("problems")

PROBLEM_JSON = "application/problem+json"

VALIDATION = "urn:problem-type:validation"
CAPACITY = "urn:problem-type:capacity"
IDEMPOTENCY_CONFLICT = "urn:problem-type:idempotency-conflict"
NOT_FOUND = "urn:problem-type:not-found"
STORE_UNAVAILABLE = "urn:problem-type:store-unavailable"
INTERNAL = "urn:problem-type:internal"


def problem_response(problem: Problem) -> JSONResponse:
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(mode="json", by_alias=True, exclude_none=True),
        media_type=PROBLEM_JSON,
    )


def validation_problem(errors: dict[str, list[str]]) -> JSONResponse:
    return problem_response(ValidationProblem(
        type=VALIDATION,
        title="Validation error",
        status=400,
        detail="One or more fields are invalid.",
        errors=errors,
    ))


def capacity_problem(limit: int = MAX_TRANSACTIONS) -> JSONResponse:
    return problem_response(Problem(
        type=CAPACITY,
        title="Transaction capacity reached",
        status=409,
        detail=f"The service stores at most {limit} transactions.",
    ))


def idempotency_conflict_problem(outcome: InsertOutcome) -> JSONResponse:
    return problem_response(IdempotencyConflictProblem(
        type=IDEMPOTENCY_CONFLICT,
        title="Idempotency conflict",
        status=409,
        detail=(
            "A transaction with the same Id already exists but has different "
            f"{', '.join(outcome.mismatched_fields)}."
        ),
        mismatched_fields=list(outcome.mismatched_fields),
        existing=Transaction.from_stored(outcome.existing),
    ))


def not_found_problem() -> JSONResponse:
    return problem_response(Problem(
        type=NOT_FOUND,
        title="Transaction not found",
        status=404,
        detail="No transaction exists for the provided id.",
    ))


def _field_name(error: dict) -> str:
    if error.get("type") == "json_invalid":
        return "body"
    parts = [str(p) for p in error.get("loc", ()) if p not in ("body", "query", "path")]
    return ".".join(parts) or "body"


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        errors.setdefault(_field_name(error), []).append(error.get("msg", "Invalid value."))
    return validation_problem(errors)


async def store_unavailable_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
    logger.error("Store unavailable during %s %s: %s", request.method, request.url.path, exc)
    return problem_response(Problem(
        type=STORE_UNAVAILABLE,
        title="Store unavailable",
        status=503,
        detail="The transaction store is temporarily unavailable.",
    ))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error during %s %s",
        request.method,
        request.url.path,
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return problem_response(Problem(
        type=INTERNAL,
        title="Internal server error",
        status=500,
    ))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StoreUnavailableError, store_unavailable_handler)
    # Starlette re-raises after this handler, so the fault still reaches the server
    app.add_exception_handler(Exception, unhandled_error_handler)
