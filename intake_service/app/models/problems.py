"""RFC 7807 problem documents returned for every non-2xx answer."""

from typing import Optional

from pydantic import Field

from app.models.transactions import CamelModel, Transaction


class Problem(CamelModel):
    type: str = Field(description="Stable machine-readable kind, e.g. urn:problem-type:capacity")
    title: str
    status: int
    detail: Optional[str] = None


class ValidationProblem(Problem):
    errors: dict[str, list[str]]


class IdempotencyConflictProblem(Problem):
    mismatched_fields: list[str]
    existing: Transaction
