from .transactions import Transaction, TransactionInsertResponse
from .problems import Problem, ValidationProblem, IdempotencyConflictProblem
from .health import HealthResponse

__all__ = [
    "Transaction",
    "TransactionInsertResponse",
    "Problem",
    "ValidationProblem",
    "IdempotencyConflictProblem",
    "HealthResponse",
]
