"""Admission control for the bounded store."""

from app.config import MAX_TRANSACTIONS

CAPACITY_COUNTER = "transactions"


def try_reserve(unit_of_work, limit: int = MAX_TRANSACTIONS) -> bool:
    """Reserve one slot inside ``unit_of_work``.

    The check and the increment are one conditional update in the store,
    so two reservations racing for the last slot cannot both succeed. The
    reservation only becomes permanent when the unit of work commits.
    """
    return unit_of_work.increment_if_below(CAPACITY_COUNTER, limit)
