from typing import Optional
import logging

from ..core.timeutils import utc_now
from ..database.collections import COLLECTIONS

logger = logging.getLogger(__name__)


def counter_document_id(name: str, year: Optional[int] = None) -> str:
    """Counters are stored one document per name (and per year when scoped)"""
    return f"{name}_counter_{year}" if year is not None else f"{name}_counter"


def increment_counter(txn, name: str, year: Optional[int] = None) -> int:
    """
    Reserve the next value of a durable counter inside a transaction.

    Reads the counter and stages the incremented value, so it has to be the
    last read of the transaction. Concurrent callers conflict on the counter
    document and Firestore retries the loser, which keeps values unique.
    """
    counter_id = counter_document_id(name, year)
    counter_data = txn.get(COLLECTIONS['counters'], counter_id)

    next_number = (counter_data or {}).get("counter", 0) + 1
    txn.set(COLLECTIONS['counters'], counter_id, {
        "year": year,
        "counter": next_number,
        "last_updated": utc_now(),
    })
    return next_number


async def get_current_counter(db, name: str, year: Optional[int] = None) -> int:
    """Get the current counter value without reserving one"""
    success, counter_data, _ = await db.get_document(
        COLLECTIONS['counters'],
        counter_document_id(name, year),
    )
    if not success or not counter_data:
        return 0
    return counter_data.get("counter", 0)
