from typing import Optional
import logging

from ..core.config import settings
from ..core.timeutils import utc_now
from .counter_service import get_current_counter, increment_counter

logger = logging.getLogger(__name__)

INVOICE_COUNTER = "invoice"


class InvoiceIdService:
    @staticmethod
    def format_invoice_id(year: int, number: int) -> str:
        """INV-YYYY-NNN, e.g. INV-2025-001 (grows past three digits when needed)"""
        return f"{settings.INVOICE_PREFIX}-{year}-{number:03d}"

    @staticmethod
    def next_invoice_id(txn, year: Optional[int] = None) -> str:
        """
        Reserve the next invoice ID for ``year`` within a transaction.

        The sequence is scoped to the year and survives across invocations.
        Must be the last read of the transaction (see ``increment_counter``).
        """
        year = year or utc_now().year
        next_number = increment_counter(txn, INVOICE_COUNTER, year)
        invoice_id = InvoiceIdService.format_invoice_id(year, next_number)
        logger.info(f"Reserved invoice ID: {invoice_id}")
        return invoice_id

    @staticmethod
    async def get_current_counter(db, year: Optional[int] = None) -> int:
        """Get the current invoice counter value for a specific year"""
        return await get_current_counter(db, INVOICE_COUNTER, year or utc_now().year)


invoice_id_service = InvoiceIdService()
