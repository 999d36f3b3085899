from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional
import logging

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..core.timeutils import to_utc_datetime, utc_now
from ..database.collections import COLLECTIONS
from ..database.database_service import database_service
from .payment_history_service import payment_history_service

logger = logging.getLogger(__name__)


def _money(value: Any) -> str:
    return f"{float(value or 0):,.2f}"


def _date(value: Any) -> str:
    moment = to_utc_datetime(value)
    return moment.strftime("%B %d, %Y") if moment else "N/A"


class ReceiptService:
    """Renders payment receipts from payment history records"""

    def __init__(self):
        self.db = database_service

        template_dir = Path(__file__).parent.parent / 'templates' / 'receipts'
        self.jinja_env = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(['html', 'xml'])
        )
        self.jinja_env.filters['money'] = _money
        self.jinja_env.filters['date'] = _date

    def render_receipt_html(self, payment: Dict[str, Any], landlord: Optional[Dict[str, Any]] = None,
                            generated_on: Optional[datetime] = None) -> str:
        try:
            template = self.jinja_env.get_template('receipt.html')
            return template.render(
                payment=payment,
                landlord=landlord,
                generated_on=_date(generated_on or utc_now()),
            )
        except Exception as e:
            logger.error(f"Error rendering receipt {payment.get('receipt_id')}: {str(e)}")
            raise

    async def get_receipt_html(self, user_id: str, history_id: str) -> str:
        """Render the receipt for a payment record the user is allowed to see"""
        payment = await payment_history_service.get_payment_record(user_id, history_id)

        landlord = None
        success, bill, _ = await self.db.get_document(COLLECTIONS['bills'], payment['bill_id'])
        if success and bill:
            found, user, _ = await self.db.get_document(COLLECTIONS['users'], bill['landlord_id'])
            if found and user:
                landlord = {
                    "name": f"{user.get('first_name') or ''} {user.get('last_name') or ''}".strip() or None,
                    "email": user.get('email'),
                    "phone": user.get('phone'),
                }

        return self.render_receipt_html(payment, landlord)


receipt_service = ReceiptService()
