"""
Invoice numbering per organization.

Two counters back every invoice:

- the all-time counter (``InvoiceSequence.ALL_TIME``) gives ``Invoice.number``,
  e.g. ``С-0042``
- one counter per calendar year of the issue date gives ``sequence_number``

Counters are advanced with ``UPDATE ... SET current_number = current_number + 1``
inside the invoice creation unit, so the row lock serializes concurrent
creations for the same organization and a number is never handed out twice.
"""

from datetime import date
from typing import Tuple
from uuid import UUID
import logging

from sqlalchemy import update, extract, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.modules.invoices.models import Invoice, InvoiceSequence

logger = logging.getLogger(__name__)


def format_invoice_number(counter: int) -> str:
    return f"{settings.INVOICE_NUMBER_PREFIX}{counter:0{settings.INVOICE_NUMBER_WIDTH}d}"


class InvoiceNumberingService:

    def __init__(self, db: Session):
        self.db = db

    def _seed_value(self, organization_id: UUID, period_year: int) -> int:
        """
        Highest counter already used for the period, so numbering continues
        after it even when earlier invoices were deleted.
        """
        if period_year == InvoiceSequence.ALL_TIME:
            prefix = settings.INVOICE_NUMBER_PREFIX
            numbers = self.db.query(Invoice.number).filter(Invoice.organization_id == organization_id).all()
            counters = [
                int(number[len(prefix):])
                for (number,) in numbers
                if number.startswith(prefix) and number[len(prefix):].isdigit()
            ]
            return max(counters, default=0)

        highest = self.db.query(func.max(Invoice.sequence_number)).filter(
            Invoice.organization_id == organization_id,
            extract("year", Invoice.issue_date) == period_year
        ).scalar()
        return highest or 0

    def _ensure_sequence(self, organization_id: UUID, period_year: int) -> None:
        """Create the counter row if missing, seeded from the invoices that already exist"""
        exists = self.db.query(InvoiceSequence.id).filter(
            InvoiceSequence.organization_id == organization_id,
            InvoiceSequence.period_year == period_year
        ).first()
        if exists:
            return

        seed = self._seed_value(organization_id, period_year)
        try:
            with self.db.begin_nested():
                self.db.add(InvoiceSequence(
                    organization_id=organization_id,
                    period_year=period_year,
                    current_number=seed
                ))
            logger.info(f"Invoice counter {period_year or 'all-time'} seeded at {seed} for organization {organization_id}")
        except IntegrityError:
            # A concurrent creation seeded the same row first; its row is used
            logger.debug(f"Invoice counter {period_year} for organization {organization_id} already seeded")

    def _advance(self, organization_id: UUID, period_year: int) -> int:
        self._ensure_sequence(organization_id, period_year)
        criteria = (
            InvoiceSequence.organization_id == organization_id,
            InvoiceSequence.period_year == period_year
        )
        self.db.execute(
            update(InvoiceSequence)
            .where(*criteria)
            .values(current_number=InvoiceSequence.current_number + 1)
            .execution_options(synchronize_session=False)
        )
        return self.db.query(InvoiceSequence.current_number).filter(*criteria).scalar()

    def next_identifiers(self, organization_id: UUID, issue_date: date) -> Tuple[str, int]:
        """
        Reserve the next (number, sequence_number) pair.

        Must run inside the unit that inserts the invoice: a rollback
        releases both counters together with the invoice.
        """
        counter = self._advance(organization_id, InvoiceSequence.ALL_TIME)
        sequence_number = self._advance(organization_id, issue_date.year)
        number = format_invoice_number(counter)
        logger.info(f"Assigned invoice number {number} (#{sequence_number} of {issue_date.year})")
        return number, sequence_number
