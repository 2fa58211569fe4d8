# Overview: Human-readable, per-dispensary daily order numbers.

from __future__ import annotations

from datetime import date

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import NotFoundError, ValidationError
from ..models import Dispensary, OrderSequence
from cannasaas.time_utils import local_date


ORDER_NUMBER_PREFIX = "ORD"


def format_order_number(business_date: date, seq: int) -> str:
    return f"{ORDER_NUMBER_PREFIX}-{business_date:%Y%m%d}-{seq:04d}"


def _allocate(session, dispensary_id: int, business_date: date) -> int:
    stmt = (
        update(OrderSequence)
        .where(
            OrderSequence.dispensary_id == dispensary_id,
            OrderSequence.business_date == business_date,
        )
        .values(next_number=OrderSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = session.execute(stmt)
    if not result.rowcount:
        # First order of the day. The savepoint keeps a lost insert race
        # from poisoning the surrounding checkout transaction.
        try:
            with session.begin_nested():
                session.add(OrderSequence(
                    dispensary_id=dispensary_id,
                    business_date=business_date,
                    next_number=2,
                ))
            return 1
        except IntegrityError:
            result = session.execute(stmt)
            if not result.rowcount:
                raise

    current = (
        session.query(OrderSequence.next_number)
        .filter_by(dispensary_id=dispensary_id, business_date=business_date)
        .scalar()
    )
    return current - 1


def next_order_number(session, dispensary_id: int, business_date: date | None = None) -> str:
    """
    Allocate the next order number for a dispensary, e.g. ORD-20250601-0004.

    Runs inside the caller's unit of work: a checkout that rolls back also
    rolls back its number, so retries do not leave holes in the daily
    sequence. business_date defaults to the dispensary's local date.
    """
    if not dispensary_id:
        raise ValidationError("dispensary_id is required")

    if business_date is None:
        dispensary = session.get(Dispensary, dispensary_id)
        if dispensary is None:
            raise NotFoundError(f"Dispensary {dispensary_id} not found")
        business_date = local_date(dispensary.timezone)

    seq = _allocate(session, dispensary_id, business_date)
    return format_order_number(business_date, seq)
