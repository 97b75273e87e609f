"""Contact form messages kept alongside the ledger."""

import re
from datetime import datetime
from typing import Optional, Union

from bankflow.models.ledger import (
    ContactMessage,
    Ledger,
    Rejection,
    RejectionReason,
    next_record_id,
)
from bankflow.utils.date_utils import resolve_now, to_utc

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def submit_message(
    ledger: Ledger,
    name: str,
    email: str,
    subject: str,
    message: str,
    now: Optional[datetime] = None,
) -> Union[ContactMessage, Rejection]:
    """
    Record a contact message, newest first.

    All fields are required; the email must look like an address.
    """
    fields = [(value or "").strip() for value in (name, email, subject, message)]
    if not all(fields):
        return Rejection(
            reason=RejectionReason.INVALID_MESSAGE,
            message="Please fill in all required fields",
        )
    name, email, subject, message = fields

    if not EMAIL_PATTERN.match(email):
        return Rejection(
            reason=RejectionReason.INVALID_MESSAGE,
            message="Please enter a valid email address",
        )

    now = resolve_now(now)
    record = ContactMessage(
        id=next_record_id(ledger, now),
        name=name,
        email=email,
        subject=subject,
        message=message,
        date=to_utc(now),
    )
    ledger.contact_messages.insert(0, record)
    return record


def clear_messages(ledger: Ledger) -> Ledger:
    ledger.contact_messages = []
    return ledger
