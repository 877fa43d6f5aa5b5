"""Masks personal data before a record reaches any handler."""

import logging
import re

# Applied in order; account numbers last so phone numbers keep their own label
MASKS = (
    (re.compile(r"[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+"), "[EMAIL]"),
    (re.compile(r"(?:\+?63|0)9\d{2}[-.\s]?\d{3}[-.\s]?\d{4}"), "[PHONE]"),
    (re.compile(r"(?<![\w.-])\d{10,16}(?![\w.])"), "[ACCOUNT]"),
)


def mask_pii(text: str) -> str:
    for pattern, label in MASKS:
        text = pattern.sub(label, text)
    return text


class PIIFilter(logging.Filter):
    """Masks emails, PH mobile numbers (GCash) and bank account numbers.

    Withdrawal references carry the payout destination, so both the message
    and its string args are masked.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = mask_pii(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(
                mask_pii(arg) if isinstance(arg, str) else arg for arg in record.args
            )
        return True
