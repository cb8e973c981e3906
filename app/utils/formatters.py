"""Receipt numbers, codes, dates and amounts rendered for people."""
from datetime import datetime

from num2words import num2words

RECEIPT_PREFIX = "RCP"
RECEIPT_SEQUENCE_WIDTH = 5
STUDENT_CODE_PREFIX = "STU"


def receipt_prefix(at: datetime) -> str:
    """`RCP-YYMM-` for the calendar month of `at`."""
    return f"{RECEIPT_PREFIX}-{at:%y%m}-"


def format_receipt_number(at: datetime, sequence: int) -> str:
    return f"{receipt_prefix(at)}{sequence:0{RECEIPT_SEQUENCE_WIDTH}d}"


def receipt_counter_key(at: datetime) -> str:
    return f"receipt:{receipt_prefix(at)[:-1]}"


def format_student_code(sequence: int) -> str:
    return f"{STUDENT_CODE_PREFIX}{sequence:03d}"


def format_joined_date(at: datetime) -> str:
    return at.strftime("%d/%m/%Y")


def amount_in_words(amount: float) -> str:
    """
    Indian-English words for a rupee amount, e.g.
    12500.5 -> "Twelve Thousand, Five Hundred Rupees and Fifty Paise Only".
    """
    paise_total = int(round(amount * 100))
    rupees, paise = divmod(paise_total, 100)

    words = f"{_words(rupees)} Rupees"
    if paise:
        words += f" and {_words(paise)} Paise"
    return f"{words} Only"


def _words(number: int) -> str:
    return num2words(number, lang="en_IN").title()
