"""Payment input validation utilities."""
import math
from typing import Any, Optional

from app.core.exceptions import InvalidInputError
from app.models.transaction import PaymentMode

AMOUNT_ERROR = "Amount must be a positive number greater than 0"
MAX_TEXT_LENGTH = 500


def parse_amount(value: Any) -> float:
    """
    Parse a payment amount from a request body.

    Accepts numbers and numeric strings. Rejects booleans, NaN, infinity,
    zero and negatives.
    """
    if value is None or isinstance(value, bool):
        raise InvalidInputError(AMOUNT_ERROR, {"amount": value})

    if isinstance(value, (int, float)):
        amount = float(value)
    elif isinstance(value, str):
        try:
            amount = float(value.strip())
        except ValueError:
            raise InvalidInputError(AMOUNT_ERROR, {"amount": value})
    else:
        raise InvalidInputError(AMOUNT_ERROR, {"amount": str(value)})

    if not math.isfinite(amount) or amount <= 0:
        raise InvalidInputError(AMOUNT_ERROR, {"amount": value})

    return amount


def validate_payment_mode(value: Any) -> PaymentMode:
    """Map a request value onto PaymentMode. Missing means Cash."""
    if value is None or value == "":
        return PaymentMode.CASH
    try:
        return PaymentMode(value)
    except ValueError:
        valid = ", ".join(mode.value for mode in PaymentMode)
        raise InvalidInputError(
            f"Invalid payment mode. Must be one of: {valid}",
            {"paymentMode": value}
        )


def validate_text(field: str, value: Optional[Any], max_length: int = MAX_TEXT_LENGTH) -> Optional[str]:
    """Free-text fields must be strings no longer than `max_length`."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidInputError(f"{field} must be text", {field: str(value)})
    if len(value) > max_length:
        raise InvalidInputError(
            f"{field} cannot exceed {max_length} characters",
            {field: f"{len(value)} characters"}
        )
    return value
