from collections import namedtuple
from decimal import Decimal, InvalidOperation

from .errors import ValidationError

CartLine = namedtuple("CartLine", ["game_id", "quantity", "price"])

CENT = Decimal("0.01")

# Bounds of a DECIMAL(10,2) money column and of an SQLite INTEGER.
MAX_AMOUNT = Decimal("99999999.99")
MIN_INT = -(2 ** 63)
MAX_INT = 2 ** 63 - 1


def parse_amount(value, field: str) -> Decimal:
    """
    Parse a money amount into a Decimal rounded to cents.

    Raises ValidationError for anything that is not a non-negative number.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number.")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number.")
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"{field} must be a non-negative number.")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} must not exceed {MAX_AMOUNT}.")
    try:
        return amount.quantize(CENT)
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number.")


def parse_int(value, field: str) -> int:
    """Parse an integer that fits an SQLite INTEGER column."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer.")
    try:
        number = int(str(value).strip())
    except ValueError:
        raise ValidationError(f"{field} must be an integer.")
    if not MIN_INT <= number <= MAX_INT:
        raise ValidationError(f"{field} is out of range.")
    return number


def parse_cart(items) -> list:
    """
    Turn a client-supplied cart into a list of CartLine tuples.

    items is expected to be a list of dicts such as:
        [{"game_id": 1, "quantity": 2, "price": 9.99}, ...]
    """
    if not items or not isinstance(items, list):
        raise ValidationError("Cart is empty.")

    lines = []
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("Each cart item must be an object.")
        for key in ("game_id", "quantity", "price"):
            if item.get(key) in (None, ""):
                raise ValidationError(f"Cart item is missing {key}.")

        quantity = parse_int(item["quantity"], "quantity")
        if quantity <= 0:
            raise ValidationError("quantity must be a positive integer.")

        lines.append(
            CartLine(
                game_id=parse_int(item["game_id"], "game_id"),
                quantity=quantity,
                price=parse_amount(item["price"], "price"),
            )
        )
    return lines


def calculate_cart_total(lines: list) -> Decimal:
    """
    Calculate the total value of a list of cart lines.
    """
    total = Decimal("0.00")
    for line in lines:
        total += line.price * line.quantity
    return total


def cart_item_count(lines: list) -> int:
    """
    Count total number of items in a cart.
    """
    return sum(line.quantity for line in lines)
