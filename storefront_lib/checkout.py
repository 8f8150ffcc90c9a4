"""
Checkout: turns a client cart into an order, its line items and a payment.

The order, items, inventory adjustment and payment are written in one
transaction; either all of them become visible or none do. The workflow is
not idempotent: repeating a request places a second order.
"""
import logging
from collections import namedtuple
from datetime import datetime, timezone

from .cart_utils import calculate_cart_total, cart_item_count, parse_amount, parse_cart, parse_int
from .errors import InvalidReferenceError, StoreError, TransactionError, ValidationError
from .transactions import transaction

logger = logging.getLogger(__name__)

ORDER_STATUS_PENDING = 1
PAYMENT_STATUS_PAID = 1

PlacedOrder = namedtuple("PlacedOrder", ["order_id", "user_id", "total_amount", "lines"])


def _is_absent(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def missing_game_ids(conn, game_ids) -> set:
    """Return the ids from game_ids that do not exist in the catalog."""
    wanted = set(game_ids)
    if not wanted:
        return set()

    placeholders = ",".join("?" for _ in wanted)
    rows = conn.execute(
        f"SELECT game_id FROM games WHERE game_id IN ({placeholders})",
        list(wanted),
    ).fetchall()
    return wanted - {row["game_id"] for row in rows}


def place_order(conn, items, total_amount, payment_method_id, user_id=None) -> PlacedOrder:
    """
    Validate a cart and write the order it describes.

    Raises ValidationError for missing or malformed input,
    InvalidReferenceError when a line points at a game that does not exist,
    and TransactionError when the write fails (nothing is persisted then).
    """
    if not items:
        raise ValidationError("Missing required fields.")
    if _is_absent(total_amount) or _is_absent(payment_method_id):
        raise ValidationError("Missing required fields.")

    lines = parse_cart(items)
    total = parse_amount(total_amount, "totalAmount")
    line_sum = calculate_cart_total(lines)
    if line_sum != total:
        # recorded as sent
        logger.warning("Checkout total %s differs from line sum %s", total, line_sum)

    method_id = parse_int(payment_method_id, "paymentMethodId")
    user_id = None if _is_absent(user_id) else parse_int(user_id, "userId")

    # The catalog can still change before the transaction starts; the
    # order_items foreign key rejects the write in that case.
    missing = missing_game_ids(conn, (line.game_id for line in lines))
    if missing:
        logger.warning("Checkout rejected, unknown game ids: %s", sorted(missing))
        raise InvalidReferenceError()

    created_at = datetime.now(timezone.utc).isoformat(timespec="seconds")

    try:
        with transaction(conn):
            # 1) Create order
            cur = conn.execute(
                "INSERT INTO orders (user_id, order_date, total_amount, status_id) "
                "VALUES (?, ?, ?, ?)",
                (user_id, created_at, total, ORDER_STATUS_PENDING),
            )
            order_id = cur.lastrowid

            # 2) Create order items and take them out of stock
            for line in lines:
                conn.execute(
                    """
                    INSERT INTO order_items (order_id, game_id, quantity, price)
                    VALUES (?, ?, ?, ?)
                    """,
                    (order_id, line.game_id, line.quantity, line.price),
                )
                conn.execute(
                    "UPDATE inventory SET stock_quantity = stock_quantity - ? "
                    "WHERE game_id = ?",
                    (line.quantity, line.game_id),
                )

            # 3) Record the payment
            conn.execute(
                """
                INSERT INTO payments (order_id, payment_date, status_id, method_id)
                VALUES (?, ?, ?, ?)
                """,
                (order_id, created_at, PAYMENT_STATUS_PAID, method_id),
            )
    except StoreError:
        raise
    except Exception as e:
        logger.exception("Checkout failed, transaction rolled back")
        raise TransactionError() from e

    logger.info("Order %s placed: %d line(s), %d item(s)", order_id, len(lines), cart_item_count(lines))
    return PlacedOrder(order_id=order_id, user_id=user_id, total_amount=total, lines=lines)
