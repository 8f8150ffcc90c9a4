"""
Catalog administration and the read-side queries behind the admin pages.
"""
import logging
import sqlite3

from .cart_utils import parse_amount, parse_int
from .errors import ConflictError, NotFoundError, PersistenceError, ValidationError
from .transactions import transaction

logger = logging.getLogger(__name__)

GAME_FIELDS = ("title", "description", "price", "genre", "platform")

DELETED_GAME_TITLE = "Deleted Game"


def game_to_dict(row) -> dict:
    game = dict(row)
    game["price"] = float(game["price"])
    return game


def list_games(conn) -> list:
    rows = conn.execute(
        """
        SELECT game_id, title, description, price, genre, platform, image
        FROM games
        ORDER BY game_id
        """
    ).fetchall()
    return [game_to_dict(row) for row in rows]


def get_game(conn, game_id: int) -> dict:
    row = conn.execute(
        """
        SELECT g.game_id, g.title, g.description, g.price, g.genre,
               g.platform, g.image, i.stock_quantity
        FROM games g
        LEFT JOIN inventory i ON i.game_id = g.game_id
        WHERE g.game_id = ?
        """,
        (game_id,),
    ).fetchone()
    if row is None:
        raise NotFoundError("Game not found.")
    return game_to_dict(row)


def parse_stock(value) -> int:
    if value in (None, ""):
        return 0
    stock = parse_int(value, "stock_quantity")
    if stock < 0:
        raise ValidationError("stock_quantity must not be negative.")
    return stock


def validate_game_fields(fields: dict, image) -> dict:
    """
    Check that every catalog field and an image are present.

    Returns the cleaned fields with price parsed as a Decimal.
    """
    cleaned = {}
    for key in GAME_FIELDS:
        value = fields.get(key)
        cleaned[key] = "" if value is None else str(value).strip()
    if not all(cleaned.values()) or not image:
        raise ValidationError("All fields are required, including an image.")
    cleaned["price"] = parse_amount(cleaned["price"], "price")
    return cleaned


def create_game(conn, fields: dict, image: str, stock_quantity=None) -> int:
    """
    Insert a new game and its inventory row.

    The title must not already exist (exact, case-sensitive match). Returns
    the new game id.
    """
    game = validate_game_fields(fields, image)
    stock = parse_stock(stock_quantity)

    try:
        with transaction(conn):
            existing = conn.execute(
                "SELECT 1 FROM games WHERE title = ?", (game["title"],)
            ).fetchone()
            if existing:
                raise ConflictError("Game with this title already exists.")

            cur = conn.execute(
                """
                INSERT INTO games (title, description, price, genre, platform, image)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    game["title"],
                    game["description"],
                    game["price"],
                    game["genre"],
                    game["platform"],
                    image,
                ),
            )
            game_id = cur.lastrowid
            conn.execute(
                "INSERT INTO inventory (game_id, stock_quantity) VALUES (?, ?)",
                (game_id, stock),
            )
    except sqlite3.Error as e:
        logger.exception("Error adding game %r", game["title"])
        raise PersistenceError("Failed to add game.") from e

    logger.info("Game %s added: %s", game_id, game["title"])
    return game_id


def update_game(conn, game_id: int, title, price, description) -> None:
    if not title or price in (None, "") or not description:
        raise ValidationError("All fields are required.")
    price = parse_amount(price, "price")
    title = str(title).strip()

    try:
        with transaction(conn):
            if conn.execute("SELECT 1 FROM games WHERE game_id = ?", (game_id,)).fetchone() is None:
                raise NotFoundError("Game not found.")

            taken = conn.execute(
                "SELECT 1 FROM games WHERE title = ? AND game_id != ?", (title, game_id)
            ).fetchone()
            if taken:
                raise ConflictError("Game with this title already exists.")

            conn.execute(
                """
                UPDATE games
                SET title = ?, price = ?, description = ?
                WHERE game_id = ?
                """,
                (title, price, description, game_id),
            )
    except sqlite3.Error as e:
        logger.exception("Error updating game %s", game_id)
        raise PersistenceError("Failed to update game.") from e


def delete_game(conn, game_id: int) -> None:
    """
    Delete a game together with every order line that references it.

    Orders that contained the game stay in place; the order report shows
    them with a placeholder title.
    """
    try:
        with transaction(conn):
            conn.execute("DELETE FROM order_items WHERE game_id = ?", (game_id,))
            cur = conn.execute("DELETE FROM games WHERE game_id = ?", (game_id,))
            if cur.rowcount == 0:
                raise NotFoundError("Game not found.")
    except sqlite3.Error as e:
        logger.exception("Error deleting game %s", game_id)
        raise PersistenceError("Failed to delete game.") from e


def list_users(conn) -> list:
    rows = conn.execute(
        """
        SELECT u.username, u.email, r.role_name
        FROM users u
        JOIN user_roles r ON u.role_id = r.role_id
        ORDER BY u.user_id
        """
    ).fetchall()
    return [dict(row) for row in rows]


def delete_user(conn, username: str) -> None:
    try:
        cur = conn.execute("DELETE FROM users WHERE username = ?", (username,))
    except sqlite3.Error as e:
        logger.exception("Error deleting user %r", username)
        raise PersistenceError("Failed to delete user.") from e

    if cur.rowcount == 0:
        raise NotFoundError("User not found.")


def order_report(conn) -> list:
    """
    One row per order line, newest orders first.

    Orders whose lines were removed together with a deleted game are kept,
    with the game title replaced by a placeholder.
    """
    rows = conn.execute(
        """
        SELECT
            o.order_id,
            o.order_date,
            o.total_amount,
            os.status_name AS order_status,
            u.username AS customer_name,
            oi.order_item_id,
            COALESCE(g.title, ?) AS game_title,
            oi.quantity,
            oi.price,
            ps.status_name AS payment_status,
            pm.method_name AS payment_method
        FROM orders o
        LEFT JOIN order_status os ON o.status_id = os.status_id
        LEFT JOIN users u ON o.user_id = u.user_id
        LEFT JOIN order_items oi ON o.order_id = oi.order_id
        LEFT JOIN games g ON oi.game_id = g.game_id
        LEFT JOIN payments p ON p.order_id = o.order_id
        LEFT JOIN payment_status ps ON p.status_id = ps.status_id
        LEFT JOIN payment_methods pm ON p.method_id = pm.method_id
        ORDER BY o.order_date DESC, o.order_id DESC, oi.order_item_id
        """,
        (DELETED_GAME_TITLE,),
    ).fetchall()
    return [dict(row) for row in rows]


def orders_for_user(conn, user_id: int) -> list:
    rows = conn.execute(
        """
        SELECT order_id, order_date, title, quantity, price
        FROM user_order_details
        WHERE user_id = ?
        ORDER BY order_date DESC, order_id DESC
        """,
        (user_id,),
    ).fetchall()
    return [dict(row) for row in rows]
