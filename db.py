import sqlite3

from flask import current_app, g

from storefront_lib.transactions import transaction

DB_NAME = "game_store.db"


def connect(path: str = DB_NAME, timeout: float = 5.0):
    """
    Open a connection to the SQLite database at path.

    The connection runs in autocommit mode; writes that must be atomic go
    through transaction(). Foreign keys are enforced on every connection.
    """
    conn = sqlite3.connect(path, timeout=timeout, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def get_connection():
    """Return a connection to the database configured on the current app."""
    return connect(
        current_app.config["DATABASE"],
        timeout=current_app.config["DB_TIMEOUT"],
    )


def get_db():
    """Return the connection for the current request, opening it on first use."""
    if "db" not in g:
        g.db = get_connection()
    return g.db


def close_db(exc=None):
    conn = g.pop("db", None)
    if conn is not None:
        conn.close()


SCHEMA = """
CREATE TABLE IF NOT EXISTS user_roles (
    role_id INTEGER PRIMARY KEY,
    role_name TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS users (
    user_id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL,
    email TEXT NOT NULL UNIQUE,
    password TEXT NOT NULL,
    role_id INTEGER NOT NULL,
    FOREIGN KEY (role_id) REFERENCES user_roles(role_id)
);

CREATE TABLE IF NOT EXISTS games (
    game_id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    description TEXT,
    price REAL NOT NULL CHECK (price >= 0),
    genre TEXT,
    platform TEXT,
    image TEXT
);

-- stock_quantity has no floor: concurrent checkouts can oversell
CREATE TABLE IF NOT EXISTS inventory (
    game_id INTEGER PRIMARY KEY,
    stock_quantity INTEGER NOT NULL,
    FOREIGN KEY (game_id) REFERENCES games(game_id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS order_status (
    status_id INTEGER PRIMARY KEY,
    status_name TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS orders (
    order_id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER,
    order_date TEXT NOT NULL,
    total_amount REAL NOT NULL,
    status_id INTEGER NOT NULL,
    FOREIGN KEY (user_id) REFERENCES users(user_id) ON DELETE SET NULL,
    FOREIGN KEY (status_id) REFERENCES order_status(status_id)
);

CREATE TABLE IF NOT EXISTS order_items (
    order_item_id INTEGER PRIMARY KEY AUTOINCREMENT,
    order_id INTEGER NOT NULL,
    game_id INTEGER NOT NULL,
    quantity INTEGER NOT NULL CHECK (quantity > 0),
    price REAL NOT NULL,
    FOREIGN KEY (order_id) REFERENCES orders(order_id),
    FOREIGN KEY (game_id) REFERENCES games(game_id)
);

CREATE TABLE IF NOT EXISTS payment_status (
    status_id INTEGER PRIMARY KEY,
    status_name TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS payment_methods (
    method_id INTEGER PRIMARY KEY,
    method_name TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS payments (
    payment_id INTEGER PRIMARY KEY AUTOINCREMENT,
    order_id INTEGER NOT NULL,
    payment_date TEXT NOT NULL,
    status_id INTEGER NOT NULL,
    method_id INTEGER NOT NULL,
    FOREIGN KEY (order_id) REFERENCES orders(order_id),
    FOREIGN KEY (status_id) REFERENCES payment_status(status_id),
    FOREIGN KEY (method_id) REFERENCES payment_methods(method_id)
);

CREATE VIEW IF NOT EXISTS user_order_details AS
SELECT
    u.user_id,
    u.username,
    o.order_id,
    o.order_date,
    g.title,
    oi.quantity,
    oi.price
FROM users u
JOIN orders o ON u.user_id = o.user_id
JOIN order_items oi ON o.order_id = oi.order_id
JOIN games g ON g.game_id = oi.game_id;

CREATE INDEX IF NOT EXISTS idx_orders_user ON orders(user_id);
CREATE INDEX IF NOT EXISTS idx_order_items_order ON order_items(order_id);
CREATE INDEX IF NOT EXISTS idx_order_items_game ON order_items(game_id);
"""

# Lookup rows; the ids are referenced directly by the workflows.
ROLES = [(1, "customer"), (2, "admin")]
ORDER_STATUSES = [(1, "pending"), (2, "completed"), (3, "cancelled")]
PAYMENT_STATUSES = [(1, "paid"), (2, "failed"), (3, "pending")]
PAYMENT_METHODS = [(1, "credit_card"), (2, "bank_transfer")]


def init_db(conn=None):
    """Create tables, the reporting view and lookup rows if they do not exist."""
    owns_conn = conn is None
    if owns_conn:
        conn = get_connection()

    try:
        conn.executescript(SCHEMA)
        with transaction(conn):
            conn.executemany(
                "INSERT OR IGNORE INTO user_roles (role_id, role_name) VALUES (?, ?)",
                ROLES,
            )
            conn.executemany(
                "INSERT OR IGNORE INTO order_status (status_id, status_name) VALUES (?, ?)",
                ORDER_STATUSES,
            )
            conn.executemany(
                "INSERT OR IGNORE INTO payment_status (status_id, status_name) VALUES (?, ?)",
                PAYMENT_STATUSES,
            )
            conn.executemany(
                "INSERT OR IGNORE INTO payment_methods (method_id, method_name) VALUES (?, ?)",
                PAYMENT_METHODS,
            )
    finally:
        if owns_conn:
            conn.close()


if __name__ == "__main__":
    print("Initializing database...")
    conn = connect(DB_NAME)
    init_db(conn)
    conn.close()
    print("Database setup complete.")
