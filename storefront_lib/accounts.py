"""
Registration and login for storefront accounts.

Passwords are stored as salted werkzeug hashes. Login failures for an
unknown email and for a wrong password produce the same error.
"""
import logging
import sqlite3

from werkzeug.security import check_password_hash, generate_password_hash

from .errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    PersistenceError,
    ValidationError,
)

logger = logging.getLogger(__name__)

ROLE_CUSTOMER = 1
ROLE_ADMIN = 2

ROLE_NAMES = {ROLE_CUSTOMER: "customer", ROLE_ADMIN: "admin"}


def role_id_for(role: str) -> int:
    """Map a role name to its id; anything other than admin is a customer."""
    return ROLE_ADMIN if str(role or "").strip().lower() == "admin" else ROLE_CUSTOMER


def email_exists(conn, email: str) -> bool:
    row = conn.execute("SELECT 1 FROM users WHERE email = ?", (email,)).fetchone()
    return row is not None


def admin_exists(conn) -> bool:
    row = conn.execute(
        "SELECT 1 FROM users WHERE role_id = ? LIMIT 1", (ROLE_ADMIN,)
    ).fetchone()
    return row is not None


def register(conn, username, email, password, role) -> int:
    """Create an account and return its user id."""
    if not username or not email or not password or not role:
        raise ValidationError("All fields are required.")

    email = str(email).strip()
    if email_exists(conn, email):
        raise ConflictError("Email is already registered.")

    password_hash = generate_password_hash(str(password))
    try:
        cur = conn.execute(
            "INSERT INTO users (username, email, password, role_id) VALUES (?, ?, ?, ?)",
            (str(username).strip(), email, password_hash, role_id_for(role)),
        )
    except sqlite3.IntegrityError as e:
        # lost a race with another registration for the same email
        raise ConflictError("Email is already registered.") from e
    except sqlite3.Error as e:
        logger.exception("Registration error for %r", email)
        raise PersistenceError("Server error during registration.") from e

    logger.info("Registered user %s (%s)", cur.lastrowid, ROLE_NAMES[role_id_for(role)])
    return cur.lastrowid


def login(conn, role, email, password) -> dict:
    """
    Check credentials and the requested role.

    Returns a dict with user_id, username and role.
    """
    if not role or not email or not password:
        raise ValidationError("All fields are required.")

    user = conn.execute(
        """
        SELECT u.user_id, u.username, u.password, u.role_id
        FROM users u
        JOIN user_roles r ON u.role_id = r.role_id
        WHERE u.email = ?
        """,
        (str(email).strip(),),
    ).fetchone()

    if user is None or not check_password_hash(user["password"], str(password)):
        raise AuthenticationError("Invalid email or password.")

    role_name = ROLE_NAMES.get(user["role_id"], "customer")
    if role_name != str(role).strip().lower():
        raise AuthorizationError(f"Access denied: not a {role}.")

    return {"user_id": user["user_id"], "username": user["username"], "role": role_name}


def get_user(conn, user_id):
    """Return the account row for user_id, or None."""
    if user_id is None:
        return None
    return conn.execute(
        """
        SELECT u.user_id, u.username, u.email, r.role_name
        FROM users u
        JOIN user_roles r ON u.role_id = r.role_id
        WHERE u.user_id = ?
        """,
        (user_id,),
    ).fetchone()
