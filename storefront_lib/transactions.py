import sqlite3
from contextlib import contextmanager
from decimal import Decimal

# Money is handled as Decimal in the workflows and stored in REAL columns.
sqlite3.register_adapter(Decimal, str)


@contextmanager
def transaction(conn):
    """
    Run the block inside a write transaction on conn.

    conn must be in autocommit mode (isolation_level=None). BEGIN IMMEDIATE
    takes the write lock up front so reads made inside the block (e.g. a
    uniqueness check) see the state the block commits against. Any exception,
    including a failed COMMIT, rolls everything back and is re-raised.
    """
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
        conn.execute("COMMIT")
    except BaseException:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
