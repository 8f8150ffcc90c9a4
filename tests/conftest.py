import io

import pytest

from app import create_app
from db import connect
from storefront_lib import catalog

ADMIN = {"username": "admin", "email": "admin@example.com", "password": "s3cret!", "role": "admin"}
CUSTOMER = {"username": "alice", "email": "alice@example.com", "password": "hunter2", "role": "customer"}


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "DATABASE": str(tmp_path / "store.db"),
        "UPLOAD_FOLDER": str(tmp_path / "uploads"),
    })
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def conn(app):
    conn = connect(app.config["DATABASE"])
    yield conn
    conn.close()


@pytest.fixture
def admin_client(client):
    """A test client logged in as the bootstrap admin account."""
    client.post("/api/register", json=ADMIN)
    resp = client.post("/api/login", json={k: ADMIN[k] for k in ("role", "email", "password")})
    assert resp.status_code == 200
    return client


def add_game(conn, title="Nova Quest", price="19.99", stock=10, **extra):
    fields = {
        "title": title,
        "description": f"{title} description",
        "price": price,
        "genre": "RPG",
        "platform": "PC",
    }
    fields.update(extra)
    return catalog.create_game(conn, fields, "cover.png", stock)


def image_upload(name="cover.png", payload=b"\x89PNG fake image bytes"):
    return (io.BytesIO(payload), name)


def count(conn, table):
    return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


def stock_of(conn, game_id):
    row = conn.execute(
        "SELECT stock_quantity FROM inventory WHERE game_id = ?", (game_id,)
    ).fetchone()
    return None if row is None else row[0]
