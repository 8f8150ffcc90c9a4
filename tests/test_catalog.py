import os

import pytest

from app import create_app
from conftest import CUSTOMER, add_game, count, image_upload
from storefront_lib import ConflictError, ValidationError, place_order
from storefront_lib import catalog


def game_form(**overrides):
    form = {
        "title": "Nova Quest",
        "description": "Space opera RPG",
        "price": "19.99",
        "genre": "RPG",
        "platform": "PC",
        "stock_quantity": "7",
        "image": image_upload(),
    }
    form.update(overrides)
    return form


def post_game(client, headers=None, **overrides):
    return client.post(
        "/api/games",
        data=game_form(**overrides),
        content_type="multipart/form-data",
        headers=headers or {},
    )


def test_list_games_empty(client):
    resp = client.get("/api/games")
    assert resp.status_code == 200
    assert resp.get_json() == []


def test_create_game_round_trip(admin_client, app, conn):
    resp = post_game(admin_client)
    assert resp.status_code == 200
    assert resp.get_json()["success"] is True

    games = admin_client.get("/api/games").get_json()
    assert len(games) == 1
    game = games[0]
    assert game["title"] == "Nova Quest"
    assert game["description"] == "Space opera RPG"
    assert game["genre"] == "RPG"
    assert game["platform"] == "PC"
    assert game["price"] == pytest.approx(19.99)
    assert os.path.exists(os.path.join(app.config["UPLOAD_FOLDER"], game["image"]))

    detail = admin_client.get(f"/api/games/{game['game_id']}").get_json()
    assert detail["stock_quantity"] == 7


def test_get_missing_game(client):
    resp = client.get("/api/games/404")
    assert resp.status_code == 404
    assert resp.get_json()["message"] == "Game not found."


@pytest.mark.parametrize("field", ["title", "description", "price", "genre", "platform"])
def test_create_game_requires_every_field(admin_client, conn, field):
    resp = post_game(admin_client, **{field: ""})
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "All fields are required, including an image."
    assert count(conn, "games") == 0


def test_create_game_requires_image(admin_client, conn):
    form = game_form()
    del form["image"]
    resp = admin_client.post("/api/games", data=form, content_type="multipart/form-data")
    assert resp.status_code == 400
    assert count(conn, "games") == 0


def test_create_game_rejects_duplicate_title(admin_client, conn):
    assert post_game(admin_client).status_code == 200

    resp = post_game(admin_client, image=image_upload())
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Game with this title already exists."
    assert count(conn, "games") == 1


def test_duplicate_title_check_is_case_sensitive(conn):
    add_game(conn, "Nova Quest")
    add_game(conn, "nova quest")
    with pytest.raises(ConflictError):
        add_game(conn, "Nova Quest")
    assert count(conn, "games") == 2
    assert count(conn, "inventory") == 2


def test_create_game_rejects_negative_price(conn):
    with pytest.raises(ValidationError):
        add_game(conn, price="-1")


def test_create_game_requires_admin(client, conn):
    assert post_game(client).status_code == 403

    client.post("/api/register", json=CUSTOMER)
    client.post("/api/login", json={"role": "customer", "email": CUSTOMER["email"], "password": CUSTOMER["password"]})
    assert post_game(client).status_code == 403
    assert count(conn, "games") == 0


def test_create_game_rejects_in_flight_request_id(admin_client, app, conn):
    inflight = app.extensions["inflight_requests"]
    inflight.add("req-1")

    resp = post_game(admin_client, headers={"X-Request-Id": "req-1"})
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Duplicate request detected."
    assert count(conn, "games") == 0

    inflight.discard("req-1")
    assert post_game(admin_client, headers={"X-Request-Id": "req-1"}).status_code == 200


def test_request_id_released_after_success_and_failure(admin_client, app):
    inflight = app.extensions["inflight_requests"]

    assert post_game(admin_client, headers={"X-Request-Id": "ok"}).status_code == 200
    assert "ok" not in inflight

    assert post_game(admin_client, headers={"X-Request-Id": "bad"}, title="").status_code == 400
    assert "bad" not in inflight

    assert len(inflight) == 0


def test_update_game(admin_client, conn):
    game_id = add_game(conn)

    resp = admin_client.put(f"/api/games/{game_id}", json={
        "title": "Nova Quest II", "price": "24.50", "description": "Sequel",
    })
    assert resp.status_code == 200

    game = catalog.get_game(conn, game_id)
    assert (game["title"], game["price"], game["description"]) == ("Nova Quest II", 24.5, "Sequel")


def test_update_game_errors(admin_client, conn):
    game_id = add_game(conn)

    resp = admin_client.put("/api/games/999", json={"title": "x", "price": 1, "description": "y"})
    assert resp.status_code == 404

    resp = admin_client.put(f"/api/games/{game_id}", json={"title": "x", "description": "y"})
    assert resp.status_code == 400


def test_delete_game_cascades_order_items(admin_client, conn):
    kept = add_game(conn, "Star Drift", "5.00")
    doomed = add_game(conn, "Nova Quest", "19.99")
    order = place_order(
        conn,
        [
            {"game_id": doomed, "quantity": 1, "price": 19.99},
            {"game_id": kept, "quantity": 1, "price": 5},
        ],
        24.99,
        1,
    )

    resp = admin_client.delete(f"/api/games/{doomed}")
    assert resp.status_code == 200

    refs = conn.execute("SELECT COUNT(*) FROM order_items WHERE game_id = ?", (doomed,)).fetchone()[0]
    assert refs == 0
    assert conn.execute("SELECT 1 FROM inventory WHERE game_id = ?", (doomed,)).fetchone() is None

    report = admin_client.get("/api/orders").get_json()
    assert [r["order_id"] for r in report] == [order.order_id]
    assert report[0]["game_title"] == "Star Drift"
    assert report[0]["payment_status"] == "paid"
    assert report[0]["payment_method"] == "credit_card"


def test_order_report_shows_placeholder_when_all_lines_deleted(admin_client, conn):
    game_id = add_game(conn)
    order = place_order(conn, [{"game_id": game_id, "quantity": 1, "price": 19.99}], 19.99, 1)

    admin_client.delete(f"/api/games/{game_id}")

    report = admin_client.get("/api/orders").get_json()
    assert len(report) == 1
    assert report[0]["order_id"] == order.order_id
    assert report[0]["game_title"] == catalog.DELETED_GAME_TITLE
    assert report[0]["order_status"] == "pending"


def test_order_report_newest_first(admin_client, conn):
    game_id = add_game(conn)
    first = place_order(conn, [{"game_id": game_id, "quantity": 1, "price": 19.99}], 19.99, 1)
    second = place_order(conn, [{"game_id": game_id, "quantity": 1, "price": 19.99}], 19.99, 1)

    report = admin_client.get("/api/orders").get_json()
    assert [r["order_id"] for r in report] == [second.order_id, first.order_id]


def test_delete_missing_game(admin_client):
    assert admin_client.delete("/api/games/999").status_code == 404


def test_users_admin_endpoints(admin_client, client, conn):
    client.post("/api/register", json=CUSTOMER)

    users = admin_client.get("/api/users").get_json()
    assert users == [
        {"username": "admin", "email": "admin@example.com", "role_name": "admin"},
        {"username": "alice", "email": "alice@example.com", "role_name": "customer"},
    ]

    assert admin_client.delete("/api/users/alice").status_code == 200
    assert admin_client.delete("/api/users/alice").status_code == 404
    assert count(conn, "users") == 1


def test_admin_endpoints_reject_anonymous(client):
    assert client.get("/api/users").status_code == 403
    assert client.get("/api/orders").status_code == 403
    assert client.delete("/api/games/1").status_code == 403


def test_role_header_ignored_by_default(client):
    resp = client.get("/api/users", headers={"role": "admin"})
    assert resp.status_code == 403


def test_role_header_accepted_in_compat_mode(tmp_path):
    app = create_app({
        "TESTING": True,
        "DATABASE": str(tmp_path / "compat.db"),
        "UPLOAD_FOLDER": str(tmp_path / "uploads"),
        "TRUST_ROLE_HEADER": True,
    })
    client = app.test_client()

    assert client.get("/api/users", headers={"role": "admin"}).status_code == 200
    assert client.get("/api/users", headers={"role": "customer"}).status_code == 403


def test_unknown_endpoint(client):
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.get_json() == {"success": False, "message": "Endpoint not found."}


def test_server_check(client):
    assert client.get("/test").data == b"Server is working!"


def test_update_game_rejects_taken_title(admin_client, conn):
    add_game(conn, "Nova Quest")
    other = add_game(conn, "Star Drift")

    resp = admin_client.put(f"/api/games/{other}", json={
        "title": "Nova Quest", "price": "5.00", "description": "Renamed",
    })
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Game with this title already exists."

    titles = sorted(r[0] for r in conn.execute("SELECT title FROM games").fetchall())
    assert titles == ["Nova Quest", "Star Drift"]
    assert catalog.get_game(conn, other)["description"] == "Star Drift description"


def test_update_game_may_keep_its_own_title(conn):
    game_id = add_game(conn, "Nova Quest")
    catalog.update_game(conn, game_id, "Nova Quest", "9.99", "Cheaper")
    assert catalog.get_game(conn, game_id)["price"] == pytest.approx(9.99)


def test_create_game_rejects_out_of_range_stock(admin_client, app, conn):
    resp = post_game(admin_client, stock_quantity=str(10 ** 20))
    assert resp.status_code == 400
    assert count(conn, "games") == 0
    assert os.listdir(app.config["UPLOAD_FOLDER"]) == []


def test_create_game_rejects_oversized_price(admin_client, conn):
    resp = post_game(admin_client, price="1e30")
    assert resp.status_code == 400
    assert count(conn, "games") == 0


def test_out_of_range_game_id_is_not_found(admin_client):
    huge = 10 ** 20
    assert admin_client.get(f"/api/games/{huge}").status_code == 404
    assert admin_client.delete(f"/api/games/{huge}").status_code == 404
