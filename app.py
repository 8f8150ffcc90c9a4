import functools
import logging
import os

from flask import (
    Blueprint, Flask, current_app, g,
    jsonify, redirect, request, session
)
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from db import close_db, get_db, init_db
from storefront_lib import (
    AuthenticationError, AuthorizationError, InFlightRequests,
    StoreError, place_order, publish_order_placed
)
from storefront_lib import accounts, catalog, uploads
from storefront_lib.cart_utils import MAX_INT

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

#  Configuration, overridable from the environment
DEFAULT_CONFIG = {
    "SECRET_KEY": os.environ.get("SECRET_KEY", "change_this_secret_key"),  # change for production
    "DATABASE": os.environ.get("DATABASE", os.path.join(BASE_DIR, "game_store.db")),
    "DB_TIMEOUT": float(os.environ.get("DB_TIMEOUT", "5.0")),
    "UPLOAD_FOLDER": os.environ.get("UPLOAD_FOLDER", os.path.join(BASE_DIR, "static", "uploads")),
    "MAX_IMAGE_BYTES": int(os.environ.get("MAX_IMAGE_BYTES", uploads.MAX_IMAGE_BYTES)),
    # whole-request cap; per-file limits are checked against MAX_IMAGE_BYTES
    "MAX_CONTENT_LENGTH": 8 * 1024 * 1024,
    # Accept a client-sent "role: admin" header as proof of admin rights.
    # Unverified; only for clients of the old header-based API.
    "TRUST_ROLE_HEADER": os.environ.get("TRUST_ROLE_HEADER", "0") == "1",
    "LOG_LEVEL": os.environ.get("LOG_LEVEL", "INFO"),
}

api = Blueprint("api", __name__)


# HELPERS

def current_user():
    """Account row for the session's user, or None when not logged in."""
    if "current_user" not in g:
        g.current_user = accounts.get_user(get_db(), session.get("user_id"))
    return g.current_user


def is_admin_request() -> bool:
    user = current_user()
    if user is not None and user["role_name"] == "admin":
        return True
    if current_app.config["TRUST_ROLE_HEADER"]:
        return request.headers.get("role") == "admin"
    return False


def admin_required(view):
    @functools.wraps(view)
    def wrapped(*args, **kwargs):
        if not is_admin_request():
            current_app.logger.warning("Access denied: Admins only. (%s %s)", request.method, request.path)
            raise AuthorizationError("Access denied: Admins only.")
        return view(*args, **kwargs)

    return wrapped


def request_data() -> dict:
    """JSON body if one was sent, otherwise the form fields."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form


# CATALOG

@api.route("/api/games", methods=["GET"])
def list_games():
    return jsonify(catalog.list_games(get_db()))


@api.route(f"/api/games/<int(max={MAX_INT}):game_id>", methods=["GET"])
def get_game(game_id):
    return jsonify(catalog.get_game(get_db(), game_id))


@api.route("/api/games", methods=["POST"])
@admin_required
def add_game():
    inflight = current_app.extensions["inflight_requests"]

    with inflight.claim(request.headers.get("X-Request-Id")) as request_id:
        current_app.logger.info("[%s] Add game request", request_id)

        image_file = uploads.single_image(request.files, required=False)
        catalog.validate_game_fields(request.form, image_file)
        stock = catalog.parse_stock(request.form.get("stock_quantity"))

        stored = uploads.save_image(
            image_file,
            current_app.config["UPLOAD_FOLDER"],
            current_app.config["MAX_IMAGE_BYTES"],
        )
        game_id = catalog.create_game(
            get_db(),
            request.form,
            stored["image"],
            stock,
        )

    return jsonify(success=True, message="Game added successfully.", gameId=game_id)


@api.route(f"/api/games/<int(max={MAX_INT}):game_id>", methods=["PUT"])
@admin_required
def update_game(game_id):
    data = request_data()
    catalog.update_game(
        get_db(),
        game_id,
        data.get("title"),
        data.get("price"),
        data.get("description"),
    )
    return jsonify(success=True, message="Game updated successfully.")


@api.route(f"/api/games/<int(max={MAX_INT}):game_id>", methods=["DELETE"])
@admin_required
def delete_game(game_id):
    catalog.delete_game(get_db(), game_id)
    return jsonify(success=True, message="Game deleted successfully.")


# USERS

@api.route("/api/users", methods=["GET"])
@admin_required
def list_users():
    return jsonify(catalog.list_users(get_db()))


@api.route("/api/users/<username>", methods=["DELETE"])
@admin_required
def delete_user(username):
    catalog.delete_user(get_db(), username)
    return jsonify(success=True, message="User deleted successfully.")


# CHECKOUT AND ORDERS

@api.route("/api/checkout", methods=["POST"])
def checkout():
    data = request_data()
    user = current_user()

    # A logged-in customer always orders as themselves.
    user_id = user["user_id"] if user is not None else data.get("userId")

    order = place_order(
        get_db(),
        data.get("items"),
        data.get("totalAmount"),
        data.get("paymentMethodId"),
        user_id,
    )

    publish_order_placed(order, customer=user["email"] if user is not None else "guest")

    return jsonify(success=True, orderId=order.order_id)


@api.route("/api/orders", methods=["GET"])
@admin_required
def list_orders():
    return jsonify(catalog.order_report(get_db()))


@api.route("/api/orders/mine", methods=["GET"])
def my_orders():
    user = current_user()
    if user is None:
        raise AuthenticationError("Please log in first.")
    return jsonify(catalog.orders_for_user(get_db(), user["user_id"]))


# ----- AUTH -----

@api.route("/api/login", methods=["POST"])
def login():
    data = request_data()
    account = accounts.login(
        get_db(),
        data.get("role"),
        data.get("email"),
        data.get("password"),
    )

    session.clear()
    session["user_id"] = account["user_id"]
    session["role"] = account["role"]
    current_app.logger.info("User %s logged in as %s", account["user_id"], account["role"])

    return jsonify(success=True, userType=account["role"], userId=account["user_id"])


@api.route("/api/register", methods=["POST"])
def register():
    data = request_data()
    conn = get_db()

    # Admin accounts are created by admins, except for the very first one.
    if accounts.role_id_for(data.get("role")) == accounts.ROLE_ADMIN:
        if accounts.admin_exists(conn) and not is_admin_request():
            raise AuthorizationError("Only an admin can create admin accounts.")

    accounts.register(
        conn,
        data.get("username"),
        data.get("email"),
        data.get("password"),
        data.get("role"),
    )
    return jsonify(success=True, message="Registration successful.")


@api.route("/api/logout", methods=["POST"])
def logout():
    session.clear()
    return jsonify(success=True, message="Logged out.")


@api.route("/logout", methods=["GET"])
def logout_redirect():
    session.clear()
    return redirect("/")


# UPLOADS

@api.route("/api/upload", methods=["POST"])
def upload():
    image_file = uploads.single_image(request.files)
    meta = uploads.save_image(
        image_file,
        current_app.config["UPLOAD_FOLDER"],
        current_app.config["MAX_IMAGE_BYTES"],
    )
    return jsonify(success=True, message="File uploaded successfully.", file=meta)


@api.route("/test", methods=["GET"])
def test():
    return "Server is working!"


# ERRORS

def register_error_handlers(app):
    @app.errorhandler(StoreError)
    def handle_store_error(e):
        if e.status_code >= 500:
            app.logger.error("%s on %s %s: %r", type(e).__name__, request.method, request.path, e.__cause__)
        return jsonify(success=False, message=e.message), e.status_code

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(e):
        return jsonify(success=False, message="File too large."), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        if e.code == 404:
            return jsonify(success=False, message="Endpoint not found."), 404
        return jsonify(success=False, message=e.description), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        app.logger.exception("Unhandled error")
        return jsonify(success=False, message="Internal server error."), 500


# APP FACTORY

def create_app(test_config=None):
    app = Flask(__name__)
    app.config.from_mapping(DEFAULT_CONFIG)
    if test_config:
        app.config.update(test_config)

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="[%(asctime)s] %(levelname)s in %(name)s: %(message)s",
    )
    app.logger.setLevel(app.config["LOG_LEVEL"])

    # request ids of add-game calls currently being handled by this process
    app.extensions["inflight_requests"] = InFlightRequests()

    os.makedirs(app.config["UPLOAD_FOLDER"], exist_ok=True)

    # DB INIT
    with app.app_context():
        init_db()

    app.teardown_appcontext(close_db)
    register_error_handlers(app)
    app.register_blueprint(api)
    return app


if __name__ == "__main__":
    create_app().run(debug=True)
