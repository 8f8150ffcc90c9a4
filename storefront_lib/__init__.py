"""
storefront_lib package

Workflows and helpers behind the game storefront API: checkout, catalog
administration, accounts, uploads and order events. The Flask routes in
app.py stay thin and call into these modules with an open connection.

Example:
    from storefront_lib import place_order, InFlightRequests
"""

# Error kinds raised by the workflows
from .errors import (
    StoreError,
    ValidationError,
    ConflictError,
    InvalidReferenceError,
    DuplicateRequestError,
    UploadError,
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    PersistenceError,
    TransactionError,
)

from .transactions import transaction

from .checkout import place_order, PlacedOrder

from .inflight import InFlightRequests

# Expose cart helper functions
from .cart_utils import parse_cart, calculate_cart_total, cart_item_count

# Expose currency formatting helpers
from .currency import format_eur

from .aws_events import publish_order_placed
