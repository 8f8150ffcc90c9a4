"""
Error kinds raised by the storefront workflows.

Each error carries the HTTP status it maps to and a message that is safe to
show to the caller. Store failures keep the original exception as __cause__
so it can be logged server-side.
"""


class StoreError(Exception):
    status_code = 500
    default_message = "Internal server error."

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(StoreError):
    status_code = 400
    default_message = "Missing required fields."


class ConflictError(StoreError):
    status_code = 400
    default_message = "Resource already exists."


class InvalidReferenceError(StoreError):
    status_code = 400
    default_message = "One or more game IDs are invalid."


class DuplicateRequestError(StoreError):
    status_code = 400
    default_message = "Duplicate request detected."


class UploadError(StoreError):
    status_code = 400
    default_message = "File upload error"


class AuthenticationError(StoreError):
    status_code = 401
    default_message = "Invalid email or password."


class AuthorizationError(StoreError):
    status_code = 403
    default_message = "Access denied: Admins only."


class NotFoundError(StoreError):
    status_code = 404
    default_message = "Not found."


class PersistenceError(StoreError):
    status_code = 500
    default_message = "Failed to save changes."


class TransactionError(PersistenceError):
    default_message = "Checkout failed. No order was created."
