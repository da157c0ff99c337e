"""
Error taxonomy shared by the order and payment services.

Services raise these; main.py maps them onto HTTP responses. A reconcile that
decides nothing needs to change is NOT an error: it comes back as a
ReconcileResult with changed=False.
"""


class StorefrontError(Exception):
    status_code = 500
    public_message = "Internal server error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class NotFound(StorefrontError):
    """Order, payment or gateway-invoice correlation does not exist."""
    status_code = 404
    public_message = "Not found"


class InvalidInput(StorefrontError):
    """Malformed id, malformed or mismatched order code, missing webhook fields."""
    status_code = 400
    public_message = "Invalid input"


class UpstreamFailure(StorefrontError):
    """The payment gateway could not be reached or answered with an error."""
    status_code = 502
    public_message = "Payment gateway unavailable"
