from typing import Optional


class StorefrontError(Exception):
    """Base class for errors raised by the storefront services"""

    status_code = 500

    def __init__(self, message: str = "", cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self):
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


class ValidationError(StorefrontError):
    status_code = 400


class UnknownOrder(ValidationError):
    """Payment references an order_id that is not in the order store"""


class GatewayError(StorefrontError):
    status_code = 500


class OrderCreationFailed(StorefrontError):
    status_code = 500

    def __init__(self, message: str = "", cause: Optional[BaseException] = None, gateway_order_id: Optional[str] = None):
        super().__init__(message, cause)
        self.gateway_order_id = gateway_order_id


class PersistenceError(StorefrontError):
    status_code = 500


class DuplicateKey(PersistenceError):
    status_code = 409


class SignatureMismatch(StorefrontError):
    status_code = 400


class WebhookSignatureInvalid(SignatureMismatch):
    pass


class Unauthorized(StorefrontError):
    status_code = 401
