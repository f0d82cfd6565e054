from schema.order_db import Base, OrderORM  # re-export for convenience
from schema.payment_db import PaymentORM  # ensure model is imported
from schema.order import CreateOrderRequest, OrderRead, OrderListResponse
from schema.payment import VerifyPaymentRequest, PaymentRead, PaymentListResponse, OrderDetailResponse

__all__ = [
    "Base",
    "OrderORM",
    "PaymentORM",
    "CreateOrderRequest",
    "OrderRead",
    "OrderListResponse",
    "VerifyPaymentRequest",
    "PaymentRead",
    "PaymentListResponse",
    "OrderDetailResponse",
]
