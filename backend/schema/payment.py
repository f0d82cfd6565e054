from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional, List

from schema.order import OrderRead


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


class PaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    payment_id: str
    order_id: str
    signature: Optional[str] = None
    method: str
    status: str
    raw_payload: Optional[str] = None
    created_at: datetime


class PaymentListResponse(BaseModel):
    payments: List[PaymentRead]


class OrderDetailResponse(BaseModel):
    order: OrderRead
    payments: List[PaymentRead]
