from pydantic import BaseModel, ConfigDict, EmailStr, Field
from datetime import datetime
from typing import Optional, List


class CreateOrderRequest(BaseModel):
    amount: int = Field(..., ge=1)  # 최소 화폐 단위 (paise)
    currency: Optional[str] = None
    receipt: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[EmailStr] = None


class OrderRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: str
    receipt: str
    amount: int
    currency: str
    status: str
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    created_at: datetime


class OrderListResponse(BaseModel):
    orders: List[OrderRead]
