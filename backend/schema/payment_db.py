from sqlalchemy import Column, String, Integer, DateTime, Text
from datetime import datetime
from schema.order_db import Base

PAYMENT_PAID = "paid"
PAYMENT_FAILED = "failed"


class PaymentORM(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    payment_id = Column(String(64), unique=True, index=True, nullable=False)
    # references orders.order_id; checked at write time, not by the database
    order_id = Column(String(64), index=True, nullable=False)
    signature = Column(String(128), nullable=True)
    method = Column(String(32), default="unknown", nullable=False)
    status = Column(String(32), nullable=False)
    raw_payload = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
