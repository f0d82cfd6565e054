import logging
from enum import Enum
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from schema.order_db import OrderORM, ORDER_CREATED, ORDER_PAID, ORDER_FAILED, ORDER_CANCELLED
from services.errors import DuplicateKey, PersistenceError

logger = logging.getLogger(__name__)

# paid and cancelled are terminal; a late capture can still settle a failed order
ALLOWED_TRANSITIONS = {
    ORDER_CREATED: {ORDER_PAID, ORDER_FAILED, ORDER_CANCELLED},
    ORDER_FAILED: {ORDER_PAID},
    ORDER_PAID: set(),
    ORDER_CANCELLED: set(),
}


class StatusUpdate(str, Enum):
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    MISSING = "missing"
    REJECTED = "rejected"


class OrderStore:
    """orders 테이블 접근 (order_id 기준)"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, order_id: str) -> Optional[OrderORM]:
        try:
            return self.db.query(OrderORM).filter(OrderORM.order_id == order_id).first()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"could not read order {order_id}", e)

    def exists(self, order_id: str) -> bool:
        return self.get(order_id) is not None

    def insert(
        self,
        order_id: str,
        receipt: str,
        amount: int,
        currency: str,
        customer_name: Optional[str] = None,
        customer_email: Optional[str] = None,
        status: str = ORDER_CREATED,
        strict: bool = False,
    ) -> OrderORM:
        """주문 저장. strict=False 이면 이미 있는 order_id 는 기존 행을 그대로 반환"""
        existing = self.get(order_id)
        if existing is not None:
            if strict:
                raise DuplicateKey(f"order {order_id} already exists")
            return existing

        orm = OrderORM(
            order_id=order_id,
            receipt=receipt,
            amount=amount,
            currency=currency,
            status=status,
            customer_name=customer_name,
            customer_email=customer_email,
        )
        try:
            self.db.add(orm)
            self.db.commit()
            self.db.refresh(orm)
            return orm
        except IntegrityError as e:
            # lost a race against a concurrent insert of the same order_id
            self.db.rollback()
            existing = self.get(order_id)
            if existing is None:
                raise PersistenceError(f"could not insert order {order_id}", e)
            if strict:
                raise DuplicateKey(f"order {order_id} already exists", e)
            return existing
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"could not insert order {order_id}", e)

    def update_status(self, order_id: str, new_status: str) -> StatusUpdate:
        """주문 상태 변경. 상태는 앞으로만 이동한다"""
        try:
            order = self.get(order_id)
            if order is None:
                logger.warning(f"status update to {new_status!r} for unknown order {order_id}")
                return StatusUpdate.MISSING

            previous = order.status
            if previous == new_status:
                return StatusUpdate.UNCHANGED

            if new_status not in ALLOWED_TRANSITIONS.get(previous, set()):
                logger.warning(f"refusing order {order_id} status change {previous!r} -> {new_status!r}")
                return StatusUpdate.REJECTED

            # conditional update so a concurrent writer cannot be overwritten
            updated = (
                self.db.query(OrderORM)
                .filter(OrderORM.order_id == order_id, OrderORM.status == previous)
                .update({OrderORM.status: new_status}, synchronize_session="fetch")
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"could not update order {order_id}", e)

        if updated:
            logger.info(f"order {order_id} status {previous!r} -> {new_status!r}")
            return StatusUpdate.UPDATED

        self.db.expire_all()
        current = self.get(order_id)
        if current is not None and current.status == new_status:
            return StatusUpdate.UNCHANGED
        logger.warning(f"order {order_id} changed concurrently, status update to {new_status!r} skipped")
        return StatusUpdate.REJECTED

    def list(self) -> List[OrderORM]:
        try:
            return self.db.query(OrderORM).order_by(OrderORM.created_at.desc(), OrderORM.id.desc()).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError("could not list orders", e)
