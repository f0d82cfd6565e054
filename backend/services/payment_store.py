import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from schema.payment_db import PaymentORM
from services.errors import DuplicateKey, PersistenceError

logger = logging.getLogger(__name__)


class PaymentStore:
    """payments 테이블 접근 (payment_id 기준). 결제 행은 저장 후 변경하지 않는다"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, payment_id: str) -> Optional[PaymentORM]:
        try:
            return self.db.query(PaymentORM).filter(PaymentORM.payment_id == payment_id).first()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"could not read payment {payment_id}", e)

    def insert(
        self,
        payment_id: str,
        order_id: str,
        status: str,
        signature: Optional[str] = None,
        method: Optional[str] = None,
        raw_payload: Optional[str] = None,
        strict: bool = False,
    ) -> PaymentORM:
        """Insert if absent; a repeated payment_id returns the stored row untouched"""
        existing = self.get(payment_id)
        if existing is not None:
            if strict:
                raise DuplicateKey(f"payment {payment_id} already exists")
            logger.info(f"payment {payment_id} already recorded, skipping insert")
            return existing

        orm = PaymentORM(
            payment_id=payment_id,
            order_id=order_id,
            signature=signature,
            method=method or "unknown",
            status=status,
            raw_payload=raw_payload,
        )
        try:
            self.db.add(orm)
            self.db.commit()
            self.db.refresh(orm)
            return orm
        except IntegrityError as e:
            self.db.rollback()
            existing = self.get(payment_id)
            if existing is None:
                raise PersistenceError(f"could not insert payment {payment_id}", e)
            if strict:
                raise DuplicateKey(f"payment {payment_id} already exists", e)
            return existing
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"could not insert payment {payment_id}", e)

    def list(self) -> List[PaymentORM]:
        try:
            return self.db.query(PaymentORM).order_by(PaymentORM.created_at.desc(), PaymentORM.id.desc()).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError("could not list payments", e)

    def list_for_order(self, order_id: str) -> List[PaymentORM]:
        try:
            return (
                self.db.query(PaymentORM)
                .filter(PaymentORM.order_id == order_id)
                .order_by(PaymentORM.created_at.desc(), PaymentORM.id.desc())
                .all()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"could not list payments for order {order_id}", e)
