import json
import logging
import time
from typing import Any, Dict, List, Optional

from fastapi import Request
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel
from sqlalchemy.orm import Session
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from schema.order_db import OrderORM, ORDER_PAID
from schema.payment_db import PaymentORM, PAYMENT_PAID, PAYMENT_FAILED
from services import signature
from services.errors import (
    GatewayError,
    OrderCreationFailed,
    PersistenceError,
    UnknownOrder,
    ValidationError,
    WebhookSignatureInvalid,
)
from services.gateway_service import GatewayService
from services.order_store import OrderStore, StatusUpdate
from services.payment_store import PaymentStore
from settings import Settings, ORPHAN_POLICY_REJECT

logger = logging.getLogger(__name__)

PAYMENT_CAPTURED_EVENT = "payment.captured"


class CreatedOrder(BaseModel):
    model_config = {"arbitrary_types_allowed": True}

    order: OrderORM
    gateway_order: Dict[str, Any]


class VerificationResult(BaseModel):
    verified: bool
    order_id: str
    payment_id: str
    order_update: Optional[StatusUpdate] = None


class WebhookAck(BaseModel):
    ok: bool = True
    event: Optional[str] = None
    handled: bool = False


class OrderService:
    """주문 생성, 결제 검증, 웹훅 처리를 담당하는 서비스 클래스"""

    def __init__(self, settings: Settings, gateway: GatewayService):
        self.settings = settings
        self.gateway = gateway

    @property
    def rejects_orphans(self) -> bool:
        return self.settings.orphan_payment_policy == ORPHAN_POLICY_REJECT

    async def create_order(
        self,
        db: Session,
        amount: int,
        currency: Optional[str] = None,
        receipt: Optional[str] = None,
        customer_name: Optional[str] = None,
        customer_email: Optional[str] = None,
    ) -> CreatedOrder:
        """게이트웨이 주문 생성 후 로컬 주문 저장"""
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 1:
            raise ValidationError(f"amount must be a positive integer, got {amount!r}")

        currency = currency or self.settings.default_currency
        receipt = receipt or f"rcpt_{int(time.time() * 1000)}"
        notes = {
            "customer_email": customer_email or "",
            "customer_name": customer_name or "",
        }

        try:
            gateway_order = await run_in_threadpool(self.gateway.create_order, amount, currency, receipt, notes)
        except GatewayError as e:
            raise OrderCreationFailed("Could not create order", e)

        gateway_order_id = gateway_order["id"]
        store = OrderStore(db)
        try:
            # insert is idempotent on order_id, so retrying cannot duplicate the row
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(3),
                wait=wait_fixed(0.2),
                retry=retry_if_exception_type(PersistenceError),
                reraise=True,
            ):
                with attempt:
                    orm = await run_in_threadpool(
                        store.insert,
                        order_id=gateway_order_id,
                        receipt=gateway_order.get("receipt") or receipt,
                        amount=int(gateway_order.get("amount", amount)),
                        currency=gateway_order.get("currency") or currency,
                        customer_name=customer_name,
                        customer_email=customer_email,
                    )
        except PersistenceError as e:
            logger.error(
                f"reconciliation_pending: gateway order {gateway_order_id} (receipt={receipt}, amount={amount}) "
                f"was created but could not be stored locally: {e}"
            )
            raise OrderCreationFailed("Could not create order", e, gateway_order_id=gateway_order_id)

        logger.info(f"order {orm.order_id} stored with status {orm.status!r}")
        return CreatedOrder(order=orm, gateway_order=gateway_order)

    def _settle_payment(
        self,
        db: Session,
        order_id: str,
        payment_id: str,
        status: str,
        payment_signature: Optional[str],
        method: str,
        raw_payload: Optional[str],
    ) -> StatusUpdate:
        """결제 기록 저장 후, 성공 결제이면 주문을 paid 로 변경 (블로킹 DB 작업)"""
        orders = OrderStore(db)
        order_known = orders.exists(order_id)
        if not order_known:
            if self.rejects_orphans:
                logger.warning(f"payment {payment_id} references unknown order {order_id}; rejected")
                raise UnknownOrder(f"unknown order {order_id}")
            logger.warning(f"payment {payment_id} references unknown order {order_id}; recording for audit")

        PaymentStore(db).insert(
            payment_id=payment_id,
            order_id=order_id,
            status=status,
            signature=payment_signature,
            method=method,
            raw_payload=raw_payload,
        )

        if not order_known:
            return StatusUpdate.MISSING
        if status != PAYMENT_PAID:
            return StatusUpdate.UNCHANGED
        return orders.update_status(order_id, ORDER_PAID)

    async def verify_payment(
        self,
        db: Session,
        order_id: str,
        payment_id: str,
        payment_signature: str,
        raw_payload: Optional[str] = None,
    ) -> VerificationResult:
        """체크아웃 완료 후 클라이언트가 보낸 결제 서명 검증"""
        if not order_id or not payment_id:
            raise ValidationError("razorpay_order_id and razorpay_payment_id are required")
        if not self.settings.razorpay_key_secret:
            raise GatewayError("gateway key secret not configured")

        verified = signature.verify_payment_signature(
            order_id, payment_id, payment_signature, self.settings.razorpay_key_secret
        )

        order_update = await run_in_threadpool(
            self._settle_payment,
            db,
            order_id,
            payment_id,
            PAYMENT_PAID if verified else PAYMENT_FAILED,
            payment_signature,
            "unknown",
            raw_payload,
        )

        if not verified:
            logger.warning(f"signature mismatch for order {order_id} payment {payment_id}")
            return VerificationResult(verified=False, order_id=order_id, payment_id=payment_id)

        return VerificationResult(verified=True, order_id=order_id, payment_id=payment_id, order_update=order_update)

    async def ingest_webhook(self, db: Session, raw_body: bytes, signature_header: Optional[str]) -> WebhookAck:
        """게이트웨이 웹훅 처리. 서명은 수신한 원본 바이트 기준으로 검증"""
        secret = self.settings.webhook_signing_secret
        if not secret:
            logger.error("webhook received but no signing secret is configured")
            raise WebhookSignatureInvalid("Invalid signature")

        if not signature.verify_webhook_signature(raw_body, signature_header, secret):
            logger.warning("webhook signature verification failed")
            raise WebhookSignatureInvalid("Invalid signature")

        try:
            payload = json.loads(raw_body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise ValidationError("webhook body is not valid JSON", e)
        if not isinstance(payload, dict):
            raise ValidationError("webhook body must be a JSON object")

        event = payload.get("event")
        if event != PAYMENT_CAPTURED_EVENT:
            logger.info(f"webhook event {event!r} acknowledged without action")
            return WebhookAck(event=event)

        entity = self._payment_entity(payload)
        if entity is None:
            logger.warning(f"{PAYMENT_CAPTURED_EVENT} webhook without a usable payment entity; ignored")
            return WebhookAck(event=event)

        method = entity.get("method")
        try:
            await run_in_threadpool(
                self._settle_payment,
                db,
                entity["order_id"],
                entity["id"],
                PAYMENT_PAID,
                signature_header,
                method if isinstance(method, str) and method else "unknown",
                json.dumps(entity),
            )
        except UnknownOrder:
            # acknowledged anyway, otherwise the gateway keeps redelivering
            return WebhookAck(event=event)

        return WebhookAck(event=event, handled=True)

    @staticmethod
    def _payment_entity(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        body = payload.get("payload")
        payment = body.get("payment") if isinstance(body, dict) else None
        entity = payment.get("entity") if isinstance(payment, dict) else None
        if not isinstance(entity, dict):
            return None
        for key in ("id", "order_id"):
            if not isinstance(entity.get(key), str) or not entity[key]:
                return None
        return entity

    async def list_orders(self, db: Session) -> List[OrderORM]:
        """전체 주문 목록 (최신순)"""
        return await run_in_threadpool(OrderStore(db).list)

    async def list_payments(self, db: Session) -> List[PaymentORM]:
        """전체 결제 목록 (최신순)"""
        return await run_in_threadpool(PaymentStore(db).list)

    async def get_order(self, db: Session, order_id: str) -> Optional[OrderORM]:
        return await run_in_threadpool(OrderStore(db).get, order_id)

    async def list_order_payments(self, db: Session, order_id: str) -> List[PaymentORM]:
        return await run_in_threadpool(PaymentStore(db).list_for_order, order_id)


def get_order_service(request: Request) -> OrderService:
    """앱 시작 시 생성된 서비스 인스턴스를 반환하는 의존성 함수"""
    return request.app.state.order_service
