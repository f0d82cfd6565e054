import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from schema.order import CreateOrderRequest
from schema.payment import VerifyPaymentRequest
from services.errors import OrderCreationFailed, StorefrontError, ValidationError
from services.order_service import OrderService, get_order_service
from database import get_db

logger = logging.getLogger(__name__)

# 라우터 생성
router = APIRouter()


@router.post("/create-order")
async def create_order(
    request: CreateOrderRequest,
    service: OrderService = Depends(get_order_service),
    db: Session = Depends(get_db),
):
    """주문 생성 (서버 측)"""
    try:
        result = await service.create_order(
            db,
            amount=request.amount,
            currency=request.currency,
            receipt=request.receipt,
            customer_name=request.customer_name,
            customer_email=request.customer_email,
        )
        return {"order": result.gateway_order}
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"errors": [{"msg": str(e)}]})
    except OrderCreationFailed as e:
        logger.exception(f"create-order error: {e}")
        details = str(e.cause) if e.cause is not None else str(e)
        return JSONResponse(status_code=500, content={"error": "Could not create order", "details": details})


@router.post("/verify-payment")
async def verify_payment(
    request: VerifyPaymentRequest,
    http_request: Request,
    service: OrderService = Depends(get_order_service),
    db: Session = Depends(get_db),
):
    """체크아웃 완료 후 결제 검증"""
    try:
        result = await service.verify_payment(
            db,
            order_id=request.razorpay_order_id,
            payment_id=request.razorpay_payment_id,
            payment_signature=request.razorpay_signature,
            # audit copy of the body exactly as the client sent it
            raw_payload=(await http_request.body()).decode("utf-8", errors="replace"),
        )
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"verified": False, "message": str(e)})
    except StorefrontError as e:
        logger.exception(f"verify-payment error: {e}")
        return JSONResponse(status_code=500, content={"verified": False, "message": str(e)})

    if not result.verified:
        return JSONResponse(status_code=400, content={"verified": False, "message": "Signature mismatch"})

    return {
        "verified": True,
        "payment": {
            "razorpay_order_id": result.order_id,
            "razorpay_payment_id": result.payment_id,
        },
    }
