import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from services.errors import StorefrontError, ValidationError, WebhookSignatureInvalid
from services.order_service import OrderService, get_order_service
from database import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhook")
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(None),
    service: OrderService = Depends(get_order_service),
    db: Session = Depends(get_db),
):
    """게이트웨이 웹훅 수신 (x-razorpay-signature 검증)"""
    # hash the bytes exactly as received, before any parsing
    raw_body = await request.body()
    try:
        ack = await service.ingest_webhook(db, raw_body, x_razorpay_signature)
    except WebhookSignatureInvalid as e:
        return JSONResponse(status_code=400, content={"ok": False, "message": str(e)})
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"ok": False, "message": str(e)})
    except StorefrontError as e:
        logger.exception(f"webhook error: {e}")
        return JSONResponse(status_code=500, content={"ok": False, "message": "server_error"})

    logger.info(f"webhook {ack.event!r} acknowledged (handled={ack.handled})")
    return {"ok": True}
