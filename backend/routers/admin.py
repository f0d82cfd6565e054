from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from schema.order import OrderRead, OrderListResponse
from schema.payment import PaymentRead, PaymentListResponse, OrderDetailResponse
from services.admin_auth import require_admin_key
from services.order_service import OrderService, get_order_service
from database import get_db

# 관리자 라우터: 모든 엔드포인트에 x-admin-key 필요
router = APIRouter(dependencies=[Depends(require_admin_key)])


@router.get("/orders", response_model=OrderListResponse)
async def list_orders(service: OrderService = Depends(get_order_service), db: Session = Depends(get_db)):
    """전체 주문 목록 조회"""
    orders = await service.list_orders(db)
    return OrderListResponse(orders=[OrderRead.model_validate(o) for o in orders])


@router.get("/orders/{order_id}", response_model=OrderDetailResponse)
async def get_order(order_id: str, service: OrderService = Depends(get_order_service), db: Session = Depends(get_db)):
    """주문 상세 및 결제 내역 조회"""
    order = await service.get_order(db, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    payments = await service.list_order_payments(db, order_id)
    return OrderDetailResponse(
        order=OrderRead.model_validate(order),
        payments=[PaymentRead.model_validate(p) for p in payments],
    )


@router.get("/payments", response_model=PaymentListResponse)
async def list_payments(service: OrderService = Depends(get_order_service), db: Session = Depends(get_db)):
    """전체 결제 목록 조회"""
    payments = await service.list_payments(db)
    return PaymentListResponse(payments=[PaymentRead.model_validate(p) for p in payments])
