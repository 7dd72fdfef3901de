"""API routes."""

from fastapi import APIRouter

from tableside.api.routes import billing, kitchen, menu, orders, payments, waiter

api_router = APIRouter()

api_router.include_router(waiter.router, prefix="/waiter", tags=["waiter"])
api_router.include_router(kitchen.router, prefix="/kitchen", tags=["kitchen"])
api_router.include_router(orders.router, prefix="/orders", tags=["orders"])
api_router.include_router(billing.router, prefix="/billing", tags=["billing"])
api_router.include_router(menu.router, prefix="/menu", tags=["menu"])
api_router.include_router(payments.router, prefix="/payments", tags=["payments"])
