# src/smart_select/api/v1/router.py
from fastapi import APIRouter

from smart_select.api.v1 import cache, products, stock

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(stock.router)
api_router.include_router(products.router)
api_router.include_router(cache.router)
