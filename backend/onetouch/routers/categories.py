"""Category catalogue.

Endpoints:
    GET /api/categories    Fixed list of item/report/contract categories
"""

from fastapi import APIRouter, Depends

from onetouch.auth.deps import get_current_principal
from onetouch.auth.principal import Principal
from onetouch.categories import Category

router = APIRouter()


@router.get("", response_model=list[str])
async def list_categories(
    _principal: Principal = Depends(get_current_principal),
):
    return Category.list()
