"""
积分预览接口：房间表单输入价格时实时展示积分
与写库时使用同一个计算函数
"""
from typing import Optional

from fastapi import APIRouter

from hotel_admin.models.schemas import PointsPreview
from hotel_admin.services.pricing import derive_package_pricing

router = APIRouter(prefix="/pricing", tags=["价格"])


@router.get("/points", response_model=PointsPreview)
def preview_points(base_price: Optional[str] = None, first_price: Optional[str] = None):
    """非数字或负数的价格按 0 计算"""
    pricing = derive_package_pricing(base_price, first_price or None)
    return PointsPreview(**pricing.as_dict())
