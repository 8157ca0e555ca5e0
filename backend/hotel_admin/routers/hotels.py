"""
酒店对外读接口
统一返回 {success, data?, message?} 信封；
非法 id 返回 400，其余失败（包括酒店不存在）一律 500
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from hotel_admin.config import settings
from hotel_admin.database import get_db
from hotel_admin.models.schemas import (
    ApiEnvelope, ROOM_TYPES, BEDDING_OPTIONS, VIEW_OPTIONS, MEAL_BOARDS, CANCELLATION_OPTIONS
)
from hotel_admin.services.hotel_service import HotelService, HotelFilters
from hotel_admin.services.pagination import paginate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/hotels", tags=["酒店"])


def _envelope(status_code: int, **body) -> JSONResponse:
    envelope = jsonable_encoder(ApiEnvelope(success=status_code < 400, **body))
    # 只去掉信封层的空字段，data 内部保留 null
    content = {key: value for key, value in envelope.items() if value is not None}
    return JSONResponse(status_code=status_code, content=content)


def _parse_hotel_id(raw: str) -> Optional[int]:
    try:
        hotel_id = int(raw)
    except (TypeError, ValueError):
        return None
    return hotel_id if hotel_id > 0 else None


@router.get("")
def list_hotels(
    search: Optional[str] = None,
    type_id: Optional[int] = None,
    area_id: Optional[int] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    page: Optional[int] = Query(None, ge=1),
    page_size: Optional[int] = Query(None, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """
    酒店列表（按 rank 升序）
    传入 page 时返回 {items, pagination}，否则直接返回数组
    """
    filters = HotelFilters(search=search, type_id=type_id, area_id=area_id, status=status_filter)
    result = HotelService(db).list_details(filters)
    if not result.succeeded:
        logger.error(f"Error fetching hotels: {result.error}")
        return _envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, message=result.error)

    if page is None:
        return _envelope(status.HTTP_200_OK, data=result.data)

    current = paginate(result.data, page, page_size or settings.LIST_PAGE_SIZE)
    return _envelope(status.HTTP_200_OK, data={
        "items": current.items,
        "pagination": current.meta(),
    })


@router.get("/form-options")
def get_form_options():
    """房间表单下拉选项（需注册在 /{hotel_id} 之前）"""
    return _envelope(status.HTTP_200_OK, data={
        "room_types": ROOM_TYPES,
        "bedding": BEDDING_OPTIONS,
        "views": VIEW_OPTIONS,
        "meal_boards": [{"value": code, "label": label} for code, label in MEAL_BOARDS.items()],
        "cancellation_policies": CANCELLATION_OPTIONS,
    })


@router.get("/{hotel_id}")
def get_hotel(hotel_id: str, db: Session = Depends(get_db)):
    """单个酒店详情，附带 FAQ"""
    parsed_id = _parse_hotel_id(hotel_id)
    if parsed_id is None:
        return _envelope(status.HTTP_400_BAD_REQUEST, message="Invalid hotel id")

    result = HotelService(db).get_detail(parsed_id)
    if not result.succeeded:
        logger.error(f"Error fetching hotel {parsed_id}: {result.error}")
        return _envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, message=result.error)
    return _envelope(status.HTTP_200_OK, data=result.data)
