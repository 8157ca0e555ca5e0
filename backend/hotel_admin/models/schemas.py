"""
Pydantic 模式定义
表单提交前的校验规则、仓储入参与 API 响应结构
"""
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional
from urllib.parse import urlparse
from pydantic import BaseModel, Field, field_validator, ConfigDict
from hotel_admin.models.entities import RecordStatus


# ============== 表单选项 ==============

ROOM_TYPES = ["Standard", "Deluxe"]
BEDDING_OPTIONS = ["King Bed", "Queen Bed", "Twin Beds"]
VIEW_OPTIONS = ["Balcony View", "Canal View"]
MEAL_BOARDS = {
    "RO": "Room Only",
    "BB": "Bed & Breakfast",
    "HB": "Half Board",
    "FB": "Full Board",
}
CANCELLATION_OPTIONS = ["Refundable", "Non-refundable"]


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


def _int_or_zero(v) -> int:
    """表单整数字段：无法解析时取 0"""
    try:
        return int(float(str(v).strip()))
    except (TypeError, ValueError):
        return 0


def is_valid_image_url(url: str) -> bool:
    parsed = urlparse(url or "")
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


# ============== 主数据 Schemas ==============

class MasterDataBase(BaseModel):
    name_en: str = Field(..., min_length=1, max_length=200)
    name_ar: str = Field(..., min_length=1, max_length=200)
    status: RecordStatus = RecordStatus.ACTIVE


class MasterDataCreate(MasterDataBase):
    pass


class MasterDataUpdate(BaseModel):
    name_en: Optional[str] = Field(None, min_length=1, max_length=200)
    name_ar: Optional[str] = Field(None, min_length=1, max_length=200)
    status: Optional[RecordStatus] = None


class MasterDataResponse(MasterDataBase):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class MasterDataRef(BaseModel):
    """酒店列表中附带的主数据显示名"""
    id: int
    name_en: str
    name_ar: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


# ============== 酒店 Schemas ==============

class HotelFields(BaseModel):
    """
    酒店标量字段（编辑表单规则）
    外键需由调用方解析为有效主数据 id，仓储本身不校验引用完整性
    """
    name_en: str = Field(..., min_length=1, max_length=200)
    name_ar: str = Field(..., min_length=1, max_length=200)
    type_id: int
    chain_id: Optional[int] = None
    area_id: int
    address_en: Optional[str] = None
    address_ar: Optional[str] = None
    description_en: Optional[str] = None
    description_ar: Optional[str] = None
    star_rating: Optional[int] = Field(None, ge=1, le=5)
    rank: int = Field(default=0, ge=0)
    status: RecordStatus = RecordStatus.ACTIVE
    thumbnail_url: Optional[str] = None

    @field_validator("name_en", "name_ar", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("chain_id", "star_rating", mode="before")
    @classmethod
    def empty_optional(cls, v):
        return _blank_to_none(v)

    @field_validator("rank", mode="before")
    @classmethod
    def parse_rank(cls, v):
        if v is None:
            return 0
        return _int_or_zero(v)


class HotelCreateForm(HotelFields):
    """新增酒店表单：基础信息全部必填"""
    address_en: str = Field(..., min_length=1)
    address_ar: str = Field(..., min_length=1)
    star_rating: int = Field(..., ge=1, le=5)
    thumbnail_url: str = Field(..., min_length=1)

    @field_validator("address_en", "address_ar", "thumbnail_url", mode="before")
    @classmethod
    def strip_required(cls, v):
        return v.strip() if isinstance(v, str) else v


# ============== 关联数据 Schemas ==============

class PackageInput(BaseModel):
    """
    套餐入参；base_price / first_price 接受任意表单原始值，
    积分字段即使传入也会在入库时被重新计算覆盖
    """
    meal_board: str = ""
    cancellation_policy: str = ""
    base_price: Any = None
    first_price: Any = None
    almosafer_points: Any = None
    shukran_points: Any = None


class RoomInput(BaseModel):
    room_type: str = ""
    bedding: str = ""
    view: str = ""
    images: List[str] = Field(default_factory=list)
    packages: List[PackageInput] = Field(default_factory=list)

    @field_validator("room_type", "bedding", "view", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v

    @field_validator("images", "packages", mode="before")
    @classmethod
    def ensure_list(cls, v):
        return v if isinstance(v, list) else []


class RoomForm(RoomInput):
    """房间表单：类型/床型/景观必填且至少一个套餐"""
    room_type: str = Field(..., min_length=1)
    bedding: str = Field(..., min_length=1)
    view: str = Field(..., min_length=1)
    packages: List[PackageInput] = Field(..., min_length=1)


class ReviewAggregateInput(BaseModel):
    """点评汇总入参，source 为空的条目在同步时被丢弃"""
    id: Optional[int] = None
    source: Optional[str] = None
    average_rating: Optional[Decimal] = Field(None, ge=0, le=10)
    total_reviews: int = Field(default=0, ge=0)

    @field_validator("source", mode="before")
    @classmethod
    def strip_source(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("average_rating", mode="before")
    @classmethod
    def parse_rating(cls, v):
        """空值视为未填写；无法解析的评分按 0 处理"""
        v = _blank_to_none(v)
        if v is None:
            return None
        try:
            rating = Decimal(str(v).strip())
        except (InvalidOperation, ValueError):
            return Decimal("0")
        return rating if rating.is_finite() else Decimal("0")

    @field_validator("total_reviews", mode="before")
    @classmethod
    def parse_total(cls, v):
        return max(0, _int_or_zero(v))


class FAQInput(BaseModel):
    question_en: str = Field(..., min_length=1)
    question_ar: Optional[str] = None
    answer_en: str = Field(..., min_length=1)
    answer_ar: Optional[str] = None


class HotelRelatedData(BaseModel):
    """
    提交表单时的关联集合；字段为 None 表示本次未提交该集合，
    空列表表示提交了空集合（图片除外：空列表不覆盖已有图片）
    """
    amenities: Optional[List[int]] = None
    rooms: Optional[List[RoomInput]] = None
    image_urls: Optional[List[str]] = None
    review_aggregates: Optional[List[ReviewAggregateInput]] = None
    faqs: Optional[List[FAQInput]] = None

    @field_validator("image_urls")
    @classmethod
    def check_urls(cls, v):
        if v is None:
            return v
        cleaned = [u.strip() for u in v]
        for url in cleaned:
            if not is_valid_image_url(url):
                raise ValueError(f"Invalid image URL: {url}")
        return cleaned


# ============== 响应 Schemas ==============

class ImageEntry(BaseModel):
    url: str
    isPrimary: bool = False
    sortOrder: int = 0


class HotelRow(BaseModel):
    """hotels 表单行"""
    id: int
    name_en: str
    name_ar: str
    address_en: Optional[str] = None
    address_ar: Optional[str] = None
    description_en: Optional[str] = None
    description_ar: Optional[str] = None
    type_id: Optional[int] = None
    chain_id: Optional[int] = None
    area_id: Optional[int] = None
    star_rating: Optional[int] = None
    rank: int = 0
    status: RecordStatus
    thumbnail_url: Optional[str] = None
    images: Optional[List[ImageEntry]] = None
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class HotelListItem(HotelRow):
    type: Optional[MasterDataRef] = None
    chain: Optional[MasterDataRef] = None
    area: Optional[MasterDataRef] = None


class RoomPackageRow(BaseModel):
    id: int
    room_id: int
    meal_board: str
    cancellation_policy: str
    first_price: Decimal
    base_price: Decimal
    almosafer_points: Decimal
    shukran_points: Decimal
    model_config = ConfigDict(from_attributes=True)


class RoomRow(BaseModel):
    id: int
    hotel_id: int
    room_type: str
    bedding: str
    view: str
    title: str = ""
    images: List[str] = Field(default_factory=list)
    packages: List[RoomPackageRow] = Field(default_factory=list)
    model_config = ConfigDict(from_attributes=True)

    @field_validator("images", mode="before")
    @classmethod
    def ensure_list(cls, v):
        return v if isinstance(v, list) else []


class ReviewAggregateRow(BaseModel):
    id: int
    hotel_id: int
    source: str
    average_rating: Decimal
    total_reviews: int
    last_updated: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class FAQRow(BaseModel):
    id: int
    hotel_id: int
    question_en: str
    question_ar: Optional[str] = None
    answer_en: str
    answer_ar: Optional[str] = None
    sort_order: int = 0
    model_config = ConfigDict(from_attributes=True)


class HotelAggregate(HotelListItem):
    """编辑页使用的聚合视图：设施仅保留 id 列表"""
    amenities: List[int] = Field(default_factory=list)
    rooms: List[RoomRow] = Field(default_factory=list)
    review_aggregates: List[ReviewAggregateRow] = Field(default_factory=list)
    faqs: List[FAQRow] = Field(default_factory=list)


class HotelDetail(HotelListItem):
    """对外读接口的一层联表结构"""
    amenities: List[MasterDataResponse] = Field(default_factory=list)
    rooms: List[RoomRow] = Field(default_factory=list)
    review_aggregates: List[ReviewAggregateRow] = Field(default_factory=list)
    faqs: Optional[List[FAQRow]] = None


class PointsPreview(BaseModel):
    base_price: Decimal
    first_price: Decimal
    almosafer_points: Decimal
    shukran_points: Decimal


class ApiEnvelope(BaseModel):
    success: bool
    data: Optional[Any] = None
    message: Optional[str] = None
