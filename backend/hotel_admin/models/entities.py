"""
实体定义
酒店聚合（酒店 + 房间/套餐/设施/点评汇总/FAQ）与四张主数据表
"""
from datetime import datetime
from enum import Enum
from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Text, Numeric, JSON,
    UniqueConstraint, Enum as SQLEnum
)
from sqlalchemy.orm import relationship
from hotel_admin.database import Base


# ============== 枚举定义 ==============

class RecordStatus(str, Enum):
    """记录状态（酒店与主数据共用）"""
    ACTIVE = "active"
    INACTIVE = "inactive"


def _status_column():
    return Column(
        SQLEnum(RecordStatus, native_enum=False, length=20,
                values_callable=lambda e: [m.value for m in e]),
        default=RecordStatus.ACTIVE,
        nullable=False,
        index=True,
    )


# ============== 主数据 ==============

class MasterDataMixin:
    """主数据表结构完全一致：中英（阿）双语名称 + 状态"""
    id = Column(Integer, primary_key=True, index=True)
    name_en = Column(String(200), nullable=False, index=True)
    name_ar = Column(String(200), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class PropertyType(MasterDataMixin, Base):
    """物业类型（Hotel / Apartment / Resort）"""
    __tablename__ = "property_types"
    status = _status_column()


class Chain(MasterDataMixin, Base):
    """酒店集团"""
    __tablename__ = "chains"
    status = _status_column()


class Area(MasterDataMixin, Base):
    """区域"""
    __tablename__ = "areas"
    status = _status_column()


class Amenity(MasterDataMixin, Base):
    """设施"""
    __tablename__ = "amenities"
    status = _status_column()


# ============== 酒店聚合 ==============

class Hotel(Base):
    """
    酒店对象 - 聚合根
    images 为有序 JSON 列表 [{url, isPrimary, sortOrder}]，image_url 保留首图
    """
    __tablename__ = "hotels"

    id = Column(Integer, primary_key=True, index=True)
    name_en = Column(String(200), nullable=False)
    name_ar = Column(String(200), nullable=False)
    address_en = Column(Text)
    address_ar = Column(Text)
    description_en = Column(Text)
    description_ar = Column(Text)
    type_id = Column(Integer, ForeignKey("property_types.id"), index=True)
    chain_id = Column(Integer, ForeignKey("chains.id"), nullable=True, index=True)
    area_id = Column(Integer, ForeignKey("areas.id"), index=True)
    star_rating = Column(Integer, nullable=True)
    rank = Column(Integer, default=0, nullable=False, index=True)  # 默认列表排序
    status = _status_column()
    thumbnail_url = Column(Text)
    images = Column(JSON, nullable=True)
    image_url = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # 链接：引用主数据（不拥有）
    type = relationship("PropertyType")
    chain = relationship("Chain")
    area = relationship("Area")

    # 链接：独占的子集合，删除由存储层级联
    rooms = relationship("Room", back_populates="hotel", order_by="Room.id",
                         cascade="all, delete-orphan", passive_deletes=True)
    hotel_amenities = relationship("HotelAmenity", back_populates="hotel",
                                   cascade="all, delete-orphan", passive_deletes=True)
    review_aggregates = relationship("ReviewAggregate", back_populates="hotel",
                                     order_by="ReviewAggregate.id",
                                     cascade="all, delete-orphan", passive_deletes=True)
    faqs = relationship("HotelFAQ", back_populates="hotel", order_by="HotelFAQ.sort_order",
                        cascade="all, delete-orphan", passive_deletes=True)


class HotelAmenity(Base):
    """酒店-设施关联行"""
    __tablename__ = "hotel_amenities"

    hotel_id = Column(Integer, ForeignKey("hotels.id", ondelete="CASCADE"), primary_key=True)
    amenity_id = Column(Integer, ForeignKey("amenities.id", ondelete="CASCADE"), primary_key=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    hotel = relationship("Hotel", back_populates="hotel_amenities")
    amenity = relationship("Amenity")


class Room(Base):
    """房间（OTA 房型）"""
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False, index=True)
    room_type = Column(String(100), nullable=False, default="")
    bedding = Column(String(100), nullable=False, default="")
    view = Column(String(100), nullable=False, default="")
    images = Column(JSON, nullable=True)  # URL 列表
    created_at = Column(DateTime, default=datetime.utcnow)

    hotel = relationship("Hotel", back_populates="rooms")
    packages = relationship("RoomPackage", back_populates="room", order_by="RoomPackage.id",
                            cascade="all, delete-orphan", passive_deletes=True)

    @property
    def title(self) -> str:
        return generate_room_title(self.room_type, self.bedding, self.view)


class RoomPackage(Base):
    """房间价格套餐，积分字段由 base_price 派生"""
    __tablename__ = "room_packages"

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    meal_board = Column(String(20), nullable=False, default="")
    cancellation_policy = Column(String(50), nullable=False, default="")
    first_price = Column(Numeric(10, 2), nullable=False, default=0)
    base_price = Column(Numeric(10, 2), nullable=False, default=0)
    almosafer_points = Column(Numeric(10, 2), nullable=False, default=0)
    shukran_points = Column(Numeric(10, 2), nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    room = relationship("Room", back_populates="packages")


class ReviewAggregate(Base):
    """点评汇总，自然键 (hotel_id, source)"""
    __tablename__ = "review_aggregates"
    __table_args__ = (
        UniqueConstraint("hotel_id", "source", name="uq_review_aggregates_hotel_source"),
    )

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False, index=True)
    source = Column(String(100), nullable=False)
    average_rating = Column(Numeric(4, 2), nullable=False, default=0)  # 0 - 10
    total_reviews = Column(Integer, nullable=False, default=0)
    last_updated = Column(DateTime, default=datetime.utcnow)

    hotel = relationship("Hotel", back_populates="review_aggregates")


class HotelFAQ(Base):
    """酒店常见问题（双语）"""
    __tablename__ = "hotel_faqs"

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False, index=True)
    question_en = Column(Text, nullable=False)
    question_ar = Column(Text)
    answer_en = Column(Text, nullable=False)
    answer_ar = Column(Text)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    hotel = relationship("Hotel", back_populates="faqs")


def generate_room_title(room_type, bedding, view) -> str:
    """房间标题动态生成，不入库；任一属性缺失时返回空串"""
    if not room_type or not bedding or not view:
        return ""
    return f"{room_type} - {bedding} ({view})"
