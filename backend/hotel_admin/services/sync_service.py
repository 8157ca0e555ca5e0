"""
关联实体同步器
把表单中的子集合与数据库行对齐：
- 房间+套餐、设施、FAQ：整体替换（先删该酒店全部行，再整体插入）
- 点评汇总：按 (hotel_id, source) 增量对齐，删除表单中已移除的来源
- 图片：写回 hotels 行上的 JSON 列，不是独立子表

每个同步器的一次调用在同一个会话事务内提交，失败时该集合保持调用前状态。
"""
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Type, TypeVar
import logging
from pydantic import BaseModel
from sqlalchemy.orm import Session

from hotel_admin.models.entities import (
    Hotel, HotelAmenity, Room, RoomPackage, ReviewAggregate, HotelFAQ
)
from hotel_admin.models.schemas import (
    RoomInput, ReviewAggregateInput, FAQInput,
    RoomRow, ReviewAggregateRow, FAQRow, HotelRow
)
from hotel_admin.services.pricing import derive_package_pricing
from hotel_admin.services.result import service_operation

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _coerce_items(model: Type[M], items: Optional[Iterable]) -> List[M]:
    """接受 schema 实例或 dict"""
    return [
        item if isinstance(item, model) else model.model_validate(item)
        for item in (items or [])
    ]


def build_package_row(room_id: int, pkg) -> RoomPackage:
    """套餐行：价格与积分统一由 derive_package_pricing 生成"""
    pricing = derive_package_pricing(pkg.base_price, pkg.first_price)
    return RoomPackage(
        room_id=room_id,
        meal_board=pkg.meal_board or "",
        cancellation_policy=pkg.cancellation_policy or "",
        **pricing.as_dict(),
    )


def build_image_entries(urls: List[str]) -> List[dict]:
    """图片按提交顺序排序，第一张为主图"""
    return [
        {"url": url, "isPrimary": index == 0, "sortOrder": index}
        for index, url in enumerate(urls)
    ]


class RoomSynchronizer:
    """房间 + 套餐同步器（整体替换）"""

    def __init__(self, db: Session):
        self.db = db

    def _insert_rooms(self, hotel_id: int, rooms: List[RoomInput]) -> List[Room]:
        inserted = []
        for room in rooms:
            row = Room(
                hotel_id=hotel_id,
                room_type=room.room_type or "",
                bedding=room.bedding or "",
                view=room.view or "",
                images=list(room.images),
            )
            # 逐个房间写入以拿到 id，再批量写入其套餐
            self.db.add(row)
            self.db.flush()
            if room.packages:
                self.db.add_all([build_package_row(row.id, pkg) for pkg in room.packages])
                self.db.flush()
            inserted.append(row)
        return inserted

    def _to_rows(self, rooms: List[Room]) -> List[RoomRow]:
        for room in rooms:
            self.db.refresh(room)
        return [RoomRow.model_validate(room) for room in rooms]

    @service_operation("Failed to save rooms")
    def save(self, hotel_id: int, rooms) -> List[RoomRow]:
        """新增流程：直接插入"""
        items = _coerce_items(RoomInput, rooms)
        if not items:
            return []
        inserted = self._insert_rooms(hotel_id, items)
        self.db.commit()
        return self._to_rows(inserted)

    @service_operation("Failed to update rooms")
    def update(self, hotel_id: int, rooms) -> List[RoomRow]:
        """编辑流程：删除该酒店全部房间（套餐级联删除）后重新插入"""
        items = _coerce_items(RoomInput, rooms)
        deleted = (
            self.db.query(Room)
            .filter(Room.hotel_id == hotel_id)
            .delete(synchronize_session=False)
        )
        logger.info(f"Replacing {deleted} room(s) of hotel {hotel_id} with {len(items)}")
        inserted = self._insert_rooms(hotel_id, items)
        self.db.commit()
        return self._to_rows(inserted)


class AmenitySynchronizer:
    """酒店-设施关联同步器（整体替换）"""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _unique_ids(amenity_ids) -> List[int]:
        seen = []
        for amenity_id in amenity_ids or []:
            if amenity_id is None:
                continue
            amenity_id = int(amenity_id)
            if amenity_id not in seen:
                seen.append(amenity_id)
        return seen

    def _insert(self, hotel_id: int, amenity_ids: List[int]) -> None:
        self.db.add_all([
            HotelAmenity(hotel_id=hotel_id, amenity_id=amenity_id)
            for amenity_id in amenity_ids
        ])
        self.db.flush()

    @service_operation("Failed to save hotel amenities")
    def save(self, hotel_id: int, amenity_ids) -> List[int]:
        ids = self._unique_ids(amenity_ids)
        if not ids:
            return []
        self._insert(hotel_id, ids)
        self.db.commit()
        return ids

    @service_operation("Failed to update hotel amenities")
    def update(self, hotel_id: int, amenity_ids) -> List[int]:
        ids = self._unique_ids(amenity_ids)
        self.db.query(HotelAmenity).filter(
            HotelAmenity.hotel_id == hotel_id
        ).delete(synchronize_session=False)
        if ids:
            self._insert(hotel_id, ids)
        self.db.commit()
        return ids


class ReviewAggregateSynchronizer:
    """点评汇总同步器（按来源增量对齐）"""

    def __init__(self, db: Session, clock: Callable[[], datetime] = None):
        self.db = db
        # 支持注入时钟，便于测试 last_updated
        self._now = clock or datetime.utcnow

    @staticmethod
    def _by_source(reviews) -> Dict[str, ReviewAggregateInput]:
        """丢弃来源为空的条目；同一来源出现多次时以最后一条为准"""
        result: Dict[str, ReviewAggregateInput] = {}
        for review in _coerce_items(ReviewAggregateInput, reviews):
            if review.source:
                result[review.source] = review
        return result

    @staticmethod
    def _apply(row: ReviewAggregate, review: ReviewAggregateInput, now: datetime) -> None:
        row.average_rating = review.average_rating or 0
        row.total_reviews = review.total_reviews
        row.last_updated = now

    def _read_all(self, hotel_id: int) -> List[ReviewAggregateRow]:
        rows = (
            self.db.query(ReviewAggregate)
            .filter(ReviewAggregate.hotel_id == hotel_id)
            .order_by(ReviewAggregate.id.asc())
            .all()
        )
        return [ReviewAggregateRow.model_validate(r) for r in rows]

    @service_operation("Failed to save review aggregates")
    def save(self, hotel_id: int, reviews) -> List[ReviewAggregateRow]:
        incoming = self._by_source(reviews)
        if not incoming:
            return []
        now = self._now()
        rows = []
        for source, review in incoming.items():
            row = ReviewAggregate(hotel_id=hotel_id, source=source)
            self._apply(row, review, now)
            rows.append(row)
        self.db.add_all(rows)
        self.db.commit()
        for row in rows:
            self.db.refresh(row)
        return [ReviewAggregateRow.model_validate(r) for r in rows]

    @service_operation("Failed to update review aggregates")
    def update(self, hotel_id: int, reviews) -> List[ReviewAggregateRow]:
        incoming = self._by_source(reviews)
        existing = {
            row.source: row
            for row in self.db.query(ReviewAggregate).filter(ReviewAggregate.hotel_id == hotel_id)
        }

        removed = [row for source, row in existing.items() if source not in incoming]
        for row in removed:
            self.db.delete(row)
        if removed:
            # 先删除再写入，避免同一事务内的唯一约束冲突
            self.db.flush()

        now = self._now()
        for source, review in incoming.items():
            row = existing.get(source)
            if row is None:
                row = ReviewAggregate(hotel_id=hotel_id, source=source)
                self.db.add(row)
            self._apply(row, review, now)

        self.db.commit()
        logger.info(
            f"Review aggregates of hotel {hotel_id}: removed {len(removed)}, "
            f"upserted {len(incoming)}"
        )
        return self._read_all(hotel_id)


class FAQSynchronizer:
    """FAQ 同步器（整体替换）"""

    def __init__(self, db: Session):
        self.db = db

    def _insert(self, hotel_id: int, faqs: List[FAQInput]) -> List[HotelFAQ]:
        rows = [
            HotelFAQ(hotel_id=hotel_id, sort_order=index, **faq.model_dump())
            for index, faq in enumerate(faqs)
        ]
        self.db.add_all(rows)
        self.db.flush()
        return rows

    def _to_rows(self, rows: List[HotelFAQ]) -> List[FAQRow]:
        for row in rows:
            self.db.refresh(row)
        return [FAQRow.model_validate(r) for r in rows]

    @service_operation("Failed to save FAQs")
    def save(self, hotel_id: int, faqs) -> List[FAQRow]:
        items = _coerce_items(FAQInput, faqs)
        if not items:
            return []
        rows = self._insert(hotel_id, items)
        self.db.commit()
        return self._to_rows(rows)

    @service_operation("Failed to update FAQs")
    def update(self, hotel_id: int, faqs) -> List[FAQRow]:
        items = _coerce_items(FAQInput, faqs)
        self.db.query(HotelFAQ).filter(
            HotelFAQ.hotel_id == hotel_id
        ).delete(synchronize_session=False)
        rows = self._insert(hotel_id, items)
        self.db.commit()
        return self._to_rows(rows)


class ImageUrlSynchronizer:
    """图片同步器：整表写入 hotels.images，首图同时写入 image_url"""

    def __init__(self, db: Session):
        self.db = db

    @service_operation("Failed to save image URLs")
    def save(self, hotel_id: int, image_urls) -> HotelRow:
        urls = [u for u in (image_urls or []) if u]
        hotel = self.db.query(Hotel).filter(Hotel.id == hotel_id).first()
        if not hotel:
            raise ValueError("Hotel not found")
        hotel.images = build_image_entries(urls)
        hotel.image_url = urls[0] if urls else None
        self.db.commit()
        self.db.refresh(hotel)
        return HotelRow.model_validate(hotel)
