"""
酒店仓储 - 聚合操作层
酒店主记录的增删改查，以及跨关联表的聚合读取与整体保存。

并发模型：一次调用内互不依赖的读写通过 fan_out 并发执行；
酒店主记录的读写总是先于依赖它的子集合操作。
多表写入之间没有事务包裹，子集合同步失败时主记录保留新值，
调用方收到带错误提示的"部分成功"结果。
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Union
import logging
from sqlalchemy import or_
from sqlalchemy.orm import Session, sessionmaker, selectinload

from hotel_admin.config import settings
from hotel_admin.models.entities import (
    Hotel, HotelAmenity, Room, RoomPackage, ReviewAggregate, HotelFAQ,
    PropertyType, Chain, Area
)
from hotel_admin.models.schemas import (
    HotelFields, HotelCreateForm, RoomForm, HotelRelatedData,
    HotelRow, HotelListItem, HotelAggregate, HotelDetail,
    MasterDataRef, MasterDataResponse, RoomRow, RoomPackageRow, ReviewAggregateRow, FAQRow
)
from hotel_admin.services.fanout import fan_out
from hotel_admin.services.result import ServiceResult, service_operation, error_message
from hotel_admin.services.sync_service import (
    RoomSynchronizer, AmenitySynchronizer, ReviewAggregateSynchronizer,
    FAQSynchronizer, ImageUrlSynchronizer
)

logger = logging.getLogger(__name__)

HOTEL_NOT_FOUND = "Hotel not found"
PARTIAL_UPDATE_ERROR = "Hotel updated but some related data failed to update"

# 主数据关联：(外键字段, 输出字段, 模型)
_RELATIONS = (
    ("type_id", "type", PropertyType),
    ("chain_id", "chain", Chain),
    ("area_id", "area", Area),
)


@dataclass
class HotelFilters:
    """列表过滤条件；search 对中英（阿）双语名称做不区分大小写的包含匹配"""
    search: Optional[str] = None
    type_id: Optional[int] = None
    area_id: Optional[int] = None
    status: Optional[str] = None


def _as_fields(fields: Union[HotelFields, dict]) -> HotelFields:
    return fields if isinstance(fields, HotelFields) else HotelFields.model_validate(fields)


def _as_create_form(fields: Union[HotelFields, dict]) -> HotelCreateForm:
    """新增表单比编辑表单多出地址、星级、缩略图必填"""
    if isinstance(fields, HotelCreateForm):
        return fields
    if isinstance(fields, HotelFields):
        fields = fields.model_dump()
    return HotelCreateForm.model_validate(fields)


def _as_related(related) -> HotelRelatedData:
    if related is None:
        return HotelRelatedData()
    return related if isinstance(related, HotelRelatedData) else HotelRelatedData.model_validate(related)


class HotelService:
    """酒店仓储"""

    def __init__(self, db: Session, max_workers: int = None,
                 clock: Callable[[], datetime] = None):
        self.db = db
        self.max_workers = max_workers or settings.SYNC_MAX_WORKERS
        # 注入时钟，传给点评汇总同步器
        self._clock = clock

    def _session_factory(self) -> sessionmaker:
        """并发任务各自使用独立会话，绑定到同一个引擎"""
        return sessionmaker(bind=self.db.get_bind(), autocommit=False, autoflush=False)

    # ============== 单表读写 ==============

    def _get_hotel(self, hotel_id: int) -> Optional[Hotel]:
        return self.db.query(Hotel).filter(Hotel.id == hotel_id).first()

    @service_operation("Failed to create hotel")
    def create(self, fields: Union[HotelFields, dict]) -> HotelRow:
        """插入酒店行；外键由调用方保证有效，否则由数据库约束报错"""
        hotel = Hotel(**_as_fields(fields).model_dump())
        self.db.add(hotel)
        self.db.commit()
        self.db.refresh(hotel)
        logger.info(f"Hotel {hotel.id} created: {hotel.name_en}")
        return HotelRow.model_validate(hotel)

    @service_operation("Failed to update hotel")
    def update(self, hotel_id: int, fields: Union[HotelFields, dict]) -> HotelRow:
        """整行覆盖标量字段"""
        data = _as_fields(fields).model_dump()
        hotel = self._get_hotel(hotel_id)
        if not hotel:
            raise ValueError(HOTEL_NOT_FOUND)

        for key, value in data.items():
            setattr(hotel, key, value)

        self.db.commit()
        self.db.refresh(hotel)
        return HotelRow.model_validate(hotel)

    @service_operation("Failed to delete hotel")
    def delete(self, hotel_id: int) -> None:
        """删除酒店；房间/套餐/设施关联/点评/FAQ 由数据库 ON DELETE CASCADE 清理"""
        self.db.query(Hotel).filter(Hotel.id == hotel_id).delete(synchronize_session=False)
        self.db.commit()

    @staticmethod
    def _lookup(db: Session, model, record_id: int) -> Optional[MasterDataRef]:
        record = db.query(model).filter(model.id == record_id).first()
        return MasterDataRef.model_validate(record) if record else None

    def _lookup_relations(self, hotel: HotelRow) -> Dict[str, Optional[MasterDataRef]]:
        """类型/集团/区域并发查询；查询失败或不存在时为 None，不影响整体结果"""
        tasks = {}
        for fk, name, model in _RELATIONS:
            record_id = getattr(hotel, fk)
            if record_id:
                tasks[name] = (lambda m, rid: lambda db: self._lookup(db, m, rid))(model, record_id)

        outcomes = fan_out(self._session_factory(), tasks, self.max_workers)
        relations = {}
        for _, name, _ in _RELATIONS:
            outcome = outcomes.get(name)
            if outcome is not None and outcome.failed:
                logger.warning(f"Lookup of {name} for hotel {hotel.id} failed: {outcome.exception}")
            relations[name] = outcome.value if outcome is not None and not outcome.failed else None
        return relations

    @service_operation("Failed to fetch hotel")
    def get_by_id(self, hotel_id: int) -> HotelListItem:
        hotel = self._get_hotel(hotel_id)
        if not hotel:
            raise ValueError(HOTEL_NOT_FOUND)
        row = HotelRow.model_validate(hotel)
        # 结束只读事务，后续关联查询在各自会话中进行
        self.db.commit()
        return HotelListItem(**row.model_dump(), **self._lookup_relations(row))

    def _filter(self, query, filters: Optional[HotelFilters]):
        filters = filters or HotelFilters()
        if filters.search:
            pattern = f"%{filters.search}%"
            query = query.filter(or_(Hotel.name_en.ilike(pattern), Hotel.name_ar.ilike(pattern)))
        if filters.type_id:
            query = query.filter(Hotel.type_id == filters.type_id)
        if filters.area_id:
            query = query.filter(Hotel.area_id == filters.area_id)
        if filters.status:
            query = query.filter(Hotel.status == filters.status)
        return query.order_by(Hotel.rank.asc(), Hotel.id.asc())

    @service_operation("Failed to fetch hotels")
    def list(self, filters: Optional[HotelFilters] = None) -> List[HotelListItem]:
        """
        按 rank 升序返回酒店，再批量补充类型/集团/区域显示名
        （每种主数据最多一次 IN 查询，不做逐条查询）
        """
        hotels = [HotelRow.model_validate(h) for h in self._filter(self.db.query(Hotel), filters).all()]
        if not hotels:
            return []

        lookups = {}
        for fk, name, model in _RELATIONS:
            ids = {getattr(h, fk) for h in hotels if getattr(h, fk)}
            records = self.db.query(model).filter(model.id.in_(ids)).all() if ids else []
            lookups[name] = {r.id: MasterDataRef.model_validate(r) for r in records}

        return [
            HotelListItem(
                **h.model_dump(),
                **{name: lookups[name].get(getattr(h, fk)) for fk, name, _ in _RELATIONS},
            )
            for h in hotels
        ]

    # ============== 聚合读取 ==============

    @staticmethod
    def _read_hotel(db: Session, hotel_id: int) -> Optional[HotelRow]:
        hotel = db.query(Hotel).filter(Hotel.id == hotel_id).first()
        return HotelRow.model_validate(hotel) if hotel else None

    @staticmethod
    def _read_amenity_ids(db: Session, hotel_id: int) -> List[int]:
        rows = db.query(HotelAmenity.amenity_id).filter(HotelAmenity.hotel_id == hotel_id).all()
        return [r.amenity_id for r in rows]

    @staticmethod
    def _read_rooms(db: Session, hotel_id: int) -> List[dict]:
        rooms = db.query(Room).filter(Room.hotel_id == hotel_id).order_by(Room.id.asc()).all()
        return [
            {
                "id": r.id, "hotel_id": r.hotel_id, "room_type": r.room_type,
                "bedding": r.bedding, "view": r.view, "title": r.title,
                "images": r.images if isinstance(r.images, list) else [],
            }
            for r in rooms
        ]

    @staticmethod
    def _read_packages(db: Session, room_ids: List[int]) -> List[RoomPackageRow]:
        packages = (
            db.query(RoomPackage)
            .filter(RoomPackage.room_id.in_(room_ids))
            .order_by(RoomPackage.id.asc())
            .all()
        )
        return [RoomPackageRow.model_validate(p) for p in packages]

    @staticmethod
    def _read_reviews(db: Session, hotel_id: int) -> List[ReviewAggregateRow]:
        rows = (
            db.query(ReviewAggregate)
            .filter(ReviewAggregate.hotel_id == hotel_id)
            .order_by(ReviewAggregate.id.asc())
            .all()
        )
        return [ReviewAggregateRow.model_validate(r) for r in rows]

    @staticmethod
    def _read_faqs(db: Session, hotel_id: int) -> List[FAQRow]:
        rows = (
            db.query(HotelFAQ)
            .filter(HotelFAQ.hotel_id == hotel_id)
            .order_by(HotelFAQ.sort_order.asc(), HotelFAQ.id.asc())
            .all()
        )
        return [FAQRow.model_validate(r) for r in rows]

    @service_operation("Failed to fetch complete hotel data")
    def get_complete(self, hotel_id: int) -> HotelAggregate:
        """
        编辑页聚合视图：
        1. 并发读取酒店行、设施 id、房间、点评汇总、FAQ
        2. 按房间 id 集合再读一次套餐并按 room_id 分组
        3. 并发补充类型/集团/区域
        酒店行读取失败直接失败；房间或套餐读取失败降级为空列表并记录警告
        """
        factory = self._session_factory()
        outcomes = fan_out(factory, {
            "hotel": lambda db: self._read_hotel(db, hotel_id),
            "amenities": lambda db: self._read_amenity_ids(db, hotel_id),
            "rooms": lambda db: self._read_rooms(db, hotel_id),
            "reviews": lambda db: self._read_reviews(db, hotel_id),
            "faqs": lambda db: self._read_faqs(db, hotel_id),
        }, self.max_workers)

        hotel_outcome = outcomes["hotel"]
        if hotel_outcome.failed:
            raise ValueError(error_message(hotel_outcome.exception))
        hotel = hotel_outcome.value
        if hotel is None:
            raise ValueError(HOTEL_NOT_FOUND)

        def settled(name: str, what: str) -> list:
            outcome = outcomes[name]
            if outcome.failed:
                logger.warning(f"{what} query failed for hotel {hotel_id}, returning empty list: {outcome.exception}")
                return []
            return outcome.value

        rooms = settled("rooms", "Rooms")
        packages_by_room: Dict[int, List[RoomPackageRow]] = {}
        room_ids = [r["id"] for r in rooms]
        if room_ids:
            pkg_outcome = fan_out(factory, {
                "packages": lambda db: self._read_packages(db, room_ids),
            }, self.max_workers)["packages"]
            if pkg_outcome.failed:
                logger.warning(f"Room packages query failed for hotel {hotel_id}: {pkg_outcome.exception}")
            else:
                for pkg in pkg_outcome.value:
                    packages_by_room.setdefault(pkg.room_id, []).append(pkg)

        return HotelAggregate(
            **hotel.model_dump(),
            **self._lookup_relations(hotel),
            amenities=settled("amenities", "Amenities"),
            rooms=[RoomRow(**r, packages=packages_by_room.get(r["id"], [])) for r in rooms],
            review_aggregates=settled("reviews", "Review aggregates"),
            faqs=settled("faqs", "FAQs"),
        )

    # ============== 对外读接口（一层联表） ==============

    def _detail_query(self):
        return self.db.query(Hotel).options(
            selectinload(Hotel.type),
            selectinload(Hotel.chain),
            selectinload(Hotel.area),
            selectinload(Hotel.hotel_amenities).selectinload(HotelAmenity.amenity),
            selectinload(Hotel.rooms).selectinload(Room.packages),
            selectinload(Hotel.review_aggregates),
            selectinload(Hotel.faqs),
        )

    @staticmethod
    def _to_detail(hotel: Hotel, include_faqs: bool) -> HotelDetail:
        base = HotelListItem.model_validate(hotel).model_dump()
        return HotelDetail(
            **base,
            amenities=[
                MasterDataResponse.model_validate(link.amenity)
                for link in sorted(hotel.hotel_amenities, key=lambda a: a.amenity_id)
            ],
            rooms=[RoomRow.model_validate(r) for r in hotel.rooms],
            review_aggregates=[ReviewAggregateRow.model_validate(r) for r in hotel.review_aggregates],
            faqs=[FAQRow.model_validate(f) for f in hotel.faqs] if include_faqs else None,
        )

    @service_operation("Failed to fetch hotels")
    def list_details(self, filters: Optional[HotelFilters] = None) -> List[HotelDetail]:
        """GET /hotels：每个酒店附带主数据、设施、房间（含套餐）、点评汇总"""
        hotels = self._filter(self._detail_query(), filters).all()
        return [self._to_detail(h, include_faqs=False) for h in hotels]

    @service_operation("Failed to fetch hotel")
    def get_detail(self, hotel_id: int) -> HotelDetail:
        """GET /hotels/{id}：同上并附带 FAQ"""
        hotel = self._detail_query().filter(Hotel.id == hotel_id).first()
        if not hotel:
            raise ValueError(HOTEL_NOT_FOUND)
        return self._to_detail(hotel, include_faqs=True)

    # ============== 聚合写入 ==============

    def create_complete(self, fields: Union[HotelFields, dict], related=None) -> ServiceResult:
        """
        新增流程：先插入酒店，再依次保存图片、设施、房间、点评汇总、FAQ。
        插入前按新增表单规则校验酒店字段和房间（类型/床型/景观必填，至少一个套餐），
        校验失败时不写库。
        子集合保存失败不回滚酒店，结果中附带 "Hotel created but ... failed to save"
        """
        try:
            fields = _as_create_form(fields)
            related = _as_related(related)
            if related.rooms:
                related.rooms = [RoomForm.model_validate(room.model_dump()) for room in related.rooms]
        except ValueError as e:
            return ServiceResult.fail(error_message(e))

        created = self.create(fields)
        if not created.succeeded:
            return created
        hotel_id = created.data.id

        steps = []
        if related.image_urls:
            steps.append(("images", lambda: ImageUrlSynchronizer(self.db).save(hotel_id, related.image_urls)))
        if related.amenities:
            steps.append(("amenities", lambda: AmenitySynchronizer(self.db).save(hotel_id, related.amenities)))
        if related.rooms:
            steps.append(("rooms", lambda: RoomSynchronizer(self.db).save(hotel_id, related.rooms)))
        reviews = [r for r in related.review_aggregates or [] if r.average_rating is not None]
        if reviews:
            steps.append(("review aggregates", lambda: ReviewAggregateSynchronizer(
                self.db, clock=self._clock).save(hotel_id, reviews)))
        if related.faqs:
            steps.append(("FAQs", lambda: FAQSynchronizer(self.db).save(hotel_id, related.faqs)))

        warnings = []
        for name, step in steps:
            result = step()
            if not result.succeeded:
                logger.error(f"Failed to save {name} for hotel {hotel_id}: {result.error}")
                warnings.append(f"Hotel created but {name} failed to save")

        if warnings:
            return ServiceResult(data=created.data, error="; ".join(warnings), warnings=warnings)
        return ServiceResult.ok(created.data)

    def update_complete(self, hotel_id: int, fields: Union[HotelFields, dict],
                        related=None) -> ServiceResult:
        """
        编辑流程：先更新酒店标量字段（失败则整体失败），
        再并发执行已提交集合的同步器。
        - amenities / rooms / review_aggregates / faqs：None 表示未提交，跳过
        - image_urls：仅在非空时写入，空列表不覆盖已有图片
        同步失败不回滚酒店更新，返回更新后的酒店并附带 PARTIAL_UPDATE_ERROR
        """
        try:
            related = _as_related(related)
        except ValueError as e:
            return ServiceResult.fail(error_message(e))

        updated = self.update(hotel_id, fields)
        if not updated.succeeded:
            return updated

        # 释放主会话的连接，各同步器在独立会话中提交
        self.db.commit()

        tasks = {}
        if related.amenities is not None:
            tasks["amenities"] = lambda db: AmenitySynchronizer(db).update(hotel_id, related.amenities)
        if related.rooms is not None:
            tasks["rooms"] = lambda db: RoomSynchronizer(db).update(hotel_id, related.rooms)
        if related.image_urls:
            tasks["images"] = lambda db: ImageUrlSynchronizer(db).save(hotel_id, related.image_urls)
        if related.review_aggregates is not None:
            tasks["review_aggregates"] = lambda db: ReviewAggregateSynchronizer(
                db, clock=self._clock).update(hotel_id, related.review_aggregates)
        if related.faqs is not None:
            tasks["faqs"] = lambda db: FAQSynchronizer(db).update(hotel_id, related.faqs)

        outcomes = fan_out(self._session_factory(), tasks, self.max_workers)
        # 子会话已提交，主会话中的对象可能过期
        self.db.expire_all()

        warnings = []
        for name, outcome in outcomes.items():
            if outcome.failed:
                warnings.append(f"{name}: {error_message(outcome.exception)}")
            elif not outcome.value.succeeded:
                warnings.append(f"{name}: {outcome.value.error}")

        if warnings:
            logger.error(f"Some related updates failed for hotel {hotel_id}: {warnings}")
            return ServiceResult(data=updated.data, error=PARTIAL_UPDATE_ERROR, warnings=warnings)
        return ServiceResult.ok(updated.data)
