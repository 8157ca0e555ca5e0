"""
主数据服务
物业类型 / 集团 / 区域 / 设施四张参考表结构一致，共用同一套 CRUD。
删除被酒店引用的主数据不在此层拦截，由数据库外键约束报错。
"""
from typing import List, Optional, Type, Union
from sqlalchemy.orm import Session

from hotel_admin.models.entities import PropertyType, Chain, Area, Amenity, RecordStatus
from hotel_admin.models.schemas import MasterDataCreate, MasterDataUpdate, MasterDataResponse
from hotel_admin.services.result import service_operation


class MasterDataService:
    """单张主数据表的 CRUD"""

    model: Type = None
    label: str = ""
    plural: str = ""

    def __init__(self, db: Session):
        self.db = db

    def _get(self, record_id: int):
        return self.db.query(self.model).filter(self.model.id == record_id).first()

    def _not_found(self) -> ValueError:
        return ValueError(f"{self.label.capitalize()} not found")

    @service_operation("Failed to fetch {self.plural}")
    def list(self, active_only: bool = False) -> List[MasterDataResponse]:
        """按英文名升序；active_only 时只返回启用记录（下拉框使用）"""
        query = self.db.query(self.model)
        if active_only:
            query = query.filter(self.model.status == RecordStatus.ACTIVE)
        records = query.order_by(self.model.name_en.asc()).all()
        return [MasterDataResponse.model_validate(r) for r in records]

    @service_operation("Failed to fetch {self.label}")
    def get(self, record_id: int) -> MasterDataResponse:
        record = self._get(record_id)
        if not record:
            raise self._not_found()
        return MasterDataResponse.model_validate(record)

    @service_operation("Failed to create {self.label}")
    def create(self, data: Union[MasterDataCreate, dict]) -> MasterDataResponse:
        fields = data if isinstance(data, MasterDataCreate) else MasterDataCreate.model_validate(data)
        record = self.model(**fields.model_dump())
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return MasterDataResponse.model_validate(record)

    @service_operation("Failed to update {self.label}")
    def update(self, record_id: int, data: Union[MasterDataUpdate, dict]) -> MasterDataResponse:
        fields = data if isinstance(data, MasterDataUpdate) else MasterDataUpdate.model_validate(data)
        record = self._get(record_id)
        if not record:
            raise self._not_found()

        for key, value in fields.model_dump(exclude_unset=True).items():
            setattr(record, key, value)

        self.db.commit()
        self.db.refresh(record)
        return MasterDataResponse.model_validate(record)

    @service_operation("Failed to delete {self.label}")
    def delete(self, record_id: int) -> None:
        self.db.query(self.model).filter(
            self.model.id == record_id
        ).delete(synchronize_session=False)
        self.db.commit()

    def find_by_name(self, name_en: str) -> Optional[MasterDataResponse]:
        """按英文名查找（种子数据去重用）"""
        record = self.db.query(self.model).filter(self.model.name_en == name_en).first()
        return MasterDataResponse.model_validate(record) if record else None


class PropertyTypeService(MasterDataService):
    model = PropertyType
    label = "property type"
    plural = "property types"


class ChainService(MasterDataService):
    model = Chain
    label = "chain"
    plural = "chains"


class AreaService(MasterDataService):
    model = Area
    label = "area"
    plural = "areas"


class AmenityService(MasterDataService):
    model = Amenity
    label = "amenity"
    plural = "amenities"


MASTER_DATA_SERVICES = {
    "types": PropertyTypeService,
    "chains": ChainService,
    "areas": AreaService,
    "amenities": AmenityService,
}


def get_master_data_service(kind: str, db: Session) -> MasterDataService:
    """按后台页签名（types / chains / areas / amenities）获取服务"""
    if kind not in MASTER_DATA_SERVICES:
        raise ValueError(f"Unknown master data kind: {kind}")
    return MASTER_DATA_SERVICES[kind](db)
