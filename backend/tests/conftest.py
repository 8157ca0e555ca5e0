"""
Pytest 配置和共享 fixtures
"""
import os

# 应用启动时 init_db 使用的库，避免测试在工作目录生成数据库文件
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from datetime import datetime
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from hotel_admin.database import Base, get_db, enable_sqlite_foreign_keys
from hotel_admin.models import entities  # noqa
from hotel_admin.models.entities import PropertyType, Chain, Area, Amenity
from hotel_admin.services.hotel_service import HotelService
from hotel_admin.main import app


@pytest.fixture(scope="function")
def db_engine():
    """创建内存数据库引擎（开启外键约束）"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """创建数据库会话"""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def client(db_session):
    """创建测试客户端"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def fixed_now():
    return datetime(2024, 5, 1, 12, 0, 0)


@pytest.fixture
def hotel_service(db_session, fixed_now):
    """单线程扇出：SQLite 内存库只有一个连接"""
    return HotelService(db_session, max_workers=1, clock=lambda: fixed_now)


# ============== 主数据 Fixtures ==============

@pytest.fixture
def master_data(db_session):
    """两种类型、一个集团、两个区域、三个设施"""
    records = {
        "hotel_type": PropertyType(name_en="Hotel", name_ar="فندق"),
        "resort_type": PropertyType(name_en="Resort", name_ar="منتجع"),
        "chain": Chain(name_en="Marriott International", name_ar="ماريوت الدولية"),
        "downtown": Area(name_en="Downtown Dubai", name_ar="وسط مدينة دبي"),
        "marina": Area(name_en="Dubai Marina", name_ar="دبي مارينا"),
        "gym": Amenity(name_en="Gym/Fitness Centre", name_ar="نادي رياضي"),
        "pool": Amenity(name_en="Swimming Pool", name_ar="مسبح"),
        "spa": Amenity(name_en="Spa", name_ar="سبا"),
    }
    db_session.add_all(records.values())
    db_session.commit()
    return records


@pytest.fixture
def hotel_fields(master_data):
    """新增表单的标量字段"""
    return {
        "name_en": "Palm View",
        "name_ar": "بالم فيو",
        "type_id": master_data["hotel_type"].id,
        "chain_id": master_data["chain"].id,
        "area_id": master_data["downtown"].id,
        "address_en": "Sheikh Zayed Road",
        "address_ar": "شارع الشيخ زايد",
        "star_rating": 5,
        "rank": 1,
        "thumbnail_url": "https://cdn.example.com/palm.jpg",
    }
