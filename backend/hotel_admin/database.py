"""
数据库配置 - 持久化层
所有读写通过 services 中的仓储对象进行，会话由调用方注入
"""
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

from hotel_admin.config import settings

SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    """SQLite 默认不校验外键，开启后 ON DELETE CASCADE 才生效"""
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _make_engine(url: str) -> Engine:
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    new_engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True)
    enable_sqlite_foreign_keys(new_engine)
    return new_engine


engine = _make_engine(SQLALCHEMY_DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """依赖注入：获取数据库会话"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """初始化数据库表"""
    from hotel_admin.models import entities  # noqa
    Base.metadata.create_all(bind=engine)
