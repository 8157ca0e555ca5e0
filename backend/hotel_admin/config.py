"""
应用配置
从环境变量 / .env 读取配置
"""
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用设置"""

    # 应用基础配置
    APP_NAME: str = "Hotel Inventory Admin"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # 数据库配置
    DATABASE_URL: str = "sqlite:///./hotel_admin.db"

    # 关联数据并发同步的线程数
    SYNC_MAX_WORKERS: int = 4

    # 酒店列表分页大小（与后台列表一致，每页 5 条）
    LIST_PAGE_SIZE: int = 5

    model_config = ConfigDict(env_file=".env", case_sensitive=True, extra="ignore")


# 全局设置实例
settings = Settings()
