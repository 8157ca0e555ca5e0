"""
统一的操作结果类型

所有仓储操作返回 ServiceResult(data, error)，调用方只判断 error 是否为空，
不区分错误种类（未配置、约束冲突、不存在、网络故障统一为字符串）。
"""
import functools
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from sqlalchemy.exc import DBAPIError, SQLAlchemyError

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "Database not configured"


@dataclass
class ServiceResult:
    """
    操作结果
    - data: 成功时的数据（删除操作为 None）
    - error: 失败或部分成功时的错误描述
    - warnings: 部分成功时各子步骤的失败信息
    """
    data: Any = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @staticmethod
    def ok(data: Any = None, **kwargs) -> "ServiceResult":
        """快速创建成功结果"""
        return ServiceResult(data=data, **kwargs)

    @staticmethod
    def fail(error: str, **kwargs) -> "ServiceResult":
        """快速创建失败结果"""
        return ServiceResult(data=None, error=error, **kwargs)


def error_message(exc: Exception) -> str:
    """提取底层驱动的错误信息，去掉 SQLAlchemy 附带的 SQL 语句"""
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return str(exc.orig)
    return str(exc)


def service_operation(fallback_message: str):
    """
    仓储方法装饰器（fallback_message 可引用实例属性，如 "{self.label}"）：
    - 未注入会话时直接返回 "Database not configured"
    - SQLAlchemyError / ValueError 回滚会话、记录日志并转成 ServiceResult.fail
    - 普通返回值包装为 ServiceResult.ok
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            if self.db is None:
                logger.warning(f"{func.__qualname__}: database session not configured")
                return ServiceResult.fail(NOT_CONFIGURED)
            try:
                outcome = func(self, *args, **kwargs)
            except (SQLAlchemyError, ValueError) as e:
                self.db.rollback()
                fallback = fallback_message.format(self=self)
                message = error_message(e) or fallback
                logger.error(f"{fallback}: {message}")
                return ServiceResult.fail(message)
            if isinstance(outcome, ServiceResult):
                return outcome
            return ServiceResult.ok(outcome)
        return wrapper
    return decorator
