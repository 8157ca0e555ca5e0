"""
并发扇出 / 扇入
同一次请求内互不依赖的读写并发执行，彼此之间不保证顺序。
Session 不是线程安全的，每个任务在独立会话中运行。
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)

Task = Callable[[Session], Any]


@dataclass
class TaskOutcome:
    value: Any = None
    exception: Optional[BaseException] = None

    @property
    def failed(self) -> bool:
        return self.exception is not None


def _run_in_session(factory: sessionmaker, task: Task) -> Any:
    db = factory()
    try:
        return task(db)
    finally:
        db.close()


def fan_out(factory: sessionmaker, tasks: Dict[str, Task], max_workers: int) -> Dict[str, TaskOutcome]:
    """
    并发执行 tasks，等待全部结束后按名字返回结果（类似 allSettled）
    单个任务的异常被收集，不影响其它任务
    """
    if not tasks:
        return {}

    outcomes: Dict[str, TaskOutcome] = {}
    workers = max(1, min(max_workers, len(tasks)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {
            name: executor.submit(_run_in_session, factory, task)
            for name, task in tasks.items()
        }
        for name, future in futures.items():
            try:
                outcomes[name] = TaskOutcome(value=future.result())
            except Exception as e:
                logger.error(f"Fan-out task '{name}' raised: {e}")
                outcomes[name] = TaskOutcome(exception=e)
    return outcomes
