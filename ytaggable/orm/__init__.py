"""ORM 模块

提供声明式基类、核心模型与会话管理。

使用示例:
    from ytaggable.orm import CoreModel, init_database, db_session_scope

    init_database("sqlite:///./tags.db")
    with db_session_scope() as session:
        ...
"""

from .id_model import Base, IdModel
from .core_model import CoreModel
from .db_session import (
    DatabaseManager,
    db_manager,
    init_database,
    get_engine,
    db_session_scope,
    enable_sqlite_savepoints,
)

__all__ = [
    "Base",
    "IdModel",
    "CoreModel",
    "DatabaseManager",
    "db_manager",
    "init_database",
    "get_engine",
    "db_session_scope",
    "enable_sqlite_savepoints",
]
