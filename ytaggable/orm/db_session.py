"""
数据库会话管理模块

标签写入依赖 SAVEPOINT（find_or_create 在 begin_nested() 中插入），
SQLite 引擎创建时会自动接管 pysqlite 的事务控制。

公开 API:
- db_manager: 数据库管理器单例
- init_database(): 初始化数据库连接
- get_engine(): 获取数据库引擎
- db_session_scope(): 上下文管理器，自动提交/回滚/清理
- enable_sqlite_savepoints(): 让 SQLite 引擎支持嵌套事务
"""

import logging
import os
from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, scoped_session, Session
from sqlalchemy.pool import StaticPool

from ..log import get_logger

_logger = get_logger("ytaggable.orm.session")

__all__ = [
    "DatabaseManager",
    "db_manager",
    "init_database",
    "get_engine",
    "db_session_scope",
    "enable_sqlite_savepoints",
]


def enable_sqlite_savepoints(engine: Engine) -> Engine:
    """让 pysqlite 交由 SQLAlchemy 管理事务

    pysqlite 默认延迟发出 BEGIN，事务中第一条写语句若是 SAVEPOINT，
    RELEASE 会直接提交，外层回滚也撤销不了。
    """

    @event.listens_for(engine, "connect")
    def _disable_driver_transaction(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def _create_sqlite_engine(database_url: str, echo: bool, logger: logging.Logger) -> Engine:
    db_path = database_url.split("///", 1)[-1] if "///" in database_url else ""
    options = {"echo": echo, "connect_args": {"check_same_thread": False}}
    if db_path in ("", ":memory:"):
        # 内存数据库：单连接，否则每个连接都是一个新库
        options["poolclass"] = StaticPool
        logger.info("SQLite内存数据库（StaticPool）")
    else:
        logger.info(f"SQLite文件数据库路径: {os.path.abspath(db_path)}")
    return enable_sqlite_savepoints(create_engine(database_url, **options))


class DatabaseManager:
    """数据库管理器（单例）

    使用示例:
        from ytaggable.orm import db_manager

        db_manager.init(database_url="sqlite:///./tags.db")
        engine = db_manager.engine
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._engine = None
            cls._instance._session_scope = None
        return cls._instance

    @property
    def engine(self) -> Engine:
        """获取数据库引擎

        Raises:
            RuntimeError: 数据库未初始化时
        """
        if self._engine is None:
            raise RuntimeError("数据库未初始化，请先调用 init_database()")
        return self._engine

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None and self._session_scope is not None

    def init(
        self,
        database_url: str = None,
        echo: bool = False,
        pool_size: int = 5,
        max_overflow: int = 10,
        pool_recycle: int = 3600,
        pool_pre_ping: bool = True,
        logger: logging.Logger = None,
        config: Any = None,
    ):
        """初始化数据库连接，并把 CoreModel.query 绑定到新的 scoped session

        Args:
            database_url: 数据库连接URL
            echo: 是否输出SQL语句
            pool_size / max_overflow / pool_recycle / pool_pre_ping: 连接池参数，SQLite 忽略
            logger: 日志记录器
            config: DatabaseSettings，提供后覆盖以上同名参数

        Returns:
            tuple: (engine, session_scope)
        """
        if config is not None:
            database_url = getattr(config, "url", database_url) or database_url
            echo = getattr(config, "echo", echo)
            pool_size = getattr(config, "pool_size", pool_size)
            max_overflow = getattr(config, "max_overflow", max_overflow)
            pool_recycle = getattr(config, "pool_recycle", pool_recycle)
            pool_pre_ping = getattr(config, "pool_pre_ping", pool_pre_ping)

        if not database_url:
            raise ValueError("database_url 是必需的，请通过参数或 config 提供")

        logger = logger or _logger
        logger.info(f"数据库配置URL: {database_url}")

        if database_url.startswith("sqlite"):
            self._engine = _create_sqlite_engine(database_url, echo, logger)
        else:
            self._engine = create_engine(
                database_url,
                echo=echo,
                pool_pre_ping=pool_pre_ping,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_recycle=pool_recycle,
            )
            logger.info("数据库引擎创建成功")

        self._session_scope = scoped_session(
            sessionmaker(autocommit=False, autoflush=False, bind=self._engine)
        )

        from .core_model import CoreModel
        CoreModel.query = self._session_scope.query_property()

        return self._engine, self._session_scope

    def get_session(self) -> Session:
        """获取当前线程的 session"""
        if self._session_scope is None:
            raise RuntimeError("数据库未初始化，请先调用 init_database()")
        return self._session_scope()

    def cleanup(self):
        """移除当前线程的 session（幂等）"""
        if self._session_scope is not None and self._session_scope.registry.has():
            self._session_scope.remove()

    def dispose(self):
        """释放引擎与 session 状态"""
        self.cleanup()
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._session_scope = None


db_manager = DatabaseManager()


def init_database(database_url: str = None, echo: bool = False, **kwargs):
    """db_manager.init() 的便捷包装"""
    return db_manager.init(database_url=database_url, echo=echo, **kwargs)


def get_engine() -> Engine:
    return db_manager.engine


@contextmanager
def db_session_scope(auto_commit: bool = True) -> Generator[Session, None, None]:
    """session 上下文管理器

    正常退出时提交（auto_commit=True），异常时回滚，最后移除 session。
    标签操作只 flush，一次 scope 内的所有改动要么全部提交，要么全部回滚。

    使用示例:
        with db_session_scope():
            article.tag("python, orm")
    """
    session = db_manager.get_session()
    try:
        yield session
        if auto_commit:
            session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        db_manager.cleanup()
