"""ID模型基类

提供主键（ID）相关的功能。标签表、关联表与业务实体都使用整数自增主键，
关联表通过 taggable_id（Integer）引用业务实体。

使用说明：
    IdModel 是 CoreModel 的父类，专门负责 ID 字段。
    一般情况下，用户应该使用 CoreModel，而不是直接使用 IdModel。
"""

from __future__ import annotations

from sqlalchemy import Integer
from sqlalchemy.orm import declarative_base, Mapped, mapped_column


# 声明基类
Base = declarative_base()


class IdModel(Base):
    """ID模型基类

    使用示例:
        class Article(IdModel):
            __tablename__ = "article"
            title = mapped_column(String(200))
    """
    __abstract__ = True

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, comment='主键ID')
