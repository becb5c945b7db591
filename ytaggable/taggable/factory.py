"""标签模型工厂

提供 create_tag_models() 函数，按配置一次创建标签模型与关联模型。

使用方式：
=========

级别1：零配置（推荐）
-------------------
    from ytaggable.taggable import create_tag_models

    models = create_tag_models()
    Tag, TagRelation = models.Tag, models.TagRelation

级别2：自定义配置与 Mixin
-----------------------
    class TagColorMixin:
        color: Mapped[str] = mapped_column(String(20), nullable=True)

    models = create_tag_models(
        TaggableSettings(tables={"tags": "blog_tags", "taggables": "blog_taggables"}),
        tag_mixin=TagColorMixin,
    )

级别3：完全自定义（继承抽象类）
----------------------------
    class Tag(AbstractTag, CoreModel):
        __tablename__ = "my_tags"
"""

import uuid
from dataclasses import dataclass
from typing import Optional, Type

from ..config import TaggableSettings
from ..log import get_logger
from ..orm import CoreModel
from .tag_model import AbstractTag, AbstractTagRelation

logger = get_logger()


def _create_model_class(
    name: str,
    abstract_class: Type,
    tablename: str,
    extra_attrs: dict = None,
    mixin: Type = None,
) -> Type:
    """动态创建模型类

    Args:
        name: 类名
        abstract_class: 抽象模型（AbstractTag / AbstractTagRelation）
        tablename: 表名
        extra_attrs: 额外的类属性
        mixin: 可选的 Mixin 类

    Returns:
        新创建的模型类
    """
    if mixin:
        bases = (mixin, abstract_class, CoreModel)
    else:
        bases = (abstract_class, CoreModel)

    # 使用唯一类名，避免 SQLAlchemy registry 冲突（例如 Tag -> Tag_a1b2c3d4）
    unique_name = f"{name}_{uuid.uuid4().hex[:8]}"

    attrs = {
        "__tablename__": tablename,
        "__abstract__": False,
        "__table_args__": {"extend_existing": True},
    }
    if extra_attrs:
        attrs.update(extra_attrs)

    return type(unique_name, bases, attrs)


@dataclass
class TagModels:
    """标签模型容器

    属性:
        Tag: 标签模型
        TagRelation: 标签关联模型
        settings: 两个模型共用的配置
    """
    Tag: Type
    TagRelation: Type
    settings: TaggableSettings

    def as_dict(self) -> dict:
        """返回模型字典，方便传递给其他函数"""
        return {
            "tag_model": self.Tag,
            "tag_relation_model": self.TagRelation,
        }


def create_tag_models(
    settings: Optional[TaggableSettings] = None,
    tag_mixin: Type = None,
    relation_mixin: Type = None,
) -> TagModels:
    """创建标签模型与关联模型

    Args:
        settings: 标签配置，为空时使用默认配置（表名 tags / taggables）
        tag_mixin: 标签模型的扩展 Mixin
        relation_mixin: 关联模型的扩展 Mixin

    Returns:
        TagModels 容器
    """
    settings = settings or TaggableSettings()

    Tag = _create_model_class(
        "Tag",
        AbstractTag,
        settings.tables.tags,
        extra_attrs={"__taggable_settings__": settings},
        mixin=tag_mixin,
    )
    TagRelation = _create_model_class(
        "TagRelation",
        AbstractTagRelation,
        settings.tables.taggables,
        extra_attrs={"__tag_model__": Tag},
        mixin=relation_mixin,
    )
    Tag.__tag_relation_model__ = TagRelation

    logger.debug(f"创建标签模型: tables={settings.tables.tags}/{settings.tables.taggables}")
    return TagModels(Tag=Tag, TagRelation=TagRelation, settings=settings)
