"""标签系统模块

提供通用的标签功能支持。

导出:
    - AbstractTag / AbstractTagRelation: 标签与关联的抽象模型
    - TaggableMixin: 业务模型使用的标签 Mixin
    - create_tag_models: 按配置创建标签模型
    - TagAttached / TagDetached / TagsSynced: 标签事件
    - tag_events: 默认事件派发器

使用示例:
    from ytaggable.orm import CoreModel
    from ytaggable.taggable import TaggableMixin, create_tag_models

    models = create_tag_models()

    class Article(TaggableMixin, CoreModel):
        __tag_model__ = models.Tag
        __tag_relation_model__ = models.TagRelation

    article.tag("Python, Web")
    Tag.popular(limit=10)
    Tag.tag_cloud(user_id=1)
"""

from .slugger import default_slugger, unicode_slugger, resolve_slugger, make_slug
from .aggregation import compute_weights, build_tag_cloud, rank_by_count
from .events import (
    TagEvent,
    TagAttached,
    TagDetached,
    TagsSynced,
    TagEventDispatcher,
    tag_events,
)
from .tag_model import AbstractTag, AbstractTagRelation, TaggableRef
from .taggable_mixin import TaggableMixin
from .factory import TagModels, create_tag_models

__all__ = [
    "default_slugger",
    "unicode_slugger",
    "resolve_slugger",
    "make_slug",
    "compute_weights",
    "build_tag_cloud",
    "rank_by_count",
    "TagEvent",
    "TagAttached",
    "TagDetached",
    "TagsSynced",
    "TagEventDispatcher",
    "tag_events",
    "AbstractTag",
    "AbstractTagRelation",
    "TaggableRef",
    "TaggableMixin",
    "TagModels",
    "create_tag_models",
]
