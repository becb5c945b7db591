"""ytaggable - SQLAlchemy 模型的标签扩展

为任意 CoreModel 模型提供用户/全局作用域的标签、按标签查询、热门标签与标签云。

快速开始:
    from sqlalchemy import String
    from sqlalchemy.orm import Mapped, mapped_column

    from ytaggable import CoreModel, TaggableMixin, create_tag_models, init_database

    models = create_tag_models()

    class Article(TaggableMixin, CoreModel):
        __tag_model__ = models.Tag
        __tag_relation_model__ = models.TagRelation

        title: Mapped[str] = mapped_column(String(200))

    init_database("sqlite:///./app.db")

    article = Article(title="Hello").save()
    article.tag("Python, ORM", user_id=1)
    Article.with_all_tags(["python", "orm"]).all()
    models.Tag.tag_cloud(user_id=1)
"""

from .version import __version__

from .config import TaggableSettings, load_yaml_config
from .exceptions import (
    Err,
    ErrorCode,
    BusinessException,
    ConfigurationException,
    ValidationException,
)
from .log import get_logger, setup_root_logger
from .orm import Base, CoreModel, init_database, db_session_scope
from .taggable import (
    AbstractTag,
    AbstractTagRelation,
    TaggableMixin,
    TagModels,
    create_tag_models,
    TagAttached,
    TagDetached,
    TagsSynced,
    TagEventDispatcher,
    tag_events,
    default_slugger,
    unicode_slugger,
)

__all__ = [
    "__version__",
    "TaggableSettings",
    "load_yaml_config",
    "Err",
    "ErrorCode",
    "BusinessException",
    "ConfigurationException",
    "ValidationException",
    "get_logger",
    "setup_root_logger",
    "Base",
    "CoreModel",
    "init_database",
    "db_session_scope",
    "AbstractTag",
    "AbstractTagRelation",
    "TaggableMixin",
    "TagModels",
    "create_tag_models",
    "TagAttached",
    "TagDetached",
    "TagsSynced",
    "TagEventDispatcher",
    "tag_events",
    "default_slugger",
    "unicode_slugger",
]
