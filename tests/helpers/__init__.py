"""测试辅助工具"""

from .taggable_models import (
    Article,
    Photo,
    Tag,
    TagRelation,
    article_events,
    tag_settings,
    use_settings,
)

__all__ = [
    "Article",
    "Photo",
    "Tag",
    "TagRelation",
    "article_events",
    "tag_settings",
    "use_settings",
]
