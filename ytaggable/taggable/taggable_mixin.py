"""标签管理 Mixin

提供通用的标签管理功能。

使用示例:
    from ytaggable.orm import CoreModel
    from ytaggable.taggable import TaggableMixin, create_tag_models

    models = create_tag_models()

    class Article(TaggableMixin, CoreModel):
        __tag_model__ = models.Tag
        __tag_relation_model__ = models.TagRelation

        title = mapped_column(String(200))

    article = Article(title="Python 教程").save()

    article.tag("Python, Tutorial")           # [TagAttached, TagAttached]
    article.get_tags()                         # ["Python", "Tutorial"]
    article.has_tag("python")                  # True（按 slug 匹配）
    article.sync_tags(["Python", "ORM"])       # TagsSynced
    article.untag()                            # 移除全部标签

    Article.with_any_tags(["python", "java"]).all()
"""

from typing import Any, Iterable, List, Optional, Type, TYPE_CHECKING

from sqlalchemy import delete, event, false, inspect, select

from ..exceptions import Err, ErrorCode
from ..log import get_logger
from .events import TagAttached, TagDetached, TagsSynced, TagEventDispatcher, tag_events
from .scoping import filter_conditions, resolve_user_id, scope_condition
from .tag_model import TaggableRef

if TYPE_CHECKING:
    from sqlalchemy.orm import Query
    from .tag_model import AbstractTag, AbstractTagRelation

logger = get_logger()


class TaggableMixin:
    """标签管理 Mixin

    为模型提供标签管理能力。实体删除时自动删除其所有标签关联。

    配置属性:
        __tag_model__: 标签模型类（必须）
        __tag_relation_model__: 标签关联模型类（必须）
        __tag_event_dispatcher__: 事件派发器，默认使用 tag_events

    名称参数（names）接受逗号分隔的字符串、列表/元组/集合或单个值，
    各项去除首尾空白后丢弃空项。
    """

    __tag_model__: Type["AbstractTag"] = None
    __tag_relation_model__: Type["AbstractTagRelation"] = None
    __tag_event_dispatcher__: Optional[TagEventDispatcher] = None

    # ==================== 内部方法 ====================

    @classmethod
    def _get_tag_model(cls) -> Type["AbstractTag"]:
        """获取标签模型类"""
        model = getattr(cls, '__tag_model__', None)
        if model is None:
            raise Err.config(
                f"{cls.__name__} 必须设置 __tag_model__ 属性",
                code=ErrorCode.TAG_MODEL_NOT_CONFIGURED,
            )
        return model

    @classmethod
    def _get_relation_model(cls) -> Type["AbstractTagRelation"]:
        """获取关联模型类"""
        model = getattr(cls, '__tag_relation_model__', None)
        if model is None:
            raise Err.config(
                f"{cls.__name__} 必须设置 __tag_relation_model__ 属性",
                code=ErrorCode.TAG_MODEL_NOT_CONFIGURED,
            )
        return model

    @classmethod
    def _get_dispatcher(cls) -> TagEventDispatcher:
        return getattr(cls, '__tag_event_dispatcher__', None) or tag_events

    @classmethod
    def _settings(cls):
        return cls._get_tag_model().get_settings()

    @staticmethod
    def parse_tag_names(names: Any) -> List[str]:
        """解析标签名称

        Example:
            TaggableMixin.parse_tag_names(" a, b ,,c ")  # ["a", "b", "c"]
        """
        if names is None:
            return []
        if isinstance(names, str):
            items = names.split(",")
        elif isinstance(names, Iterable):
            items = list(names)
        else:
            items = [names]

        result = []
        for item in items:
            if item is None:
                continue
            text = str(item).strip()
            if text:
                result.append(text)
        return result

    def _current_ref(self) -> Optional[TaggableRef]:
        """实体引用，待插入的实体会先 flush，未保存时返回 None"""
        if self.id is None:
            state = inspect(self, raiseerr=False)
            if state is not None and state.pending and state.session is not None:
                state.session.flush()
        if self.id is None:
            return None
        return TaggableRef.of(self)

    def _taggable_ref(self) -> TaggableRef:
        ref = self._current_ref()
        if ref is None:
            raise Err.invalid(
                f"必须先保存 {self.__class__.__name__} 才能操作标签",
                code=ErrorCode.ENTITY_NOT_SAVED,
            )
        return ref

    @classmethod
    def _slugs(cls, names: Any) -> List[str]:
        Tag = cls._get_tag_model()
        slugs = []
        for name in cls.parse_tag_names(names):
            slug = Tag.make_slug(name)
            if slug and slug not in slugs:
                slugs.append(slug)
        return slugs

    def _dispatch(self, events: list) -> None:
        if events:
            self._get_dispatcher().dispatch(events)

    def _delete_unused_tags(self, tags: list) -> None:
        """开启 delete_unused_tags 时，删除已无关联的标签"""
        if not tags or not self._settings().delete_unused_tags:
            return
        TagRelation = self._get_relation_model()
        for tag in tags:
            if TagRelation.count_for(tag.id) == 0:
                logger.debug(f"标签已无关联，自动删除: id={tag.id}, slug={tag.slug}")
                tag.delete()

    def _detach_tags(self, ref: TaggableRef, tags: list) -> List[TagDetached]:
        TagRelation = self._get_relation_model()
        events = []
        detached = []
        for tag in tags:
            if TagRelation.detach(ref, tag.id):
                events.append(TagDetached(self, tag))
                detached.append(tag)
        self._delete_unused_tags(detached)
        self._dispatch(events)
        return events

    # ==================== 实例方法：添加标签 ====================

    def tag(self, names: Any, type: Optional[str] = None, user_id: Any = None) -> List[TagAttached]:
        """添加标签

        已关联的标签静默跳过，不产生事件。

        Args:
            names: 标签名称
            type: 标签类型
            user_id: 用户ID或用户对象，None 为全局标签

        Returns:
            TagAttached 事件列表（每个新建关联一个）

        Example:
            article.tag("Python, Web")
            article.tag(["Django"], type="framework", user_id=current_user)
        """
        parsed = self.parse_tag_names(names)
        if not parsed:
            return []

        ref = self._taggable_ref()
        Tag = self._get_tag_model()
        TagRelation = self._get_relation_model()

        events = []
        for tag in Tag.find_or_create_many(parsed, type, user_id):
            if TagRelation.attach(ref, tag.id) is not None:
                events.append(TagAttached(self, tag))

        self._dispatch(events)
        return events

    def tag_as_user(self, names: Any, user: Any, type: Optional[str] = None) -> List[TagAttached]:
        """以指定用户身份添加标签"""
        return self.tag(names, type, resolve_user_id(user))

    def attach_tag(self, tag: Any) -> Optional[TagAttached]:
        """关联一个已存在的标签对象

        传入的不是已保存的标签对象时不做任何操作。

        Returns:
            TagAttached 事件，未新建关联时返回 None
        """
        Tag = self._get_tag_model()
        if not isinstance(tag, Tag) or tag.id is None:
            return None

        ref = self._taggable_ref()
        if self._get_relation_model().attach(ref, tag.id) is None:
            return None

        event = TagAttached(self, tag)
        self._dispatch([event])
        return event

    # ==================== 实例方法：移除标签 ====================

    def untag(self, names: Any = None, type: Optional[str] = None, user_id: Any = None) -> List[TagDetached]:
        """移除标签

        names 为 None 时移除所有符合 type / user_id 过滤的标签；
        names 为空字符串或空集合时不做任何操作。
        type / user_id 给定时精确过滤，不混合全局标签。

        Returns:
            TagDetached 事件列表（每个实际删除的关联一个）

        Example:
            article.untag("Python")
            article.untag(type="framework")
            article.untag()
        """
        Tag = self._get_tag_model()
        TagRelation = self._get_relation_model()
        conditions = filter_conditions(Tag, type, user_id, self._settings())

        if names is None:
            ref = self._current_ref()
            if ref is None:
                return []
            tags = TagRelation.list_for(ref, *conditions)
        else:
            slugs = self._slugs(names)
            if not slugs:
                return []
            ref = self._current_ref()
            if ref is None:
                return []
            tags = TagRelation.list_for(ref, Tag.slug.in_(slugs), *conditions)

        return self._detach_tags(ref, tags)

    def untag_as_user(self, names: Any, user: Any, type: Optional[str] = None) -> List[TagDetached]:
        """以指定用户身份移除标签"""
        return self.untag(names, type, resolve_user_id(user))

    def detach_tag(self, tag: Any) -> Optional[TagDetached]:
        """解除一个标签对象的关联

        传入的不是已保存的标签对象时不做任何操作。

        Returns:
            TagDetached 事件，关联不存在时返回 None
        """
        Tag = self._get_tag_model()
        if not isinstance(tag, Tag) or tag.id is None:
            return None

        ref = self._current_ref()
        if ref is None:
            return None

        events = self._detach_tags(ref, [tag])
        return events[0] if events else None

    # ==================== 实例方法：重设与同步 ====================

    def retag(self, names: Any, type: Optional[str] = None, user_id: Any = None) -> list:
        """移除所有符合过滤的标签后重新添加

        Returns:
            TagDetached 与 TagAttached 事件列表
        """
        detached = self.untag(None, type, user_id)
        return detached + self.tag(names, type, user_id)

    def retag_as_user(self, names: Any, user: Any, type: Optional[str] = None) -> list:
        """以指定用户身份重设标签"""
        return self.retag(names, type, resolve_user_id(user))

    def sync_tags(self, names: Any, type: Optional[str] = None, user_id: Any = None) -> TagsSynced:
        """同步标签

        目标集合之外的当前标签（按 type / user_id 过滤）被移除，缺少的被添加。
        只产生一个 TagsSynced 事件，不产生逐个的添加/移除事件。

        Returns:
            TagsSynced 事件，tags 为同步后的目标标签

        Example:
            article.tag(["x", "z"])
            article.sync_tags(["x", "y"])   # 结果为 {x, y}
        """
        ref = self._taggable_ref()
        Tag = self._get_tag_model()
        TagRelation = self._get_relation_model()

        target_tags = []
        for tag in Tag.find_or_create_many(self.parse_tag_names(names), type, user_id):
            if tag not in target_tags:
                target_tags.append(tag)
        target_ids = [tag.id for tag in target_tags]

        conditions = filter_conditions(Tag, type, user_id, self._settings())
        current_tags = TagRelation.list_for(ref, *conditions)
        current_ids = {tag.id for tag in current_tags}

        removed = [tag for tag in current_tags if tag.id not in target_ids]
        for tag in removed:
            TagRelation.detach(ref, tag.id)
        for tag_id in target_ids:
            if tag_id not in current_ids:
                TagRelation.attach(ref, tag_id)

        self._delete_unused_tags(removed)

        event = TagsSynced(self, target_tags)
        self._dispatch([event])
        return event

    def sync_tags_as_user(self, names: Any, user: Any, type: Optional[str] = None) -> TagsSynced:
        """以指定用户身份同步标签"""
        return self.sync_tags(names, type, resolve_user_id(user))

    # ==================== 实例方法：查询标签 ====================

    def get_tag_objects(self) -> List["AbstractTag"]:
        """获取标签对象列表（按关联创建顺序）"""
        ref = self._current_ref()
        if ref is None:
            return []
        return self._get_relation_model().list_for(ref)

    def get_tags(self) -> List[str]:
        """获取标签名称列表

        Example:
            article.get_tags()  # ["Python", "Django", "Web"]
        """
        return [tag.name for tag in self.get_tag_objects()]

    def get_tag_count(self) -> int:
        """获取标签数量"""
        ref = self._current_ref()
        if ref is None:
            return 0
        return self._get_relation_model().tags_query_for(ref).count()

    def tags_with_type(self, type: str, user_id: Any = None) -> List["AbstractTag"]:
        """指定类型的标签，给定 user_id 时精确匹配该用户"""
        ref = self._current_ref()
        if ref is None:
            return []
        Tag = self._get_tag_model()
        conditions = [Tag.type == type]
        if user_id is not None:
            conditions.append(Tag.user_id == resolve_user_id(user_id))
        return self._get_relation_model().list_for(ref, *conditions)

    def user_tags(self, user_id: Any) -> List["AbstractTag"]:
        """指定用户的标签（不含全局标签）"""
        ref = self._current_ref()
        if ref is None:
            return []
        Tag = self._get_tag_model()
        return self._get_relation_model().list_for(ref, Tag.user_id == resolve_user_id(user_id))

    def global_tags(self) -> List["AbstractTag"]:
        """全局标签"""
        ref = self._current_ref()
        if ref is None:
            return []
        Tag = self._get_tag_model()
        return self._get_relation_model().list_for(ref, Tag.user_id.is_(None))

    # ==================== 实例方法：检查标签 ====================

    def _matched_slugs(self, slugs: List[str], *conditions) -> set:
        ref = self._current_ref()
        if ref is None or not slugs:
            return set()
        Tag = self._get_tag_model()
        rows = (
            self._get_relation_model()
            .tags_query_for(ref, Tag.slug.in_(slugs), *conditions)
            .with_entities(Tag.slug)
            .all()
        )
        return {r[0] for r in rows}

    def _scope_conditions(self, user_id: Any) -> list:
        condition = scope_condition(self._get_tag_model(), user_id, self._settings())
        return [condition] if condition is not None else []

    def has_tag(self, name: str, user_id: Any = None) -> bool:
        """是否有指定标签（按 slug 匹配，给定 user_id 时应用作用域规则）"""
        return bool(self._matched_slugs(self._slugs(name), *self._scope_conditions(user_id)))

    def has_any_tag(self, names: Any, user_id: Any = None) -> bool:
        """是否有任一指定标签"""
        return bool(self._matched_slugs(self._slugs(names), *self._scope_conditions(user_id)))

    def has_all_tags(self, names: Any, user_id: Any = None) -> bool:
        """是否有全部指定标签"""
        slugs = self._slugs(names)
        matched = self._matched_slugs(slugs, *self._scope_conditions(user_id))
        return set(slugs).issubset(matched)

    def has_user_tag(self, name: str, user: Any) -> bool:
        """是否有指定用户的该标签（精确匹配用户）"""
        Tag = self._get_tag_model()
        return bool(self._matched_slugs(self._slugs(name), Tag.user_id == resolve_user_id(user)))

    def has_global_tag(self, name: str) -> bool:
        """是否有该全局标签"""
        Tag = self._get_tag_model()
        return bool(self._matched_slugs(self._slugs(name), Tag.user_id.is_(None)))

    # ==================== 类方法：按标签查询 ====================

    @classmethod
    def _tag_exists(cls, *conditions):
        """实体存在满足条件的标签关联（相关子查询）"""
        Tag = cls._get_tag_model()
        TagRelation = cls._get_relation_model()
        return (
            select(TagRelation.id)
            .join(Tag, Tag.id == TagRelation.tag_id)
            .where(
                TagRelation.taggable_type == cls.__name__,
                TagRelation.taggable_id == cls.id,
                *conditions,
            )
            .exists()
        )

    @classmethod
    def with_any_tags(cls, names: Any, type: Optional[str] = None, user_id: Any = None) -> "Query":
        """有任一指定标签的实体（给定 user_id 时应用作用域规则）

        Example:
            Article.with_any_tags(["python", "java"]).order_by(Article.id).all()
        """
        slugs = cls._slugs(names)
        if not slugs:
            return cls.query.filter(false())
        Tag = cls._get_tag_model()
        conditions = [Tag.slug.in_(slugs)]
        if type is not None:
            conditions.append(Tag.type == type)
        condition = scope_condition(Tag, user_id, cls._settings())
        if condition is not None:
            conditions.append(condition)
        return cls.query.filter(cls._tag_exists(*conditions))

    @classmethod
    def with_all_tags(cls, names: Any, type: Optional[str] = None, user_id: Any = None) -> "Query":
        """有全部指定标签的实体（每个标签一个 EXISTS 条件）"""
        Tag = cls._get_tag_model()
        base = []
        if type is not None:
            base.append(Tag.type == type)
        condition = scope_condition(Tag, user_id, cls._settings())
        if condition is not None:
            base.append(condition)

        query = cls.query
        for slug in cls._slugs(names):
            query = query.filter(cls._tag_exists(Tag.slug == slug, *base))
        return query

    @classmethod
    def without_tags(cls, names: Any, type: Optional[str] = None, user_id: Any = None) -> "Query":
        """没有任何指定标签的实体（type / user_id 给定时精确过滤）"""
        slugs = cls._slugs(names)
        if not slugs:
            return cls.query
        Tag = cls._get_tag_model()
        conditions = [Tag.slug.in_(slugs), *filter_conditions(Tag, type, user_id, cls._settings())]
        return cls.query.filter(~cls._tag_exists(*conditions))

    @classmethod
    def tagged_with(cls, name: str, user_id: Any = None) -> "Query":
        """有指定标签的实体，给定 user_id 时精确匹配该用户的标签"""
        slugs = cls._slugs(name)
        if not slugs:
            return cls.query.filter(false())
        Tag = cls._get_tag_model()
        conditions = [Tag.slug == slugs[0], *filter_conditions(Tag, None, user_id, cls._settings())]
        return cls.query.filter(cls._tag_exists(*conditions))

    @classmethod
    def with_user_tags(cls, names: Any, user: Any) -> "Query":
        """有指定用户任一标签的实体（按作用域规则）"""
        return cls.with_any_tags(names, None, resolve_user_id(user))

    @classmethod
    def with_global_tags(cls, names: Any) -> "Query":
        """有任一指定全局标签的实体"""
        slugs = cls._slugs(names)
        if not slugs:
            return cls.query.filter(false())
        Tag = cls._get_tag_model()
        return cls.query.filter(cls._tag_exists(Tag.slug.in_(slugs), Tag.user_id.is_(None)))

    @classmethod
    def find_by_tag(cls, name: str, limit: int = None) -> List:
        """按单个标签查询

        Example:
            articles = Article.find_by_tag("Python")
        """
        query = cls.tagged_with(name).order_by(cls.id)
        if limit:
            query = query.limit(limit)
        return query.all()

    @classmethod
    def find_by_any_tags(cls, names: Any, limit: int = None) -> List:
        """按任一标签查询（OR）"""
        query = cls.with_any_tags(names).order_by(cls.id)
        if limit:
            query = query.limit(limit)
        return query.all()

    @classmethod
    def find_by_all_tags(cls, names: Any, limit: int = None) -> List:
        """按全部标签查询（AND）"""
        query = cls.with_all_tags(names).order_by(cls.id)
        if limit:
            query = query.limit(limit)
        return query.all()

    @classmethod
    def count_by_tag(cls, name: str) -> int:
        """按标签统计实体数量"""
        return cls.tagged_with(name).count()


@event.listens_for(TaggableMixin, "after_delete", propagate=True)
def _delete_entity_relations(mapper, connection, target):
    """实体删除后删除其所有标签关联"""
    relation_model = getattr(target.__class__, "__tag_relation_model__", None)
    if relation_model is None:
        return
    table = relation_model.__table__
    result = connection.execute(
        delete(table).where(
            table.c.taggable_type == target.__class__.__name__,
            table.c.taggable_id == target.id,
        )
    )
    if result.rowcount:
        logger.debug(f"{target.__class__.__name__} {target.id} 已删除，清理 {result.rowcount} 个标签关联")


__all__ = [
    "TaggableMixin",
]
