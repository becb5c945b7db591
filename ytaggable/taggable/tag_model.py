"""标签模型定义

提供标签系统的抽象模型定义。

使用示例:
    from ytaggable.orm import CoreModel
    from ytaggable.taggable import AbstractTag, AbstractTagRelation

    # 抽象类放在 CoreModel 之前
    class Tag(AbstractTag, CoreModel):
        __tablename__ = "tags"

    class TagRelation(AbstractTagRelation, CoreModel):
        __tablename__ = "taggables"
        __tag_model__ = Tag

    Tag.__tag_relation_model__ = TagRelation

也可以直接使用 create_tag_models() 按配置生成这两个模型。
"""

from dataclasses import dataclass
from typing import Any, List, Optional, TYPE_CHECKING

from sqlalchemy import (
    ForeignKey, Index, Integer, String, UniqueConstraint,
    delete, event, exists, func,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, mapped_column, declared_attr

from ..config import TaggableSettings
from ..exceptions import Err, ErrorCode
from ..log import get_logger
from .aggregation import build_tag_cloud, rank_by_count
from .scoping import (
    effective_user_id,
    exact_type_condition,
    exact_user_condition,
    resolve_user_id,
    scope_condition,
)
from .slugger import resolve_slugger

if TYPE_CHECKING:
    from sqlalchemy.orm import Query

logger = get_logger()


@dataclass(frozen=True)
class TaggableRef:
    """被标记实体的多态引用

    taggable_type 为实体类名，区分 taggable_id 指向哪张表。
    """
    taggable_type: str
    taggable_id: int

    @classmethod
    def of(cls, entity: Any) -> "TaggableRef":
        """从实体实例构造引用"""
        return cls(entity.__class__.__name__, entity.id)


class AbstractTag:
    """标签抽象模型

    字段说明:
        - name: 标签名称（创建时的原始名称）
        - slug: 由 name 生成的标识，创建后不再重新计算
        - user_id: 所属用户ID，为空表示全局标签
        - type: 标签类型（可选）

    约束:
        (slug, user_id, type) 唯一，NULL 视为一个值
        （唯一索引建在 slug, coalesce(user_id, 0), coalesce(type, '') 上）

    类属性:
        - __tag_relation_model__: 关联模型类
        - __taggable_settings__: TaggableSettings，未设置时使用默认配置

    使用示例:
        tag = Tag.find_or_create("Machine Learning", user_id=1)
        Tag.popular(limit=10, user_id=1)
        Tag.tag_cloud()
    """

    __tag_relation_model__ = None
    __taggable_settings__ = None

    name: Mapped[str] = mapped_column(String(255), nullable=False, comment="标签名称")
    slug: Mapped[str] = mapped_column(String(255), nullable=False, index=True, comment="URL友好标识")
    user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True, comment="所属用户ID，空为全局标签")
    type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True, comment="标签类型")

    # ==================== 配置 ====================

    @classmethod
    def get_settings(cls) -> TaggableSettings:
        """获取标签配置"""
        settings = getattr(cls, "__taggable_settings__", None)
        if settings is None:
            settings = TaggableSettings()
            cls.__taggable_settings__ = settings
        return settings

    @classmethod
    def get_relation_model(cls):
        """获取关联模型类"""
        relation_model = getattr(cls, "__tag_relation_model__", None)
        if relation_model is None:
            raise Err.config(
                f"{cls.__name__} 必须设置 __tag_relation_model__ 属性",
                code=ErrorCode.TAG_MODEL_NOT_CONFIGURED,
            )
        return relation_model

    @classmethod
    def make_slug(cls, name: Any) -> str:
        """按模型配置的 slugger 生成 slug（slugger 按配置对象缓存）"""
        settings = cls.get_settings()
        cached = cls.__dict__.get("_slugger_cache")
        if cached is None or cached[0] is not settings:
            cached = (settings, resolve_slugger(settings.slugger))
            cls._slugger_cache = cached
        return cached[1](name) or ""

    # ==================== 查找或创建 ====================

    @classmethod
    def _validate_name(cls, name: Any, user_id: Optional[int]) -> tuple:
        """校验标签名称，返回 (name, slug)

        Raises:
            ValidationException: 名称为空、超长、无法生成 slug，或不允许全局标签
        """
        settings = cls.get_settings()
        rules = settings.rules

        if name is not None and not isinstance(name, str):
            name = str(name)
        name = (name or "").strip()

        if not name:
            message = "标签名称不能为空" if rules.required else "标签名称为空，无法生成标签"
            raise Err.invalid(message, code=ErrorCode.INVALID_TAG_NAME, field="name")

        if len(name) > rules.max_length:
            raise Err.invalid(
                f"标签名称过长（最大 {rules.max_length} 个字符）",
                code=ErrorCode.TAG_NAME_TOO_LONG,
                details=[f"当前长度: {len(name)}"],
                field="name",
            )

        slug = cls.make_slug(name)
        if not slug:
            raise Err.invalid(
                f"无法为标签名称生成 slug: {name!r}",
                code=ErrorCode.INVALID_TAG_NAME,
                field="name",
            )

        scope = settings.user_scope
        if user_id is None and scope.enabled and not scope.allow_global_tags:
            raise Err.invalid("不允许创建全局标签", code=ErrorCode.GLOBAL_TAGS_DISABLED)

        return name, slug

    @classmethod
    def _find_by_scope(cls, slug: str, type: Optional[str], user_id: Optional[int]):
        """按 (slug, user_id, type) 精确查找，None 只匹配 NULL"""
        return cls.query.filter(
            cls.slug == slug,
            exact_user_condition(cls, user_id),
            exact_type_condition(cls, type),
        ).first()

    @classmethod
    def find_or_create(cls, name: str, type: Optional[str] = None, user_id: Any = None):
        """查找或创建标签

        并发创建同一标签时，插入在 SAVEPOINT 中进行，唯一约束冲突后重新查询返回已存在的行。

        Args:
            name: 标签名称
            type: 标签类型
            user_id: 用户ID或带 id 属性的对象，None 表示全局标签

        Returns:
            标签对象

        Raises:
            ValidationException: 名称校验失败
        """
        user_id = effective_user_id(user_id, cls.get_settings())
        name, slug = cls._validate_name(name, user_id)

        tag = cls._find_by_scope(slug, type, user_id)
        if tag is not None:
            return tag

        session = cls.query.session
        try:
            with session.begin_nested():
                tag = cls(name=name, slug=slug, user_id=user_id, type=type)
                session.add(tag)
                session.flush()
        except IntegrityError:
            tag = cls._find_by_scope(slug, type, user_id)
            if tag is None:
                raise
            logger.debug(f"标签创建冲突，使用已存在的标签: slug={slug}, user_id={user_id}, type={type}")
            return tag

        logger.debug(f"创建标签: id={tag.id}, slug={slug}, user_id={user_id}, type={type}")
        return tag

    @classmethod
    def find_or_create_for_user(cls, name: str, user: Any, type: Optional[str] = None):
        """为指定用户查找或创建标签"""
        return cls.find_or_create(name, type, resolve_user_id(user))

    @classmethod
    def find_or_create_global(cls, name: str, type: Optional[str] = None):
        """查找或创建全局标签"""
        return cls.find_or_create(name, type, None)

    @classmethod
    def find_or_create_many(cls, names, type: Optional[str] = None, user_id: Any = None) -> list:
        """批量查找或创建标签（保持顺序，重复名称解析为同一标签）"""
        return [cls.find_or_create(name, type, user_id) for name in names]

    @classmethod
    def find_by_name(cls, name: str, type: Optional[str] = None, user_id: Any = None):
        """按名称查找标签（不创建），不存在返回 None"""
        slug = cls.make_slug(name)
        if not slug:
            return None
        user_id = effective_user_id(user_id, cls.get_settings())
        return cls._find_by_scope(slug, type, user_id)

    # ==================== 查询构造 ====================

    @classmethod
    def for_user(cls, user: Any, query: "Query" = None) -> "Query":
        """指定用户的标签"""
        query = query if query is not None else cls.query
        return query.filter(cls.user_id == resolve_user_id(user))

    @classmethod
    def global_only(cls, query: "Query" = None) -> "Query":
        """仅全局标签"""
        query = query if query is not None else cls.query
        return query.filter(cls.user_id.is_(None))

    @classmethod
    def for_user_with_global(cls, user: Any, query: "Query" = None) -> "Query":
        """指定用户的标签以及全局标签，未指定用户或关闭用户作用域时不过滤"""
        query = query if query is not None else cls.query
        condition = scope_condition(cls, user, cls.get_settings(), mix=True)
        if condition is not None:
            query = query.filter(condition)
        return query

    @classmethod
    def scoped(cls, user_id: Any = None, query: "Query" = None) -> "Query":
        """应用标准作用域规则"""
        query = query if query is not None else cls.query
        condition = scope_condition(cls, user_id, cls.get_settings())
        if condition is not None:
            query = query.filter(condition)
        return query

    @classmethod
    def with_type(cls, type: str, query: "Query" = None) -> "Query":
        """按类型过滤"""
        query = query if query is not None else cls.query
        return query.filter(cls.type == type)

    @classmethod
    def containing(cls, search: str, query: "Query" = None) -> "Query":
        """名称或 slug 包含指定字符串"""
        query = query if query is not None else cls.query
        return query.filter(
            cls.name.contains(search, autoescape=True) | cls.slug.contains(search, autoescape=True)
        )

    @classmethod
    def with_usage_count(cls) -> "Query":
        """返回 (tag, count) 行的查询，count 为关联数量"""
        relation_model = cls.get_relation_model()
        count = func.count(relation_model.id).label("taggables_count")
        return (
            cls.query.session.query(cls, count)
            .outerjoin(relation_model, relation_model.tag_id == cls.id)
            .group_by(cls.id)
        )

    @classmethod
    def unused_query(cls, user_id: Any = None, global_only: bool = False) -> "Query":
        """没有任何关联的标签

        Args:
            user_id: 精确匹配该用户的标签
            global_only: 仅全局标签（user_id IS NULL）
        """
        relation_model = cls.get_relation_model()
        query = cls.query.filter(~exists().where(relation_model.tag_id == cls.id))
        if global_only:
            query = query.filter(cls.user_id.is_(None))
        elif user_id is not None:
            query = query.filter(cls.user_id == resolve_user_id(user_id))
        return query.order_by(cls.id)

    # ==================== 热度与推荐 ====================

    @classmethod
    def _popular(cls, limit: int, condition=None) -> list:
        query = cls.with_usage_count()
        if condition is not None:
            query = query.filter(condition)
        count = func.count(cls.get_relation_model().id)
        rows = query.order_by(count.desc(), cls.id.asc()).limit(limit).all()
        return rank_by_count(rows)

    @classmethod
    def popular(cls, limit: int = 20, user_id: Any = None) -> List["AbstractTag"]:
        """热门标签

        按关联数量降序，数量相同时按 id 升序。每个标签附加 taggables_count 属性。
        """
        return cls._popular(limit, scope_condition(cls, user_id, cls.get_settings()))

    @classmethod
    def popular_user_tags(cls, limit: int, user_id: Any) -> List["AbstractTag"]:
        """指定用户的热门标签（不含全局标签）"""
        return cls._popular(limit, cls.user_id == resolve_user_id(user_id))

    @classmethod
    def popular_global_tags(cls, limit: int) -> List["AbstractTag"]:
        """热门全局标签"""
        return cls._popular(limit, cls.user_id.is_(None))

    @classmethod
    def tag_cloud(cls, user_id: Any = None) -> List["AbstractTag"]:
        """标签云

        每个标签附加 taggables_count 与 weight（0-10）属性，空结果返回空列表。
        """
        query = cls.with_usage_count()
        condition = scope_condition(cls, user_id, cls.get_settings())
        if condition is not None:
            query = query.filter(condition)
        return build_tag_cloud(query.order_by(cls.id).all())

    @classmethod
    def suggest(cls, partial: str, user_id: Any = None, limit: int = 10) -> List["AbstractTag"]:
        """根据输入片段推荐标签（名称或 slug 子串匹配）"""
        query = cls.scoped(user_id, cls.containing(partial))
        return query.order_by(cls.id).limit(limit).all()

    # ==================== 清理 ====================

    @classmethod
    def unused(cls, user_id: Any = None, global_only: bool = False) -> List["AbstractTag"]:
        """没有任何关联的标签列表"""
        return cls.unused_query(user_id, global_only).all()

    @classmethod
    def cleanup_unused(cls, user_id: Any = None, global_only: bool = False) -> int:
        """删除无关联的标签

        Returns:
            删除的数量
        """
        tags = cls.unused(user_id, global_only)
        for tag in tags:
            tag.delete()
        logger.info(f"清理无关联标签 {len(tags)} 个 (user_id={user_id}, global_only={global_only})")
        return len(tags)

    # ==================== 实例方法 ====================

    def is_global(self) -> bool:
        """是否全局标签"""
        return self.user_id is None

    def is_owned_by(self, user: Any) -> bool:
        """是否属于指定用户"""
        user_id = resolve_user_id(user)
        return user_id is not None and self.user_id == user_id

    def usage_count(self) -> int:
        """关联数量"""
        return self.get_relation_model().count_for(self.id)


class AbstractTagRelation:
    """标签关联抽象模型（多态关联）

    通过 taggable_type + taggable_id 实现多态关联，
    任意模型都可以使用同一套标签系统。

    字段说明:
        - tag_id: 标签ID（外键，标签删除时级联删除）
        - taggable_type: 被标记实体的类名（如 "Article"）
        - taggable_id: 被标记实体的ID

    约束与索引:
        - (tag_id, taggable_type, taggable_id) 唯一
        - (taggable_type, taggable_id): 快速查询某实体的所有标签

    类属性:
        - __tag_model__: 标签模型类（外键目标）
    """

    __tag_model__ = None

    @declared_attr
    def tag_id(cls) -> Mapped[int]:
        tag_model = getattr(cls, "__tag_model__", None)
        tag_table = tag_model.__tablename__ if tag_model is not None else getattr(cls, "__tag_table__", "tags")
        return mapped_column(
            Integer,
            ForeignKey(f"{tag_table}.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
            comment="标签ID",
        )

    taggable_type: Mapped[str] = mapped_column(String(100), nullable=False, comment="被标记实体类型")
    taggable_id: Mapped[int] = mapped_column(Integer, nullable=False, comment="被标记实体ID")

    @classmethod
    def get_tag_model(cls):
        """获取标签模型类"""
        tag_model = getattr(cls, "__tag_model__", None)
        if tag_model is None:
            raise Err.config(
                f"{cls.__name__} 必须设置 __tag_model__ 属性",
                code=ErrorCode.TAG_MODEL_NOT_CONFIGURED,
            )
        return tag_model

    @classmethod
    def _ref_filter(cls, ref: TaggableRef) -> tuple:
        return (cls.taggable_type == ref.taggable_type, cls.taggable_id == ref.taggable_id)

    @classmethod
    def attach(cls, ref: TaggableRef, tag_id: int):
        """创建关联

        插入前先检查是否已存在。

        Returns:
            新建的关联对象，已存在时返回 None
        """
        existing = cls.query.filter(cls.tag_id == tag_id, *cls._ref_filter(ref)).first()
        if existing is not None:
            return None

        relation = cls(tag_id=tag_id, taggable_type=ref.taggable_type, taggable_id=ref.taggable_id)
        relation.save()
        return relation

    @classmethod
    def detach(cls, ref: TaggableRef, tag_id: int) -> bool:
        """删除关联（幂等）

        Returns:
            是否删除了关联
        """
        relation = cls.query.filter(cls.tag_id == tag_id, *cls._ref_filter(ref)).first()
        if relation is None:
            return False
        relation.delete()
        return True

    @classmethod
    def tags_query_for(cls, ref: TaggableRef, *conditions) -> "Query":
        """实体当前标签的查询，conditions 为作用在标签模型上的附加条件"""
        tag_model = cls.get_tag_model()
        return (
            tag_model.query
            .join(cls, cls.tag_id == tag_model.id)
            .filter(*cls._ref_filter(ref), *conditions)
        )

    @classmethod
    def list_for(cls, ref: TaggableRef, *conditions) -> list:
        """实体当前的标签（按关联创建顺序）"""
        return cls.tags_query_for(ref, *conditions).order_by(cls.id).all()

    @classmethod
    def tag_ids_for(cls, ref: TaggableRef, *conditions) -> List[int]:
        """实体当前的标签ID"""
        tag_model = cls.get_tag_model()
        rows = cls.tags_query_for(ref, *conditions).with_entities(tag_model.id).order_by(cls.id).all()
        return [r[0] for r in rows]

    @classmethod
    def count_for(cls, tag_id: int) -> int:
        """标签的关联数量"""
        return cls.query.filter(cls.tag_id == tag_id).count()

    @classmethod
    def target_ids_for(cls, tag_id: int, taggable_type: str) -> List[int]:
        """标签关联的指定类型实体ID"""
        rows = cls.query.filter(
            cls.tag_id == tag_id,
            cls.taggable_type == taggable_type,
        ).with_entities(cls.taggable_id).order_by(cls.id).all()
        return [r[0] for r in rows]

    @classmethod
    def delete_for(cls, ref: TaggableRef) -> int:
        """删除实体的所有关联

        Returns:
            删除的数量
        """
        result = cls.query.session.execute(
            delete(cls).where(*cls._ref_filter(ref)).execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0


# ==================== 表级约束 ====================

def _has_index(table, name: str) -> bool:
    return any(ix.name == name for ix in table.indexes)


@event.listens_for(AbstractTag, "instrument_class", propagate=True)
def _add_tag_unique_index(mapper, class_):
    """标签表的 NULL 安全唯一索引：slug, coalesce(user_id, 0), coalesce(type, '')"""
    table = mapper.local_table
    if table is None:
        return
    name = f"uq_{table.name}_slug_scope"
    if _has_index(table, name):
        return
    Index(
        name,
        table.c.slug,
        func.coalesce(table.c.user_id, 0),
        func.coalesce(table.c.type, ""),
        unique=True,
    )


@event.listens_for(AbstractTagRelation, "instrument_class", propagate=True)
def _add_relation_constraints(mapper, class_):
    """关联表的唯一约束与实体索引"""
    table = mapper.local_table
    if table is None:
        return
    unique_name = f"uq_{table.name}_tag_target"
    if not any(getattr(c, "name", None) == unique_name for c in table.constraints):
        table.append_constraint(
            UniqueConstraint(table.c.tag_id, table.c.taggable_type, table.c.taggable_id, name=unique_name)
        )
    index_name = f"ix_{table.name}_target"
    if not _has_index(table, index_name):
        Index(index_name, table.c.taggable_type, table.c.taggable_id)


@event.listens_for(AbstractTag, "before_delete", propagate=True)
def _delete_tag_relations(mapper, connection, target):
    """删除标签前先删除其所有关联"""
    relation_model = getattr(target.__class__, "__tag_relation_model__", None)
    if relation_model is None:
        return
    result = connection.execute(
        delete(relation_model.__table__).where(relation_model.__table__.c.tag_id == target.id)
    )
    if result.rowcount:
        logger.debug(f"删除标签 {target.id} 的 {result.rowcount} 个关联")


__all__ = [
    "TaggableRef",
    "AbstractTag",
    "AbstractTagRelation",
]
