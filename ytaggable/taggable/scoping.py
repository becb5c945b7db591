"""用户/全局作用域规则

所有按用户过滤标签的地方共用这里的规则：

    - 给定 user 且 mix_user_and_global 为真：user_id = user OR user_id IS NULL
    - 给定 user 且 mix_user_and_global 为假：user_id = user
    - 未给定 user：不过滤（显式的"仅全局"操作除外）

精确过滤（exact_*）用于 untag / sync / user_tags 等场景，不做全局标签混合。
"""

from typing import Any, Optional

from sqlalchemy import or_


def resolve_user_id(user: Any) -> Optional[int]:
    """把 int 或带 id 属性的对象统一为用户ID"""
    if user is None:
        return None
    if hasattr(user, "id"):
        return user.id
    return user


def effective_user_id(user: Any, settings: Any) -> Optional[int]:
    """考虑 user_scope.enabled 后的用户ID

    关闭用户作用域时忽略 user 参数，所有标签都视为全局标签。
    """
    if not settings.user_scope.enabled:
        return None
    return resolve_user_id(user)


def scope_condition(tag_model: Any, user: Any, settings: Any, mix: Optional[bool] = None):
    """标准作用域条件

    Args:
        tag_model: 标签模型类
        user: 用户ID或用户对象，None 表示不过滤
        settings: TaggableSettings
        mix: 覆盖 settings.user_scope.mix_user_and_global

    Returns:
        SQL 条件表达式，不需要过滤时返回 None
    """
    user_id = effective_user_id(user, settings)
    if user_id is None:
        return None
    if mix is None:
        mix = settings.user_scope.mix_user_and_global
    if mix:
        return or_(tag_model.user_id == user_id, tag_model.user_id.is_(None))
    return tag_model.user_id == user_id


def exact_user_condition(tag_model: Any, user_id: Optional[int]):
    """精确用户条件，None 匹配全局标签（user_id IS NULL）"""
    if user_id is None:
        return tag_model.user_id.is_(None)
    return tag_model.user_id == user_id


def exact_type_condition(tag_model: Any, type: Optional[str]):
    """精确类型条件，None 只匹配 type IS NULL 的标签"""
    if type is None:
        return tag_model.type.is_(None)
    return tag_model.type == type


def filter_conditions(tag_model: Any, type: Optional[str] = None, user: Any = None, settings: Any = None) -> list:
    """可选过滤条件（给定才过滤，不做全局混合）

    untag / sync / without_tags 等操作使用：type 给定时按类型过滤，
    user 给定时精确匹配该用户。
    """
    conditions = []
    if type is not None:
        conditions.append(tag_model.type == type)
    user_id = effective_user_id(user, settings) if settings is not None else resolve_user_id(user)
    if user_id is not None:
        conditions.append(tag_model.user_id == user_id)
    return conditions
