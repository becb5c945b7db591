"""slug 生成

把标签名称转换为 URL 友好的标识，用于标签去重与查找。

默认实现只保留 ASCII 字母与数字：
    "Laravel Framework"  -> "laravel-framework"
    "Café au lait"       -> "cafe-au-lait"
    "me@home"            -> "me-at-home"

中文等非拉丁名称在默认实现下会得到空 slug，此时可以配置 unicode_slugger：
    settings = TaggableSettings(slugger="ytaggable.taggable.slugger:unicode_slugger")
"""

import re
import unicodedata
from typing import Any, Callable

from ..exceptions import Err, ErrorCode
from ..utils import import_string

Slugger = Callable[[str], str]

_SEPARATOR = "-"


def default_slugger(name: Any, allow_unicode: bool = False) -> str:
    """默认 slug 生成函数

    Args:
        name: 标签名称，非字符串输入返回空字符串
        allow_unicode: 是否保留非 ASCII 的文字字符

    Returns:
        slug 字符串，无法生成时为空字符串
    """
    if not isinstance(name, str):
        return ""

    if allow_unicode:
        value = unicodedata.normalize("NFKC", name)
    else:
        value = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")

    value = value.replace("@", f"{_SEPARATOR}at{_SEPARATOR}").lower()

    if allow_unicode:
        value = re.sub(r"[\W_]+", _SEPARATOR, value)
    else:
        value = re.sub(r"[^a-z0-9]+", _SEPARATOR, value)

    return value.strip(_SEPARATOR)


def unicode_slugger(name: Any) -> str:
    """保留 unicode 文字的 slug 生成函数（如 "机器 学习" -> "机器-学习"）"""
    return default_slugger(name, allow_unicode=True)


def resolve_slugger(value: Any = None) -> Slugger:
    """解析 slugger 配置

    Args:
        value: None、可调用对象，或导入路径字符串（"pkg.mod:func" 或 "pkg.mod.func"）

    Returns:
        slug 生成函数

    Raises:
        ConfigurationException: 导入路径无效或目标不可调用
    """
    if value is None or value == "":
        return default_slugger
    if callable(value):
        return value
    if not isinstance(value, str):
        raise Err.config(f"无效的 slugger 配置: {value!r}", code=ErrorCode.INVALID_SLUGGER)

    try:
        func = import_string(value)
    except ImportError as e:
        raise Err.config(
            f"无法导入 slugger: {value}",
            code=ErrorCode.INVALID_SLUGGER,
            details=[str(e)],
        ) from e

    if not callable(func):
        raise Err.config(f"slugger 不可调用: {value}", code=ErrorCode.INVALID_SLUGGER)
    return func


def make_slug(name: Any, settings: Any = None) -> str:
    """按配置生成 slug

    Args:
        name: 标签名称
        settings: TaggableSettings，可为 None（使用默认实现）
    """
    slugger = resolve_slugger(getattr(settings, "slugger", None))
    return slugger(name) or ""
