"""配置加载器模块

提供从 YAML 文件加载配置的功能。

使用示例:
    from ytaggable.config import ConfigLoader, TaggableSettings, load_yaml_config

    config = ConfigLoader.load("config/taggable.yaml")
    settings = load_yaml_config("config/taggable.yaml", TaggableSettings)
"""

import os
from typing import Any, Dict, Optional, Type, TypeVar

import yaml


T = TypeVar("T")


def _resolve_path(config_path: str, base_dir: Optional[str] = None) -> str:
    if os.path.isabs(config_path):
        return config_path
    if base_dir:
        return os.path.join(base_dir, config_path)
    return os.path.abspath(config_path)


class ConfigLoader:
    """配置加载器

    从 YAML 文件加载配置，按绝对路径缓存。

    使用示例:
        config = ConfigLoader.load("config/taggable.yaml")
        prefix = config.get("cache", {}).get("key_prefix")

        config = ConfigLoader.reload("config/taggable.yaml")
        ConfigLoader.clear_cache()
    """

    _cache: Dict[str, Dict[str, Any]] = {}

    @classmethod
    def load(
        cls,
        config_path: str,
        base_dir: Optional[str] = None,
        use_cache: bool = True
    ) -> Dict[str, Any]:
        """加载配置文件

        Args:
            config_path: 配置文件路径（相对或绝对路径）
            base_dir: 基础目录，用于解析相对路径
            use_cache: 是否使用缓存

        Returns:
            配置字典

        Raises:
            FileNotFoundError: 配置文件不存在
            yaml.YAMLError: YAML 解析错误
        """
        abs_path = _resolve_path(config_path, base_dir)

        if use_cache and abs_path in cls._cache:
            return cls._cache[abs_path]

        if not os.path.exists(abs_path):
            raise FileNotFoundError(f"配置文件不存在: {abs_path}")

        with open(abs_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}

        if use_cache:
            cls._cache[abs_path] = config

        return config

    @classmethod
    def reload(cls, config_path: str, base_dir: Optional[str] = None) -> Dict[str, Any]:
        """重新加载配置文件（忽略缓存）"""
        cls._cache.pop(_resolve_path(config_path, base_dir), None)
        return cls.load(config_path, base_dir, use_cache=True)

    @classmethod
    def clear_cache(cls):
        """清除所有配置缓存"""
        cls._cache.clear()


def load_yaml_config(
    config_path: str,
    settings_class: Type[T],
    base_dir: Optional[str] = None,
    **overrides
) -> T:
    """加载 YAML 配置并创建 Pydantic Settings 实例

    环境变量优先级高于 YAML：YAML 中已由环境变量提供的顶层键会被丢弃，
    交给 pydantic-settings 从环境读取。

    Args:
        config_path: 配置文件路径
        settings_class: Pydantic Settings 类
        base_dir: 基础目录
        **overrides: 覆盖配置的参数（优先级最高）

    使用示例:
        settings = load_yaml_config(
            "config/taggable.yaml",
            TaggableSettings,
            delete_unused_tags=True,
        )
    """
    # 复制一份，避免修改缓存中的字典
    config = dict(ConfigLoader.load(config_path, base_dir))

    env_prefix = getattr(settings_class, "model_config", {}).get("env_prefix", "") or ""
    if env_prefix:
        for key in list(config.keys()):
            env_key = f"{env_prefix}{key}".upper()
            if env_key in os.environ or any(k.startswith(f"{env_key}__") for k in os.environ):
                config.pop(key)

    config.update(overrides)
    return settings_class(**config)
