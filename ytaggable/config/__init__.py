"""配置模块

提供配置管理功能：
- TaggableSettings: 标签库配置，支持 YAML + 环境变量
- 子配置类: TableSettings, NameRuleSettings, UserScopeSettings 等
- ConfigLoader: YAML 配置加载器

快速开始:
    from ytaggable.config import TaggableSettings, load_yaml_config

    settings = load_yaml_config("config/taggable.yaml", TaggableSettings)

配置优先级: 环境变量 > YAML 文件 > 默认值
"""

from .settings import (
    TaggableSettings,
    TableSettings,
    NameRuleSettings,
    UserScopeSettings,
    CacheSettings,
    DatabaseSettings,
    LoggingSettings,
)

from .loader import (
    ConfigLoader,
    load_yaml_config,
)

__all__ = [
    # Settings Classes
    "TaggableSettings",
    "TableSettings",
    "NameRuleSettings",
    "UserScopeSettings",
    "CacheSettings",
    "DatabaseSettings",
    "LoggingSettings",

    # Config Loader
    "ConfigLoader",
    "load_yaml_config",
]
