"""版本信息"""

__version__ = "0.3.0"
__author__ = "yafo-ai"
__description__ = "SQLAlchemy 模型通用标签扩展：用户/全局作用域、标签云、批量同步"
