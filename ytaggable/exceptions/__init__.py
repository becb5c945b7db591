"""异常处理模块

使用示例:
    from ytaggable.exceptions import Err, ErrorCode

    raise Err.invalid("标签名称不能为空", code=ErrorCode.INVALID_TAG_NAME)
"""

from .exceptions import (
    # ===== 推荐使用 =====
    Err,                            # 异常快捷创建类
    ErrorCode,                      # 错误代码枚举
    ErrorCodeType,

    # ===== 高级用法 =====
    BusinessException,              # 异常基类
    ValidationException,
    ConfigurationException,
)

__all__ = [
    "Err",
    "ErrorCode",
    "ErrorCodeType",
    "BusinessException",
    "ValidationException",
    "ConfigurationException",
]
