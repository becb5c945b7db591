"""业务异常类定义

定义标签库使用的异常类体系。

错误分类:
    - 验证错误：标签名为空、超长、无法生成 slug 等，直接抛给调用方
    - 不存在：detach / 查询路径返回 None 或 False，不抛异常，因此没有 NotFound 类异常
    - 创建竞争：唯一约束冲突在存储层内部恢复，不会抛出
    - 配置错误：模型未配置、slugger 或标签模型路径无法导入
    - 存储错误：SQLAlchemy 异常原样传播
"""

import copy
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class ErrorCode(str, Enum):
    """错误代码枚举

    继承自 str，可以直接作为字符串使用。

    使用示例:
        from ytaggable.exceptions import ErrorCode, ValidationException

        raise ValidationException("标签名称不能为空", code=ErrorCode.INVALID_TAG_NAME)
    """

    # ==================== 通用错误 ====================
    BUSINESS_ERROR = "BUSINESS_ERROR"

    # ==================== 配置相关 ====================
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    TAG_MODEL_NOT_CONFIGURED = "TAG_MODEL_NOT_CONFIGURED"
    INVALID_SLUGGER = "INVALID_SLUGGER"

    # ==================== 验证相关 ====================
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_TAG_NAME = "INVALID_TAG_NAME"
    TAG_NAME_TOO_LONG = "TAG_NAME_TOO_LONG"
    GLOBAL_TAGS_DISABLED = "GLOBAL_TAGS_DISABLED"
    ENTITY_NOT_SAVED = "ENTITY_NOT_SAVED"


# 类型别名，支持枚举和字符串
ErrorCodeType = Union[str, ErrorCode]


class BusinessException(Exception):
    """业务异常基类

    所有标签库异常都继承此类。

    属性:
        message: 错误消息（面向用户）
        code: 错误代码（用于程序判断，支持 ErrorCode 枚举或字符串）
        details: 详细错误信息列表
        extra: 额外的上下文信息

    使用示例:
        raise BusinessException(
            message="标签同步失败",
            code=ErrorCode.BUSINESS_ERROR,
            extra={"taggable_type": "Article", "taggable_id": 12}
        )
    """

    def __init__(
        self,
        message: str,
        code: ErrorCodeType = ErrorCode.BUSINESS_ERROR,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        self.message = message
        self.code = code
        self.details = details or []
        self.extra = extra
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式

        Returns:
            包含异常信息的字典
        """
        return {
            "message": self.message,
            "code": self.code,
            # 返回深拷贝，避免调用方修改返回值反向污染异常对象内部状态
            "details": copy.deepcopy(self.details),
            "extra": copy.deepcopy(self.extra)
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r})"
        )


class ValidationException(BusinessException):
    """数据验证异常

    使用示例:
        raise ValidationException(
            "标签名称过长",
            code=ErrorCode.TAG_NAME_TOO_LONG,
            details=["最大长度: 255"],
            field="name"
        )
    """

    def __init__(
        self,
        message: str = "数据验证失败",
        code: ErrorCodeType = ErrorCode.VALIDATION_ERROR,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        super().__init__(message=message, code=code, details=details, **extra)


class ConfigurationException(BusinessException):
    """配置异常

    模型未设置 __tag_model__ / __tag_relation_model__，或 slugger 路径无法导入时抛出。
    """

    def __init__(
        self,
        message: str = "配置错误",
        code: ErrorCodeType = ErrorCode.CONFIGURATION_ERROR,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        super().__init__(message=message, code=code, details=details, **extra)


class Err:
    """异常快捷创建类

    使用示例:
        from ytaggable.exceptions import Err

        raise Err.invalid("标签名称不能为空", code=ErrorCode.INVALID_TAG_NAME)
        raise Err.config("Article 必须设置 __tag_model__ 属性")
    """

    @staticmethod
    def invalid(message: str = "数据验证失败", **kwargs) -> ValidationException:
        """数据验证失败"""
        return ValidationException(message, **kwargs)

    @staticmethod
    def config(message: str = "配置错误", **kwargs) -> ConfigurationException:
        """配置错误"""
        return ConfigurationException(message, **kwargs)

