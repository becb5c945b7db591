"""按路径导入对象"""
import importlib
from typing import Any


def import_string(path: str) -> Any:
    """导入 "pkg.module:attr" 或 "pkg.module.attr" 指向的对象

    Raises:
        ImportError: 路径格式无效、模块或属性不存在
    """
    if ":" in path:
        module_path, _, attr = path.partition(":")
    else:
        module_path, _, attr = path.rpartition(".")

    if not module_path or not attr:
        raise ImportError(f"无效的导入路径: {path}")

    module = importlib.import_module(module_path)
    try:
        return getattr(module, attr)
    except AttributeError as e:
        raise ImportError(f"模块 {module_path} 中不存在 {attr}") from e
