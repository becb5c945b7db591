"""
日志工具模块

库内部统一通过 get_logger() 取得 "ytaggable.*" 日志器，
只有命令行工具或宿主应用才调用 setup_root_logger() 配置输出。
"""

import inspect
import logging
import logging.handlers
import os
import time
from typing import Any, Optional

DEFAULT_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(filename)s:%(lineno)d - %(message)s"

_ROOT_NAME = "ytaggable"


class MicrosecondFormatter(logging.Formatter):
    """支持微秒精度的日志格式化器"""

    def formatTime(self, record, datefmt=None):
        ct = self.converter(record.created)
        s = time.strftime(datefmt or "%Y-%m-%d %H:%M:%S", ct)
        return "%s.%06d" % (s, (record.created - int(record.created)) * 1000000)


def create_formatter(log_format: str = None, use_microseconds: bool = True) -> logging.Formatter:
    fmt = log_format or DEFAULT_LOG_FORMAT
    if use_microseconds:
        return MicrosecondFormatter(fmt=fmt)
    return logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S")


def _create_file_handler(log_file: str, file_handler_options: Optional[dict]) -> logging.Handler:
    log_dir = os.path.dirname(log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    if not file_handler_options:
        return logging.FileHandler(log_file, encoding="utf-8")
    return logging.handlers.RotatingFileHandler(
        filename=log_file,
        maxBytes=file_handler_options.get("maxBytes", 10 * 1024 * 1024),
        backupCount=file_handler_options.get("backupCount", 5),
        encoding=file_handler_options.get("encoding", "utf-8"),
    )


def setup_logger(
    name: str = None,
    level: str = "INFO",
    log_file: str = None,
    log_format: str = None,
    console: bool = True,
    use_microseconds: bool = True,
    propagate: bool = True,
    file_handler_options: dict = None
) -> logging.Logger:
    """设置并返回配置好的日志记录器（会替换已有处理器）

    Args:
        name: 日志记录器名称，默认为root logger
        level: 日志级别
        log_file: 日志文件路径，不指定则不写入文件
        log_format: 日志格式
        console: 是否输出到控制台
        use_microseconds: 是否使用微秒精度时间戳
        propagate: 是否传播到父日志器
        file_handler_options: 提供后使用 RotatingFileHandler（maxBytes / backupCount / encoding）

    使用示例:
        logger = setup_logger("ytaggable", level="DEBUG", log_file="logs/tags.log")
    """
    _logger = logging.getLogger(name) if name else logging.getLogger()
    _logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    _logger.propagate = propagate
    _logger.handlers.clear()

    formatter = create_formatter(log_format, use_microseconds=use_microseconds)
    handlers = []
    if console:
        handlers.append(logging.StreamHandler())
    if log_file:
        handlers.append(_create_file_handler(log_file, file_handler_options))

    for handler in handlers:
        handler.setFormatter(formatter)
        _logger.addHandler(handler)
    return _logger


def setup_root_logger(level: str = "INFO", log_file: str = None, config: Any = None) -> logging.Logger:
    """设置根日志记录器

    Args:
        level: 日志级别（提供 config 时忽略）
        log_file: 日志文件路径（提供 config 时忽略）
        config: LoggingSettings，文件输出按 file_max_bytes 滚动

    使用示例:
        setup_root_logger(config=settings.logging)
    """
    console = True
    file_handler_options = None
    if config is not None:
        level = config.level
        log_file = config.file_path or None
        console = config.enable_console
        file_handler_options = {
            "maxBytes": config.parsed_file_max_bytes,
            "backupCount": config.file_backup_count,
            "encoding": config.file_encoding,
        }

    return setup_logger(
        level=level,
        log_file=log_file,
        console=console,
        propagate=False,
        file_handler_options=file_handler_options,
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """获取日志记录器

    无参数时使用调用方模块的 __name__；不带点号的简写自动加 'ytaggable.' 前缀。

        get_logger()                       # ytaggable/taggable/tag_model.py -> "ytaggable.taggable.tag_model"
        get_logger("cli")                  # -> "ytaggable.cli"
        get_logger("sqlalchemy.engine")    # 含点号，不加前缀
    """
    if name is None:
        frame = inspect.currentframe()
        if frame is not None and frame.f_back is not None:
            name = frame.f_back.f_globals.get("__name__", _ROOT_NAME)
        else:
            name = _ROOT_NAME
    elif name != _ROOT_NAME and "." not in name:
        name = f"{_ROOT_NAME}.{name}"

    return logging.getLogger(name)
