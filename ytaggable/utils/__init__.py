"""通用工具"""

from .file_size import parse_file_size
from .importing import import_string
from .naming import to_snake_case

__all__ = [
    "parse_file_size",
    "import_string",
    "to_snake_case",
]
