"""标签清理命令行工具

查找并删除没有任何关联的标签。

使用示例:
    ytaggable-cleanup --database-url sqlite:///./app.db --tag-model myapp.models:Tag
    ytaggable-cleanup --database-url sqlite:///./app.db --user 12 --force
    ytaggable-cleanup --config config/taggable.yaml --global

退出码:
    0  成功（包括取消删除）
    1  配置或数据库错误
    2  参数错误
"""

import argparse
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from .config import TaggableSettings, load_yaml_config
from .exceptions import BusinessException, Err, ErrorCode
from .log import get_logger, setup_root_logger
from .orm import db_session_scope, init_database, db_manager
from .taggable import AbstractTag, create_tag_models
from .utils import import_string

logger = get_logger()

TABLE_HEADERS = ("ID", "Name", "User ID", "Type")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ytaggable-cleanup",
        description="Delete tags that are not attached to any record.",
    )
    parser.add_argument("--database-url", help="Database URL (defaults to database.url in the config file)")
    parser.add_argument("--config", help="YAML settings file")
    parser.add_argument("--tag-model", help="Tag model import path, e.g. myapp.models:Tag")
    scope = parser.add_mutually_exclusive_group()
    scope.add_argument("--user", type=int, metavar="ID", help="Only clean up tags owned by this user")
    scope.add_argument("--global", dest="global_only", action="store_true", help="Only clean up global tags")
    parser.add_argument("--force", action="store_true", help="Delete without confirmation")
    return parser


def load_tag_model(path: str, settings: TaggableSettings):
    """按导入路径加载标签模型，路径为空时按配置创建默认模型"""
    if not path:
        return create_tag_models(settings).Tag
    try:
        tag_model = import_string(path)
    except ImportError as e:
        raise Err.config(f"无法导入标签模型: {path}", code=ErrorCode.TAG_MODEL_NOT_CONFIGURED, details=[str(e)]) from e
    if not (isinstance(tag_model, type) and issubclass(tag_model, AbstractTag)):
        raise Err.config(f"{path} 不是标签模型", code=ErrorCode.TAG_MODEL_NOT_CONFIGURED)
    return tag_model


def format_table(rows: Sequence[Sequence[str]], headers: Sequence[str] = TABLE_HEADERS) -> str:
    widths = [len(h) for h in headers]
    for row in rows:
        widths = [max(w, len(cell)) for w, cell in zip(widths, row)]

    def line(cells):
        return "| " + " | ".join(cell.ljust(w) for cell, w in zip(cells, widths)) + " |"

    border = "+-" + "-+-".join("-" * w for w in widths) + "-+"
    return "\n".join([border, line(headers), border, *(line(r) for r in rows), border])


def tag_rows(tags) -> List[List[str]]:
    return [
        [
            str(tag.id),
            tag.name,
            "Global" if tag.user_id is None else str(tag.user_id),
            tag.type if tag.type is not None else "None",
        ]
        for tag in tags
    ]


def confirm(prompt: str) -> bool:
    answer = input(f"{prompt} [y/N] ")
    return answer.strip().lower() in ("y", "yes")


def run_cleanup(tag_model, user_id: Optional[int] = None, global_only: bool = False, force: bool = False) -> int:
    """执行清理

    Returns:
        删除的标签数量（取消时为 0）
    """
    if global_only:
        print("Looking for unused global tags...")
    elif user_id is not None:
        print(f"Looking for unused tags for user {user_id}...")
    else:
        print("Looking for unused tags...")

    with db_session_scope():
        tags = tag_model.unused(user_id=user_id, global_only=global_only)
        print(f"Found {len(tags)} unused tags.")
        if not tags:
            return 0

        if not force:
            print(format_table(tag_rows(tags)))
            if not confirm("Do you want to delete these tags?"):
                print("Cleanup cancelled.")
                return 0

        deleted = tag_model.cleanup_unused(user_id=user_id, global_only=global_only)

    print(f"Successfully deleted {deleted} unused tags.")
    return deleted


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.config:
            settings = load_yaml_config(args.config, TaggableSettings)
        else:
            settings = TaggableSettings()
    except (OSError, ValueError) as e:
        parser.error(f"cannot load config {args.config}: {e}")

    database_url = args.database_url or settings.database.url
    if not database_url:
        parser.error("--database-url is required when the config has no database.url")

    setup_root_logger(config=settings.logging)

    try:
        tag_model = load_tag_model(args.tag_model or settings.tag_model, settings)
        init_database(database_url, echo=settings.database.echo)
        run_cleanup(tag_model, user_id=args.user, global_only=args.global_only, force=args.force)
    except BusinessException as e:
        logger.error(f"{e.code}: {e.message}")
        return 1
    except SQLAlchemyError as e:
        logger.error(f"数据库操作失败: {e}")
        return 1
    finally:
        db_manager.dispose()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
