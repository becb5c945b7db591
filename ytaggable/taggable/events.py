"""标签事件

标签操作在存储变更 flush 之后派发事件，同时把事件列表返回给调用方。

使用示例:
    from ytaggable.taggable import tag_events, TagAttached

    @tag_events.on_tag_attached
    def on_attached(event: TagAttached):
        print(f"{event.entity} 添加了标签 {event.tag.name}")

    events = article.tag("python, orm")   # [TagAttached, TagAttached]
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Type

from ..log import get_logger

logger = get_logger()


@dataclass
class TagEvent:
    """标签事件基类"""

    entity: Any


@dataclass
class TagAttached(TagEvent):
    """实体添加了一个标签"""

    tag: Any = None


@dataclass
class TagDetached(TagEvent):
    """实体移除了一个标签"""

    tag: Any = None


@dataclass
class TagsSynced(TagEvent):
    """实体的标签集合已同步，tags 为同步后的目标标签列表"""

    tags: List[Any] = field(default_factory=list)


class TagEventDispatcher:
    """标签事件派发器

    监听器抛出的异常只记录日志，不影响存储变更和其他监听器。
    """

    def __init__(self):
        self._event_listeners: Dict[Type[TagEvent], List[Callable]] = {
            TagAttached: [],
            TagDetached: [],
            TagsSynced: [],
        }

    def subscribe(self, event_cls: Type[TagEvent], func: Callable) -> Callable:
        """注册事件监听器"""
        self._event_listeners.setdefault(event_cls, []).append(func)
        return func

    def unsubscribe(self, event_cls: Type[TagEvent], func: Callable) -> None:
        """移除事件监听器（不存在时忽略）"""
        listeners = self._event_listeners.get(event_cls, [])
        if func in listeners:
            listeners.remove(func)

    def on_tag_attached(self, func: Callable) -> Callable:
        """注册 TagAttached 监听器"""
        return self.subscribe(TagAttached, func)

    def on_tag_detached(self, func: Callable) -> Callable:
        """注册 TagDetached 监听器"""
        return self.subscribe(TagDetached, func)

    def on_tags_synced(self, func: Callable) -> Callable:
        """注册 TagsSynced 监听器"""
        return self.subscribe(TagsSynced, func)

    def clear(self) -> None:
        """清除所有监听器"""
        for listeners in self._event_listeners.values():
            listeners.clear()

    def dispatch(self, events: Iterable[TagEvent]) -> None:
        """依次派发事件"""
        for event in events:
            for listener in list(self._event_listeners.get(type(event), [])):
                try:
                    listener(event)
                except Exception as e:
                    logger.error(f"Error in tag event listener {getattr(listener, '__name__', listener)}: {e}")


# 默认派发器
tag_events = TagEventDispatcher()
