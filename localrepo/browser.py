"""
文件层级后端（浏览器）接口与内存实现。

后端只读：按 NodeLocator 取节点、取父节点、取非空子节点、计数非空子节点。
节点记录（dict / JSON）的字段：
  kind, title, context_id, context_level, component, area, item_id, path, name,
  created, modified, size, author, license, is_ref, status, image{width,height}, url, children
"""

from __future__ import annotations

import abc
import json
import logging
from pathlib import Path
from typing import Any, Iterable

from localrepo.models import (
    SYSTEM_CONTEXT_ID,
    ContextLevel,
    ExtensionFilter,
    NodeKind,
    NodeLocator,
)

logger = logging.getLogger(__name__)

# 目录记录中可由子节点继承的字段
_INHERITED_FIELDS = ("context_id", "context_level", "component", "area", "item_id")


class BackendError(RuntimeError):
    """后端不可用或数据损坏（基础设施故障，不在列表引擎内恢复）。"""


def normalize_key(locator: NodeLocator) -> tuple[Any, ...]:
    """查找用的键：空组件/存储区视为 None，根路径统一为 '/'，根文件名统一为 '.'。"""
    path = locator.path if locator.path not in (None, "", "/") else "/"
    name = locator.name if locator.name not in (None, "", ".") else "."
    return (
        locator.context_id,
        locator.component or None,
        locator.area or None,
        locator.item_id,
        path,
        name,
    )


class HierarchyNode(abc.ABC):
    """后端提供的只读层级节点。"""

    @property
    @abc.abstractmethod
    def locator(self) -> NodeLocator: ...

    @property
    @abc.abstractmethod
    def kind(self) -> NodeKind: ...

    @property
    @abc.abstractmethod
    def context_level(self) -> ContextLevel: ...

    @abc.abstractmethod
    def get_parent(self) -> HierarchyNode | None: ...

    @abc.abstractmethod
    def get_non_empty_children(self, extensions: ExtensionFilter) -> list[HierarchyNode]: ...

    @abc.abstractmethod
    def count_non_empty_children(self, extensions: ExtensionFilter, limit: int = 1) -> int:
        """非空子节点数量；数到 limit 即停止，故返回 min(实际数量, limit)。"""

    def is_directory(self) -> bool:
        return self.kind is not NodeKind.FILE

    @property
    @abc.abstractmethod
    def visible_name(self) -> str: ...

    @property
    @abc.abstractmethod
    def time_created(self) -> int | None: ...

    @property
    @abc.abstractmethod
    def time_modified(self) -> int | None: ...

    # 以下仅对文件有意义

    @property
    def filesize(self) -> int:
        return 0

    @property
    def author(self) -> str | None:
        return None

    @property
    def license(self) -> str | None:
        return None

    @property
    def is_external_file(self) -> bool:
        return False

    @property
    def status(self) -> int:
        return 0

    @property
    def image_info(self) -> dict[str, int] | None:
        return None

    @property
    def url(self) -> str | None:
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.kind.value} {self.visible_name!r}>"


class FileBrowser(abc.ABC):
    """层级后端 + 权限协作者。"""

    @abc.abstractmethod
    def get_node(self, locator: NodeLocator) -> HierarchyNode | None:
        """按定位取节点；不存在或无权访问时返回 None。"""

    @abc.abstractmethod
    def has_capability(self, capability: str, context_id: int) -> bool: ...


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


def record_locator(record: dict[str, Any]) -> NodeLocator:
    """从节点记录读出 NodeLocator。"""
    if record.get("context_id") is None:
        raise BackendError(f"node record without context_id: {record.get('title')!r}")
    return NodeLocator(
        context_id=int(record["context_id"]),
        component=record.get("component"),
        area=record.get("area"),
        item_id=_optional_int(record.get("item_id")),
        path=record.get("path"),
        name=record.get("name"),
    )


def is_record_non_empty(record: dict[str, Any], extensions: ExtensionFilter) -> bool:
    """文件：扩展名匹配；目录：存在匹配的后代文件。"""
    if record.get("kind") == NodeKind.FILE.value:
        return extensions.matches(record.get("title") or record.get("name") or "")
    return any(is_record_non_empty(child, extensions) for child in record.get("children") or [])


class RecordNode(HierarchyNode):
    """以节点记录（dict）为数据的节点；遍历由子类实现。"""

    def __init__(self, record: dict[str, Any]):
        self.record = record
        try:
            self._kind = NodeKind(record.get("kind") or NodeKind.AREA.value)
            self._level = ContextLevel(int(record.get("context_level") or ContextLevel.SYSTEM))
        except ValueError as e:
            raise BackendError(f"malformed node record: {e}") from e
        self._locator = record_locator(record)

    @property
    def locator(self) -> NodeLocator:
        return self._locator

    @property
    def kind(self) -> NodeKind:
        return self._kind

    @property
    def context_level(self) -> ContextLevel:
        return self._level

    @property
    def visible_name(self) -> str:
        return self.record.get("title") or self.record.get("name") or ""

    @property
    def time_created(self) -> int | None:
        return _optional_int(self.record.get("created"))

    @property
    def time_modified(self) -> int | None:
        return _optional_int(self.record.get("modified"))

    @property
    def filesize(self) -> int:
        return int(self.record.get("size") or 0)

    @property
    def author(self) -> str | None:
        return self.record.get("author")

    @property
    def license(self) -> str | None:
        return self.record.get("license")

    @property
    def is_external_file(self) -> bool:
        return bool(self.record.get("is_ref"))

    @property
    def status(self) -> int:
        return int(self.record.get("status") or 0)

    @property
    def image_info(self) -> dict[str, int] | None:
        image = self.record.get("image")
        if not image:
            return None
        return {"width": int(image["width"]), "height": int(image["height"])}

    @property
    def url(self) -> str | None:
        return self.record.get("url")


# ------------------------- 内存后端 -------------------------


class MemoryNode(RecordNode):
    """内存树中的节点，持有父节点引用。"""

    def __init__(self, record: dict[str, Any], parent: MemoryNode | None = None):
        super().__init__(record)
        self.parent = parent
        self.children: list[MemoryNode] = []

    def get_parent(self) -> MemoryNode | None:
        return self.parent

    def get_non_empty_children(self, extensions: ExtensionFilter) -> list[MemoryNode]:
        return [c for c in self.children if is_record_non_empty(c.record, extensions)]

    def count_non_empty_children(self, extensions: ExtensionFilter, limit: int = 1) -> int:
        count = 0
        for child in self.children:
            if is_record_non_empty(child.record, extensions):
                count += 1
                if count >= limit:
                    break
        return count


class MemoryBrowser(FileBrowser):
    """
    由嵌套 dict / JSON 构建的内存后端，用于本地树文件与测试。

    树格式：{"capabilities": {"<contextid>": ["course:update", ...]}, "root": {...节点记录}}
    子记录缺省的 context_id / context_level / component / area / item_id 继承自父记录。
    """

    def __init__(self, root: dict[str, Any], capabilities: dict[Any, Iterable[str]] | None = None):
        self._index: dict[tuple[Any, ...], MemoryNode] = {}
        self.root = self._build(root, None)
        self._capabilities = {
            int(ctx): frozenset(caps) for ctx, caps in (capabilities or {}).items()
        }
        logger.debug("memory browser built with %d nodes", len(self._index))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MemoryBrowser:
        if not isinstance(data, dict) or not isinstance(data.get("root"), dict):
            raise BackendError("tree data must be an object with a 'root' record")
        return cls(data["root"], data.get("capabilities"))

    @classmethod
    def from_file(cls, path: str | Path) -> MemoryBrowser:
        """从 JSON 树文件加载。"""
        p = Path(path)
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise BackendError(f"cannot load tree {p}: {e}") from e
        return cls.from_dict(data)

    def _build(self, record: dict[str, Any], parent: MemoryNode | None) -> MemoryNode:
        record = dict(record)
        if parent is not None:
            for field in _INHERITED_FIELDS:
                if field not in record:
                    record[field] = parent.record.get(field)
        node = MemoryNode(record, parent)
        key = normalize_key(node.locator)
        # 同一定位出现多次时保留第一个
        self._index.setdefault(key, node)
        node.children = [self._build(child, node) for child in record.get("children") or []]
        return node

    def get_node(self, locator: NodeLocator) -> MemoryNode | None:
        node = self._index.get(normalize_key(locator))
        if node is None:
            logger.debug("no node for %s", locator)
        return node

    def has_capability(self, capability: str, context_id: int) -> bool:
        granted = self._capabilities.get(context_id, frozenset())
        system = self._capabilities.get(SYSTEM_CONTEXT_ID, frozenset())
        return capability in granted or capability in system
