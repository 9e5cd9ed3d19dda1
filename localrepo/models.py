"""
本地文件仓库列表的数据模型（与文件选择器前端一致）。

列表项 ListingEntry 的字段：
- 公共：title=显示名, datemodified=修改时间, datecreated=创建时间, thumbnail=缩略图
- 文件夹：path=令牌（可再次请求列表）, children=恒为 []（按需加载）
- 文件：source=令牌, size=大小(字节), author, license, isref=是否外部引用,
  originalmissing=源文件是否丢失, icon；图片另有 realthumbnail / realicon / image_width / image_height
面包屑 PathEntry：path=令牌, name=显示名。
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Iterable

# 系统上下文的 id（全局根）
SYSTEM_CONTEXT_ID = 1

# 文件状态哨兵值：底层存储中的源文件已丢失
STATUS_MISSING_BACKING = 666

# 「管理课程」权限，在系统上下文中检查
CAP_MANAGE_COURSES = "course:update"

# 选择器可以取回的文件方式
FILE_INTERNAL = 1
FILE_REFERENCE = 4


class ContextLevel(enum.IntEnum):
    """权限上下文层级。"""

    SYSTEM = 10
    USER = 30
    COURSECAT = 40
    COURSE = 50
    MODULE = 70
    BLOCK = 80


class NodeKind(str, enum.Enum):
    """层级节点的种类，剪枝规则按它分派。"""

    SYSTEM = "system"
    CATEGORY = "category"
    COURSE = "course"
    USER = "user"
    COURSE_LEGACY = "course_legacy"
    MODULE = "module"
    AREA = "area"
    FILE = "file"


@dataclass(frozen=True)
class NodeLocator:
    """节点定位：除 context_id 外每个字段都可为 None。"""

    context_id: int
    component: str | None = None
    area: str | None = None
    item_id: int | None = None
    path: str | None = None
    name: str | None = None

    @classmethod
    def system(cls) -> NodeLocator:
        return cls(SYSTEM_CONTEXT_ID)

    def context_root(self) -> NodeLocator:
        """同一上下文的根节点定位（其余字段置空）。"""
        return NodeLocator(self.context_id)

    def is_area_root(self) -> bool:
        """是否为某个存储区自身的顶层节点（而不是其中的子路径）。"""
        return (
            bool(self.area)
            and (self.path == "/" or not self.path)
            and (self.name == "." or not self.name)
        )

    def to_params(self) -> dict[str, Any]:
        """转换为令牌 / 查询参数使用的键名。"""
        return {
            "contextid": self.context_id,
            "component": self.component,
            "filearea": self.area,
            "itemid": self.item_id,
            "filepath": self.path,
            "filename": self.name,
        }


class ExtensionFilter:
    """
    扩展名过滤器：接受全部，或一组小写、带点的扩展名（如 ".png"）。

    一次列表请求内不可变。
    """

    __slots__ = ("_extensions",)

    def __init__(self, extensions: Iterable[str] | None = None):
        # None 表示接受全部
        self._extensions = None if extensions is None else frozenset(extensions)

    @classmethod
    def accept_all(cls) -> ExtensionFilter:
        return cls(None)

    @classmethod
    def from_request(cls, value: str | Iterable[str] | None) -> ExtensionFilter:
        """由请求参数构造：'*'、空值或含 '*' 的序列都视为接受全部，其余转小写。"""
        if not value or value == "*":
            return cls.accept_all()
        if isinstance(value, str):
            value = [value]
        values = [str(v) for v in value]
        if "*" in values:
            return cls.accept_all()
        return cls(v.lower() for v in values)

    @property
    def accepts_all(self) -> bool:
        return self._extensions is None

    @property
    def extensions(self) -> frozenset[str]:
        return self._extensions or frozenset()

    def matches(self, filename: str) -> bool:
        """文件名的扩展名（最后一个点之后，转小写）是否被接受。"""
        if self._extensions is None:
            return True
        _, dot, ext = filename.rpartition(".")
        if not dot:
            return False
        return "." + ext.lower() in self._extensions

    def to_request(self) -> str | list[str]:
        """还原为请求参数形式：'*' 或排序后的扩展名列表。"""
        if self._extensions is None:
            return "*"
        return sorted(self._extensions)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ExtensionFilter):
            return NotImplemented
        return self._extensions == other._extensions

    def __hash__(self) -> int:
        return hash(self._extensions)

    def __repr__(self) -> str:
        return f"ExtensionFilter({self.to_request()!r})"


# ListingEntry：get_listing 返回的 list 中每一项
ListingEntry = dict[str, Any]

# PathEntry：面包屑中的一项
PathEntry = dict[str, Any]

# get_listing 响应：dynload, nosearch, nologin, list, path
ListingResponse = dict[str, Any]


def entry_is_directory(entry: ListingEntry) -> bool:
    """是否为文件夹（文件夹带 path，文件带 source）。"""
    return "path" in entry and "source" not in entry


def entry_token(entry: ListingEntry) -> str:
    """条目令牌：文件夹取 path，文件取 source。"""
    return entry.get("path") or entry.get("source") or ""


def entry_size(entry: ListingEntry) -> int:
    """条目大小（字节），文件夹为 0。"""
    return int(entry.get("size") or 0)


def entry_is_missing(entry: ListingEntry) -> bool:
    """源文件是否丢失。"""
    return bool(entry.get("originalmissing"))
