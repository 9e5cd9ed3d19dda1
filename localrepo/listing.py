"""
本地文件仓库的列表引擎。

由令牌定位当前节点，列出其非空子节点，并隐藏结构上无意义的节点：
- 模块中唯一的非空存储区（其内容直接显示在模块下）
- 查看者无权看到的课程分类（其内容上移一层）
同样的跳过规则用于构建面包屑。
"""

from __future__ import annotations

import logging
from typing import Any

from localrepo.browser import BackendError, FileBrowser, HierarchyNode
from localrepo.codec import encode_token, try_decode_token
from localrepo.models import (
    CAP_MANAGE_COURSES,
    FILE_INTERNAL,
    FILE_REFERENCE,
    STATUS_MISSING_BACKING,
    SYSTEM_CONTEXT_ID,
    ContextLevel,
    ExtensionFilter,
    ListingEntry,
    ListingResponse,
    NodeKind,
    NodeLocator,
    PathEntry,
)
from localrepo.permissions import RequestContext
from localrepo.render import IconRenderer

logger = logging.getLogger(__name__)

# 这些节点是导航锚点，永不跳过
_ANCHOR_KINDS = frozenset(
    {NodeKind.COURSE, NodeKind.USER, NodeKind.COURSE_LEGACY, NodeKind.MODULE, NodeKind.SYSTEM}
)

# 统计模块非空子节点时的上限：只需区分「至多 1 个」与「多于 1 个」
MODULE_CHILDREN_LIMIT = 2

THUMBNAIL_SIZE = 90
ICON_SIZE = 24

# can_skip 的 parent 未给出时的标记（None 表示已知没有父节点）
_UNRESOLVED: Any = object()


class LocalRepository:
    """
    文件选择器的「本地文件」仓库。

    :param browser: 层级后端
    :param context: 当前请求的查看者权限与配置
    :param renderer: 图标地址生成，默认 IconRenderer()
    """

    supported_return_types = FILE_INTERNAL | FILE_REFERENCE
    has_files = True
    contains_private_data = False

    def __init__(
        self,
        browser: FileBrowser,
        context: RequestContext,
        renderer: IconRenderer | None = None,
    ):
        self.browser = browser
        self.context = context
        self.renderer = renderer or IconRenderer()

    # ------------------------- 列表 -------------------------

    def get_listing(self, encoded_path: str | None = "", accepted_types: Any = "*") -> ListingResponse:
        """
        列出令牌对应节点的内容。

        :param encoded_path: 令牌；空或无效时从默认上下文 / 系统根开始
        :param accepted_types: '*'、单个扩展名或扩展名序列，如 ['.gif', '.jpg']
        :return: dynload / nosearch / nologin 标志，list（条目）与 path（面包屑）
        """
        extensions = ExtensionFilter.from_request(accepted_types)
        node = self.resolve(encoded_path)
        return {
            "dynload": True,
            "nosearch": True,
            "nologin": True,
            "list": self.get_non_empty_children(node, extensions),
            "path": self.build_path(node, extensions),
        }

    def resolve(self, encoded_path: str | None) -> HierarchyNode:
        """
        令牌 -> 当前节点。找不到时退回同一上下文的根，再退回系统根，不向调用方报错。

        :raises BackendError: 连系统根都取不到（后端故障）
        """
        locator = try_decode_token(encoded_path)
        if locator is None:
            context_id = self.context.default_context_id
            locator = NodeLocator(context_id if context_id is not None else SYSTEM_CONTEXT_ID)

        node = self.browser.get_node(locator)
        if node is None:
            logger.debug("node %s not found, using context root", locator)
            node = self.browser.get_node(locator.context_root())
        if node is None:
            logger.debug("context %s not found, using system root", locator.context_id)
            node = self.browser.get_node(NodeLocator.system())
        if node is None:
            raise BackendError("backend returned no system root")
        return node

    def get_non_empty_children(self, node: HierarchyNode, extensions: ExtensionFilter) -> list[ListingEntry]:
        """非空子节点；可跳过的子节点由它自己的非空子节点（递归）替换，保持后端顺序。"""
        entries: list[ListingEntry] = []
        for child in node.get_non_empty_children(extensions):
            if self.can_skip(child, extensions, node):
                entries.extend(self.get_non_empty_children(child, extensions))
            else:
                entries.append(self.get_node(child))
        return entries

    def build_path(self, node: HierarchyNode, extensions: ExtensionFilter) -> list[PathEntry]:
        """面包屑：从根到当前节点，省略可跳过的祖先；当前节点总是保留。"""
        chain: list[HierarchyNode] = []
        level: HierarchyNode | None = node
        while level is not None:
            chain.append(level)
            level = level.get_parent()
        chain.reverse()

        path: list[PathEntry] = []
        parent: HierarchyNode | None = None
        for level in chain:
            if level is node or not self.can_skip(level, extensions, parent):
                path.append(self.get_node_path(level))
            parent = level
        return path

    # ------------------------- 跳过规则 -------------------------

    def can_skip(
        self,
        node: HierarchyNode,
        extensions: ExtensionFilter,
        parent: HierarchyNode | None = _UNRESOLVED,
    ) -> bool:
        """
        该目录是否可在层级中跳过（由其子节点替代）。

        1. 文件不跳过
        2. 课程分类：查看者在系统上下文无「管理课程」权限且未开启「显示我的课程分类」时跳过
        3. 课程、用户、旧版课程文件、模块、系统根不跳过
        4. 模块中存储区自身的顶层节点：模块的非空子节点至多 1 个时跳过

        :param parent: 已知的父节点可直接传入，避免再次向后端查询
        """
        if not node.is_directory():
            return False
        kind = node.kind
        if kind is NodeKind.CATEGORY:
            return (
                not self.context.show_my_course_categories
                and not self.context.has_system_capability(CAP_MANAGE_COURSES)
            )
        if kind in _ANCHOR_KINDS:
            return False

        locator = node.locator
        if not locator.is_area_root() or node.context_level is not ContextLevel.MODULE:
            return False
        if parent is _UNRESOLVED:
            parent = node.get_parent()
        if parent is None or parent.kind is not NodeKind.MODULE:
            return False
        return parent.count_non_empty_children(extensions, MODULE_CHILDREN_LIMIT) <= 1

    # ------------------------- 节点投影 -------------------------

    def get_node(self, node: HierarchyNode) -> ListingEntry:
        """节点 -> 列表项。"""
        token = encode_token(node.locator)
        entry: ListingEntry = {
            "title": node.visible_name,
            "datemodified": node.time_modified,
            "datecreated": node.time_created,
        }
        if node.is_directory():
            entry["path"] = token
            entry["thumbnail"] = self.renderer.folder_icon(THUMBNAIL_SIZE)
            entry["children"] = []
            return entry

        name = node.visible_name
        entry.update(
            {
                "size": node.filesize,
                "author": node.author,
                "license": node.license,
                "isref": node.is_external_file,
                "originalmissing": node.status == STATUS_MISSING_BACKING,
                "source": token,
                "thumbnail": self.renderer.file_icon(name, THUMBNAIL_SIZE),
                "icon": self.renderer.file_icon(name, ICON_SIZE),
            }
        )
        image = node.image_info
        if image:
            file_url = node.url
            if file_url:
                entry["realthumbnail"] = self.renderer.preview_url(file_url, "thumb", node.time_modified)
                entry["realicon"] = self.renderer.preview_url(file_url, "tinyicon", node.time_modified)
            entry["image_width"] = image["width"]
            entry["image_height"] = image["height"]
        return entry

    def get_node_path(self, node: HierarchyNode) -> PathEntry:
        """节点 -> 面包屑项。"""
        return {"path": encode_token(node.locator), "name": node.visible_name}
