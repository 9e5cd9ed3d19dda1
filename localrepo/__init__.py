"""文件选择器「本地文件」仓库：权限感知的层级列表、剪枝与不透明令牌。"""

from localrepo.browser import BackendError, FileBrowser, HierarchyNode, MemoryBrowser
from localrepo.client import RemoteBrowser
from localrepo.codec import TokenDecodeError, decode_token, encode_token
from localrepo.listing import LocalRepository
from localrepo.models import (
    ContextLevel,
    ExtensionFilter,
    ListingEntry,
    ListingResponse,
    NodeKind,
    NodeLocator,
    PathEntry,
    entry_is_directory,
    entry_is_missing,
    entry_size,
    entry_token,
)
from localrepo.permissions import RequestContext, StaticPermissions

__all__ = [
    "LocalRepository",
    "RequestContext",
    "StaticPermissions",
    "FileBrowser",
    "HierarchyNode",
    "MemoryBrowser",
    "RemoteBrowser",
    "BackendError",
    "TokenDecodeError",
    "encode_token",
    "decode_token",
    "NodeLocator",
    "NodeKind",
    "ContextLevel",
    "ExtensionFilter",
    "ListingEntry",
    "ListingResponse",
    "PathEntry",
    "entry_is_directory",
    "entry_is_missing",
    "entry_size",
    "entry_token",
]
