"""
权限与配置协作者：列表请求中需要的「当前查看者」信息显式传入，不读全局状态。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol

from localrepo.models import SYSTEM_CONTEXT_ID


class Permissions(Protocol):
    """权限检查：has_capability(权限名, 上下文 id)。"""

    def has_capability(self, capability: str, context_id: int) -> bool: ...


class StaticPermissions:
    """固定权限集合：在所有上下文中授予 capabilities。"""

    def __init__(self, capabilities: Iterable[str] = ()):
        self.capabilities = frozenset(capabilities)

    def has_capability(self, capability: str, context_id: int) -> bool:
        return capability in self.capabilities


@dataclass(frozen=True)
class RequestContext:
    """
    一次列表请求的外部上下文。

    :param permissions: 当前查看者的权限检查
    :param show_my_course_categories: 配置项「显示我的课程分类」
    :param default_context_id: 令牌缺失或无效时使用的上下文（如当前课程）；None 时用系统上下文
    """

    permissions: Permissions
    show_my_course_categories: bool = False
    default_context_id: int | None = None

    def has_system_capability(self, capability: str) -> bool:
        return self.permissions.has_capability(capability, SYSTEM_CONTEXT_ID)
