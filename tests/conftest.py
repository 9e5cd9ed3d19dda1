"""
pytest 配置与共享 fixture。

示例层级见 tests.config；student / manager 两种查看者各有一个仓库 fixture。
"""

from __future__ import annotations

import pytest

from localrepo import LocalRepository, MemoryBrowser, RequestContext, StaticPermissions
from localrepo.models import CAP_MANAGE_COURSES

from tests.config import sample_tree


@pytest.fixture
def browser() -> MemoryBrowser:
    """示例层级的内存后端。"""
    return MemoryBrowser.from_dict(sample_tree())


@pytest.fixture
def student_context() -> RequestContext:
    """无管理课程权限、未开启「显示我的课程分类」。"""
    return RequestContext(permissions=StaticPermissions())


@pytest.fixture
def manager_context() -> RequestContext:
    """系统上下文中有管理课程权限。"""
    return RequestContext(permissions=StaticPermissions([CAP_MANAGE_COURSES]))


@pytest.fixture
def repo(browser: MemoryBrowser, student_context: RequestContext) -> LocalRepository:
    return LocalRepository(browser, student_context)


@pytest.fixture
def manager_repo(browser: MemoryBrowser, manager_context: RequestContext) -> LocalRepository:
    return LocalRepository(browser, manager_context)
