"""
远程层级后端：通过 HTTP JSON 接口浏览文件层级并检查权限。

接口（均为 GET，位于 {base_url}/api/ 下）：
- get_node / get_parent：节点记录；404 表示不存在
- get_non_empty_children：{"list": [节点记录, ...]}
- count_non_empty_children：{"count": n}
- has_capability：{"result": true/false}
定位参数为 contextid / component / filearea / itemid / filepath / filename，过滤器为 accepted_types。
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from localrepo.browser import FileBrowser, RecordNode
from localrepo.models import ExtensionFilter, NodeLocator

logger = logging.getLogger(__name__)


def _locator_params(locator: NodeLocator) -> dict[str, Any]:
    """定位 -> 查询参数（None 字段不发送）。"""
    return {k: v for k, v in locator.to_params().items() if v is not None}


def _filter_params(extensions: ExtensionFilter) -> dict[str, Any]:
    return {"accepted_types": extensions.to_request()}


class RemoteNode(RecordNode):
    """远程节点：父节点与子节点按需向服务端请求。"""

    def __init__(self, record: dict[str, Any], client: RemoteBrowser):
        super().__init__(record)
        self._client = client

    def get_parent(self) -> RemoteNode | None:
        return self._client.get_parent(self.locator)

    def get_non_empty_children(self, extensions: ExtensionFilter) -> list[RemoteNode]:
        return self._client.get_non_empty_children(self.locator, extensions)

    def count_non_empty_children(self, extensions: ExtensionFilter, limit: int = 1) -> int:
        return self._client.count_non_empty_children(self.locator, extensions, limit)


class RemoteBrowser(FileBrowser):
    """
    远程文件层级服务的客户端。

    测试示例： base_url="http://127.0.0.1:8280"
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        verify: bool = True,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        :param base_url: 服务器根地址，如 http://127.0.0.1:8280（不要带末尾 /api/）
        :param timeout: 请求超时秒数
        :param verify: 是否验证 HTTPS 证书
        :param transport: 自定义传输层（测试中传 httpx.MockTransport）
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.verify = verify
        self.transport = transport
        self._api_base = f"{self.base_url}/api"
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                verify=self.verify,
                follow_redirects=True,
                transport=self.transport,
            )
        return self._client

    def close(self) -> None:
        """关闭底层 HTTP 客户端。"""
        if self._client and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> RemoteBrowser:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _get(self, endpoint: str, params: dict[str, Any]) -> httpx.Response:
        logger.debug("GET %s %s", endpoint, params)
        return self._get_client().get(f"{self._api_base}/{endpoint}", params=params)

    def _get_json(self, endpoint: str, params: dict[str, Any]) -> Any:
        r = self._get(endpoint, params)
        r.raise_for_status()
        return r.json()

    def _get_optional_node(self, endpoint: str, locator: NodeLocator) -> RemoteNode | None:
        r = self._get(endpoint, _locator_params(locator))
        if r.status_code == 404:
            return None
        r.raise_for_status()
        record = r.json()
        return RemoteNode(record, self) if record else None

    # ------------------------- 层级 -------------------------

    def get_node(self, locator: NodeLocator) -> RemoteNode | None:
        """按定位取节点；服务端返回 404 时为 None。"""
        return self._get_optional_node("get_node", locator)

    def get_parent(self, locator: NodeLocator) -> RemoteNode | None:
        """取父节点；根节点返回 None。"""
        return self._get_optional_node("get_parent", locator)

    def get_non_empty_children(self, locator: NodeLocator, extensions: ExtensionFilter) -> list[RemoteNode]:
        data = self._get_json(
            "get_non_empty_children", {**_locator_params(locator), **_filter_params(extensions)}
        )
        return [RemoteNode(record, self) for record in data.get("list", [])]

    def count_non_empty_children(self, locator: NodeLocator, extensions: ExtensionFilter, limit: int = 1) -> int:
        data = self._get_json(
            "count_non_empty_children",
            {**_locator_params(locator), **_filter_params(extensions), "limit": limit},
        )
        return int(data.get("count", 0))

    # ------------------------- 权限 -------------------------

    def has_capability(self, capability: str, context_id: int) -> bool:
        data = self._get_json("has_capability", {"capability": capability, "contextid": context_id})
        return bool(data.get("result"))
