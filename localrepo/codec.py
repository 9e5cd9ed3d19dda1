"""
令牌编解码：NodeLocator <-> 不透明字符串。

格式：带版本号的 JSON 记录，UTF-8 编码后做 URL 安全的 base64（去掉末尾 =），
可直接放进查询参数。解码时逐字段按各自语法清洗，不做通用反序列化。
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import math
import re
from typing import Any

from localrepo.models import NodeLocator

logger = logging.getLogger(__name__)

TOKEN_VERSION = 1


class TokenDecodeError(ValueError):
    """令牌格式错误（无法还原出 NodeLocator）。"""


_INT_PREFIX = re.compile(r"^\s*([+-]?\d+)")
_COMPONENT_RE = re.compile(r"^[a-z][a-z0-9]*(_[a-z][a-z0-9_]*)?[a-z0-9]+$")
_AREA_RE = re.compile(r"^[a-z](?:[a-z0-9_](?!__))*[a-z0-9]+$")
# 控制字符与 & < > " ` | ' :（\ 先替换为 /）
_PATH_BAD_CHARS = re.compile(r"[\x00-\x1f\x7f&<>\"`|':]")
# 文件名另外不允许 /
_FILE_BAD_CHARS = re.compile(r"[\x00-\x1f\x7f&<>\"`|':\\/]")


def clean_int(value: Any) -> int:
    """整数：字符串取开头的整数部分，无法解析时为 0。"""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        # NaN / ±Infinity 无法转为整数
        return int(value) if math.isfinite(value) else 0
    if isinstance(value, str):
        m = _INT_PREFIX.match(value)
        return int(m.group(1)) if m else 0
    return 0


def clean_component(value: Any) -> str:
    """组件名，如 mod_resource、user、course；不合法时为 ''。"""
    if not isinstance(value, str) or not _COMPONENT_RE.match(value):
        return ""
    if "__" in value:
        return ""
    if value.startswith("mod_") and value.count("_") != 1:
        return ""
    return value


def clean_area(value: Any) -> str:
    """存储区名，如 content、private；不合法时为 ''。"""
    if not isinstance(value, str) or not _AREA_RE.match(value) or "__" in value:
        return ""
    return value


def clean_path(value: Any) -> str:
    """目录路径，如 /sub/dir/；去掉危险字符与 .. 段。"""
    if not isinstance(value, str):
        return ""
    value = _PATH_BAD_CHARS.sub("", value.replace("\\", "/"))
    value = re.sub(r"\.\.+", "", value)
    value = re.sub(r"//+", "/", value)
    return re.sub(r"/(\./)+", "/", value)


def clean_filename(value: Any) -> str:
    """文件名；'.' 保留为目录自身的标记，'..' 视为空。"""
    if not isinstance(value, str):
        return ""
    value = _FILE_BAD_CHARS.sub("", value)
    if value == "..":
        return ""
    return value


def encode_token(locator: NodeLocator) -> str:
    """把 NodeLocator 编码为可放进 URL 的不透明令牌。"""
    record = {"v": TOKEN_VERSION, **locator.to_params()}
    raw = json.dumps(record, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _reject_constant(name: str) -> Any:
    raise TokenDecodeError(f"non-finite number in token: {name}")


def _optional(params: dict[str, Any], key: str, cleaner: Any) -> Any:
    # 缺失或 null 保持 None，不套用清洗后的默认值
    value = params.get(key)
    return None if value is None else cleaner(value)


def decode_token(token: str) -> NodeLocator:
    """
    解码令牌为 NodeLocator。

    :raises TokenDecodeError: 令牌不是合法的记录，或缺少 contextid
    """
    if not isinstance(token, str) or not token.strip():
        raise TokenDecodeError("empty token")
    token = token.strip()
    try:
        raw = base64.urlsafe_b64decode(token + "=" * (-len(token) % 4))
        params = json.loads(raw.decode("utf-8"), parse_constant=_reject_constant)
    except TokenDecodeError:
        raise
    except (binascii.Error, ValueError, RecursionError) as e:
        # json.JSONDecodeError 与 UnicodeDecodeError 都是 ValueError；嵌套过深时为 RecursionError
        raise TokenDecodeError(f"malformed token: {e}") from e
    if not isinstance(params, dict):
        raise TokenDecodeError("token payload is not a record")
    if params.get("v") != TOKEN_VERSION:
        raise TokenDecodeError(f"unsupported token version: {params.get('v')!r}")
    if params.get("contextid") is None:
        raise TokenDecodeError("token has no contextid")
    context_id = clean_int(params["contextid"])
    if context_id < 0:
        raise TokenDecodeError(f"invalid contextid: {context_id}")
    return NodeLocator(
        context_id=context_id,
        component=_optional(params, "component", clean_component),
        area=_optional(params, "filearea", clean_area),
        item_id=_optional(params, "itemid", clean_int),
        path=_optional(params, "filepath", clean_path),
        name=_optional(params, "filename", clean_filename),
    )


def try_decode_token(token: str | None) -> NodeLocator | None:
    """解码失败时返回 None（记录 debug 日志），供列表请求降级使用。"""
    if not token:
        return None
    try:
        return decode_token(token)
    except TokenDecodeError as e:
        logger.debug("token %r ignored: %s", token, e)
        return None
