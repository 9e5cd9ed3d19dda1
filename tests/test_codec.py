"""
令牌编解码与逐字段清洗的单元测试。
"""

from __future__ import annotations

import base64
import json
import re

import pytest

from localrepo.codec import (
    TokenDecodeError,
    clean_area,
    clean_component,
    clean_filename,
    clean_int,
    clean_path,
    decode_token,
    encode_token,
    try_decode_token,
)
from localrepo.models import NodeLocator

from tests.config import HANDOUTS_CTX, SYSTEM_CTX, USER_CTX


def _raw_token(payload: object) -> str:
    """直接编码任意记录（绕过 encode_token），模拟客户端伪造的令牌。"""
    raw = json.dumps(payload).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _raw_bytes(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


@pytest.mark.parametrize(
    "locator",
    [
        NodeLocator(SYSTEM_CTX),
        NodeLocator(HANDOUTS_CTX, "mod_resource", "content", 0, "/", "."),
        NodeLocator(HANDOUTS_CTX, "mod_resource", "content", 0, "/extra/", None),
        NodeLocator(HANDOUTS_CTX, "mod_resource", "content", 0, "/", "diagram.png"),
        NodeLocator(USER_CTX, "user", "private", 12, "/报告/", "简历.pdf"),
    ],
)
def test_round_trip(locator: NodeLocator) -> None:
    """合法的 NodeLocator 编码后再解码得到相同的值。"""
    assert decode_token(encode_token(locator)) == locator


def test_token_is_url_safe() -> None:
    """令牌只含 URL 安全字符（无 + / =）。"""
    token = encode_token(NodeLocator(USER_CTX, "user", "private", 0, "/a b/", "x?y&z.txt"))
    assert re.fullmatch(r"[A-Za-z0-9_-]+", token)


def test_absent_fields_stay_none() -> None:
    """记录中缺失或为 null 的字段解码为 None，而不是清洗后的默认值。"""
    locator = decode_token(_raw_token({"v": 1, "contextid": 30, "component": None}))
    assert locator == NodeLocator(30)


def test_invalid_fields_are_sanitized_independently() -> None:
    """非法字段各自清洗，不影响其他字段。"""
    token = _raw_token(
        {
            "v": 1,
            "contextid": "30",
            "component": "Bad-Component",
            "filearea": "content",
            "itemid": "7abc",
            "filepath": "/a/../b/",
            "filename": "x/y.txt",
        }
    )
    assert decode_token(token) == NodeLocator(30, "", "content", 7, "/a/b/", "xy.txt")


@pytest.mark.parametrize(
    "token",
    [
        "",
        "   ",
        "!!!not base64!!!",
        base64.urlsafe_b64encode(b"\xff\xfe").decode("ascii"),
        base64.urlsafe_b64encode(b"not json").decode("ascii"),
        _raw_token([1, 2, 3]),
        _raw_token({"contextid": 1}),
        _raw_token({"v": 2, "contextid": 1}),
        _raw_token({"v": 1}),
        _raw_token({"v": 1, "contextid": None}),
        _raw_token({"v": 1, "contextid": -5}),
        _raw_bytes(b'{"v":1,"contextid":Infinity}'),
        _raw_bytes(b'{"v":1,"contextid":NaN}'),
        _raw_bytes(b'{"v":1,"contextid":1,"itemid":-Infinity}'),
        _raw_bytes(b"[" * 100000),
    ],
)
def test_decode_rejects_malformed(token: str) -> None:
    """格式错误的令牌抛 TokenDecodeError（它也是 ValueError）。"""
    with pytest.raises(TokenDecodeError):
        decode_token(token)
    assert try_decode_token(token) is None


def test_overflowing_number_cleaned_to_zero() -> None:
    """超出浮点范围的数字（解析为 inf）按整数清洗为 0，不会抛 OverflowError。"""
    locator = decode_token(_raw_bytes(b'{"v":1,"contextid":1e400,"itemid":-1e400}'))
    assert locator == NodeLocator(0, item_id=0)


def test_try_decode_empty_is_none() -> None:
    assert try_decode_token(None) is None
    assert try_decode_token("") is None


def test_clean_int() -> None:
    assert clean_int(5) == 5
    assert clean_int("12abc") == 12
    assert clean_int(" -3") == -3
    assert clean_int("abc") == 0
    assert clean_int(3.9) == 3
    assert clean_int(float("inf")) == 0
    assert clean_int(float("-inf")) == 0
    assert clean_int(float("nan")) == 0
    assert clean_int(True) == 0
    assert clean_int([1]) == 0


def test_clean_component() -> None:
    assert clean_component("mod_resource") == "mod_resource"
    assert clean_component("user") == "user"
    assert clean_component("block_html") == "block_html"
    assert clean_component("mod_re_source") == ""
    assert clean_component("a__b") == ""
    assert clean_component("Bad-Comp") == ""
    assert clean_component(42) == ""


def test_clean_area() -> None:
    assert clean_area("content") == "content"
    assert clean_area("intro_files") == "intro_files"
    assert clean_area("con__tent") == ""
    assert clean_area("_content") == ""
    assert clean_area("Content") == ""


def test_clean_path() -> None:
    assert clean_path("/") == "/"
    assert clean_path("/sub/dir/") == "/sub/dir/"
    assert clean_path("/a/../../b/") == "/a/b/"
    assert clean_path("//a///b/") == "/a/b/"
    assert clean_path("/a/./b/") == "/a/b/"
    assert clean_path('/a<b>"c|d:/') == "/abcd/"
    # Windows 分隔符视为目录分隔符
    assert clean_path("\\a\\b\\") == "/a/b/"
    assert clean_path("/a\\..\\b/") == "/a/b/"


def test_clean_filename() -> None:
    assert clean_filename("diagram.png") == "diagram.png"
    assert clean_filename("dir/evil.txt") == "direvil.txt"
    assert clean_filename(".") == "."
    assert clean_filename("..") == ""
    assert clean_filename("a\\b\x00.txt") == "ab.txt"
