"""
CLI 本地配置：保存/读取 base_url、show_my_course_categories、default_context_id。
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

# 可保存的键
CONFIG_KEYS = ("base_url", "show_my_course_categories", "default_context_id")


def _config_dir() -> Path:
    """配置目录：~/.config/localrepo（所有平台统一）。"""
    return Path.home() / ".config" / "localrepo"


def _config_path() -> Path:
    return _config_dir() / "config.json"


def load_config() -> dict[str, Any] | None:
    """读取本地配置；不存在或无效则返回 None。"""
    p = _config_path()
    if not p.exists():
        return None
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    return data


def save_config(base_url: str | None = None, **settings: Any) -> dict[str, Any]:
    """
    合并保存配置到本地，返回保存后的完整配置。

    :param base_url: 远程后端地址，末尾 / 会被去掉
    :param settings: show_my_course_categories / default_context_id；值为 None 的键被删除
    """
    unknown = set(settings) - set(CONFIG_KEYS)
    if unknown:
        raise ValueError(f"unknown config keys: {', '.join(sorted(unknown))}")
    data = load_config() or {}
    if base_url is not None:
        data["base_url"] = base_url.rstrip("/")
    for key, value in settings.items():
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value
    p = _config_path()
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
    return data


def clear_config() -> bool:
    """清除本地配置；存在则删除并返回 True。"""
    p = _config_path()
    if p.exists():
        p.unlink()
        return True
    return False
