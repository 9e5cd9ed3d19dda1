"""
列表项中的图标 / 缩略图地址。
"""

from __future__ import annotations

import httpx

# 扩展名 -> 图标组
_ICON_GROUPS: dict[str, tuple[str, ...]] = {
    "image": (".png", ".jpg", ".jpeg", ".gif", ".bmp", ".svg", ".webp", ".tif", ".tiff"),
    "pdf": (".pdf",),
    "text": (".txt", ".md", ".csv", ".log", ".xml", ".json", ".html", ".htm"),
    "document": (".doc", ".docx", ".odt", ".rtf"),
    "spreadsheet": (".xls", ".xlsx", ".ods"),
    "archive": (".zip", ".tar", ".gz", ".tgz", ".7z", ".rar"),
    "audio": (".mp3", ".wav", ".ogg", ".flac", ".m4a"),
    "video": (".mp4", ".avi", ".mov", ".mkv", ".webm"),
}
_GROUP_BY_EXTENSION = {ext: group for group, exts in _ICON_GROUPS.items() for ext in exts}


def icon_group(filename: str) -> str:
    """按扩展名取图标组，未知为 unknown。"""
    _, dot, ext = filename.rpartition(".")
    if not dot:
        return "unknown"
    return _GROUP_BY_EXTENSION.get("." + ext.lower(), "unknown")


class IconRenderer:
    """
    图标地址生成：{pix_base_url}/f/{组}-{尺寸}.png。

    :param pix_base_url: 图标目录地址，如 http://127.0.0.1:8280/pix
    """

    def __init__(self, pix_base_url: str = "/pix"):
        self.pix_base_url = pix_base_url.rstrip("/")

    def folder_icon(self, size: int) -> str:
        return f"{self.pix_base_url}/f/folder-{size}.png"

    def file_icon(self, filename: str, size: int) -> str:
        return f"{self.pix_base_url}/f/{icon_group(filename)}-{size}.png"

    def preview_url(self, file_url: str, preview: str, oid: int | None) -> str:
        """
        图片预览地址：在文件地址上合并 preview 与 oid 参数。

        :param preview: thumb / tinyicon
        :param oid: 防缓存值，取文件修改时间
        """
        params = {"preview": preview}
        if oid is not None:
            params["oid"] = str(oid)
        return str(httpx.URL(file_url).copy_merge_params(params))
