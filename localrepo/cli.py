"""
localrepo CLI：浏览本地 JSON 树或远程层级服务，输出文件选择器看到的列表与面包屑。
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, Any, Optional

import typer

from localrepo.browser import BackendError, FileBrowser, MemoryBrowser
from localrepo.cli_config import CONFIG_KEYS, clear_config, load_config, save_config
from localrepo.client import RemoteBrowser
from localrepo.codec import TokenDecodeError, decode_token, encode_token
from localrepo.listing import LocalRepository
from localrepo.models import NodeLocator, entry_is_directory, entry_is_missing, entry_size, entry_token
from localrepo.permissions import RequestContext


def _format_size(n: int) -> str:
    """将字节数格式化为人类可读（KiB/MiB/GiB）。"""
    if n < 1024:
        return f"{n} B"
    if n < 1024 * 1024:
        return f"{n / 1024:.1f} KiB"
    if n < 1024 * 1024 * 1024:
        return f"{n / (1024 * 1024):.1f} MiB"
    return f"{n / (1024 * 1024 * 1024):.1f} GiB"


app = typer.Typer(
    name="localrepo",
    help="Browse a file hierarchy the way the file picker sees it.",
)

# 可选参数：覆盖保存的 base_url
_base_url_option: type = Annotated[
    Optional[str],
    typer.Option("--base-url", "-b", help="Override saved base URL of the remote hierarchy service"),
]


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log debug messages to stderr")] = False,
) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _open_browser(tree: Path | None, base_url: str | None) -> FileBrowser | None:
    """本地树文件优先；否则用参数或配置中的 base_url 连接远程服务。"""
    if tree is not None:
        return MemoryBrowser.from_file(tree)
    cfg = load_config()
    url = base_url or (cfg and cfg.get("base_url"))
    if not url:
        return None
    return RemoteBrowser(base_url=url, timeout=30.0)


def _require_browser(tree: Path | None, base_url: str | None) -> FileBrowser:
    try:
        browser = _open_browser(tree, base_url)
    except BackendError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(1)
    if browser is None:
        typer.echo("error: no backend. pass --tree or --base-url, or run 'localrepo connect'", err=True)
        raise typer.Exit(1)
    return browser


def _close_browser(browser: FileBrowser) -> None:
    close = getattr(browser, "close", None)
    if close is not None:
        close()


def _parse_bool(value: str) -> bool:
    v = value.strip().lower()
    if v in ("1", "true", "yes", "on"):
        return True
    if v in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {value}")


# ------------------------- list / ls -------------------------


def _print_listing(data: dict[str, Any]) -> None:
    names = [p.get("name", "") for p in data.get("path", [])]
    typer.echo("path: " + " / ".join(names))
    for e in data.get("list", []):
        title = e.get("title", "")
        if entry_is_directory(e):
            typer.echo(f"  [dir] {title}  {entry_token(e)}")
            continue
        missing = "  (missing)" if entry_is_missing(e) else ""
        modified = e.get("datemodified") or "-"
        typer.echo(f"  {title}  {_format_size(entry_size(e))}  {modified}  {entry_token(e)}{missing}")


def _cmd_list_impl(
    token: str,
    accept: list[str] | None,
    tree: Path | None,
    base_url: str | None,
    show_my_categories: bool | None,
    context_id: int | None,
    as_json: bool,
) -> None:
    cfg = load_config() or {}
    if show_my_categories is None:
        show_my_categories = bool(cfg.get("show_my_course_categories", False))
    if context_id is None:
        context_id = cfg.get("default_context_id")
    browser = _require_browser(tree, base_url)
    context = RequestContext(
        permissions=browser,
        show_my_course_categories=show_my_categories,
        default_context_id=context_id,
    )
    try:
        data = LocalRepository(browser, context).get_listing(token, accept or "*")
    except Exception as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(1)
    finally:
        _close_browser(browser)
    if as_json:
        typer.echo(json.dumps(data, ensure_ascii=False, indent=2))
    else:
        _print_listing(data)


_token_argument = Annotated[str, typer.Argument(help="Token from a previous listing (default: root)")]
_accept_option = Annotated[
    Optional[list[str]],
    typer.Option("--accept", "-a", help="Accepted extension, e.g. .png (repeatable; default: all)"),
]
_tree_option = Annotated[Optional[Path], typer.Option("--tree", "-t", help="Local JSON hierarchy file")]
_show_option = Annotated[
    Optional[bool],
    typer.Option("--show-my-categories/--hide-my-categories", help="Show course categories to non-managers"),
]
_context_option = Annotated[
    Optional[int], typer.Option("--context", "-c", help="Default context id when no token is given")
]
_json_option = Annotated[bool, typer.Option("--json", help="Print the raw listing payload")]


@app.command("list", help="List a node (root when no token is given)")
def list_cmd(
    token: _token_argument = "",
    accept: _accept_option = None,
    tree: _tree_option = None,
    base_url: _base_url_option = None,
    show_my_categories: _show_option = None,
    context_id: _context_option = None,
    as_json: _json_option = False,
) -> None:
    _cmd_list_impl(token, accept, tree, base_url, show_my_categories, context_id, as_json)


@app.command("ls", help="Alias for list")
def ls_cmd(
    token: _token_argument = "",
    accept: _accept_option = None,
    tree: _tree_option = None,
    base_url: _base_url_option = None,
    show_my_categories: _show_option = None,
    context_id: _context_option = None,
    as_json: _json_option = False,
) -> None:
    _cmd_list_impl(token, accept, tree, base_url, show_my_categories, context_id, as_json)


# ------------------------- encode / decode -------------------------


@app.command("encode", help="Encode a node locator into a token")
def encode_cmd(
    context_id: Annotated[int, typer.Option("--context-id", help="Context id")],
    component: Annotated[Optional[str], typer.Option("--component", help="Component, e.g. mod_resource")] = None,
    area: Annotated[Optional[str], typer.Option("--area", help="File area, e.g. content")] = None,
    item_id: Annotated[Optional[int], typer.Option("--item-id", help="Item id")] = None,
    path: Annotated[Optional[str], typer.Option("--path", help="File path, e.g. /sub/")] = None,
    name: Annotated[Optional[str], typer.Option("--name", help="File name")] = None,
) -> None:
    locator = NodeLocator(context_id, component, area, item_id, path, name)
    typer.echo(encode_token(locator))


@app.command("decode", help="Decode a token into its node locator (JSON)")
def decode_cmd(token: Annotated[str, typer.Argument(help="Token")]) -> None:
    try:
        locator = decode_token(token)
    except TokenDecodeError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(1)
    typer.echo(json.dumps(locator.to_params(), ensure_ascii=False, indent=2))


# ------------------------- connect / disconnect / info -------------------------


@app.command("connect", help="Save the remote hierarchy service URL")
def connect(
    base_url: Annotated[Optional[str], typer.Option("--base-url", "-b", help="Service base URL")] = None,
) -> None:
    base_url = base_url or input("Base URL (e.g. http://127.0.0.1:8280): ").strip()
    if not base_url:
        typer.echo("error: base URL required", err=True)
        raise typer.Exit(1)
    save_config(base_url)
    typer.echo("Saved.")


@app.command("disconnect", help="Clear saved config")
def disconnect() -> None:
    if clear_config():
        typer.echo("Cleared.")
    else:
        typer.echo("No saved config.")


@app.command("info", help="Show saved settings")
def info_cmd() -> None:
    cfg = load_config()
    if not cfg:
        typer.echo("No saved config. Run 'localrepo connect' or pass --tree / --base-url.")
        return
    for key in CONFIG_KEYS:
        typer.echo(f"{key}: {cfg.get(key, '-')}")


# ------------------------- config -------------------------


config_app = typer.Typer(help="Config subcommands")
app.add_typer(config_app, name="config")


@config_app.command("get", help="Print saved config (JSON)")
def config_get() -> None:
    typer.echo(json.dumps(load_config() or {}, ensure_ascii=False, indent=2))


@config_app.command("set", help="Set saved config values")
def config_set(
    key_value: Annotated[list[str], typer.Argument(help="KEY=VALUE pairs")],
) -> None:
    values: dict[str, Any] = {}
    for pair in key_value:
        if "=" not in pair:
            typer.echo(f"error: expected KEY=VALUE: {pair}", err=True)
            raise typer.Exit(1)
        k, v = (s.strip() for s in pair.split("=", 1))
        try:
            if k == "show_my_course_categories":
                values[k] = _parse_bool(v)
            elif k == "default_context_id":
                values[k] = int(v) if v else None
            elif k == "base_url":
                values[k] = v
            else:
                raise ValueError(f"unknown key: {k} (expected one of {', '.join(CONFIG_KEYS)})")
        except ValueError as e:
            typer.echo(f"error: {e}", err=True)
            raise typer.Exit(1)
    base_url = values.pop("base_url", None)
    save_config(base_url, **values)
    typer.echo("OK.")


# ------------------------- main -------------------------


def main() -> None:
    app()


if __name__ == "__main__":
    main()
