"""플러그인 관리 CLI

사용법:
    nexbot-pm create myplugin     플러그인 템플릿 생성
    nexbot-pm install weather     저장소에서 플러그인 설치
    nexbot-pm search util         저장소 검색
    nexbot-pm list                설치된 플러그인 목록
    nexbot-pm remove weather      플러그인 삭제

설치/삭제는 파일만 다룹니다. 활성화는 봇에서 `.plugin install <이름>`으로 합니다.
"""

import argparse
import keyword
import sys
from pathlib import Path

import httpx

from nexbot.config import Config

PLUGIN_TEMPLATE = '''"""{name} plugin"""

from nexbot.core.plugin import CommandDefinition, Plugin, PluginMeta


class {class_name}(Plugin):
    meta = PluginMeta(
        name="{name}",
        version="1.0.0",
        description="{name} plugin",
        author="Your Name",
    )

    def register_commands(self):
        return {{
            "{name}": CommandDefinition(
                description="{name} command",
                handler=self.{name},
                examples=["{name}"],
            ),
        }}

    async def {name}(self, message, args, ctx):
        await ctx.reply("👋 Hello from {name} plugin!")

    async def on_init(self, client):
        pass

    async def on_unload(self):
        pass
'''


class CliError(Exception):
    """CLI 명령 실패 (메시지 출력 후 종료 코드 1)"""


def _class_name(name: str) -> str:
    return "".join(part.capitalize() for part in name.replace("-", "_").split("_")) + "Plugin"


def create_plugin(name: str, plugins_dir: Path) -> Path:
    """플러그인 템플릿 파일을 생성합니다."""
    if not name.isidentifier() or keyword.iskeyword(name):
        raise CliError(f"Invalid plugin name: {name}")

    plugins_dir.mkdir(parents=True, exist_ok=True)
    path = plugins_dir / f"{name}.py"
    if path.exists():
        raise CliError(f"Plugin {name} already exists: {path}")

    path.write_text(
        PLUGIN_TEMPLATE.format(name=name, class_name=_class_name(name)),
        encoding="utf-8",
    )
    return path


def fetch_registry(url: str, client: httpx.Client) -> dict:
    """플러그인 저장소 JSON을 가져옵니다."""
    try:
        response = client.get(url)
        response.raise_for_status()
        data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        raise CliError(f"Failed to fetch plugin registry: {e}") from e
    return data.get("plugins") or {}


def install_plugin(name: str, plugins_dir: Path, client: httpx.Client, registry_url: str) -> dict:
    """저장소에서 플러그인 소스를 내려받아 plugins_dir에 저장합니다."""
    plugins = fetch_registry(registry_url, client)
    info = plugins.get(name)
    if not info:
        raise CliError(f"Plugin {name} not found in registry")

    try:
        response = client.get(info["url"])
        response.raise_for_status()
    except (httpx.HTTPError, KeyError) as e:
        raise CliError(f"Download failed: {e}") from e

    plugins_dir.mkdir(parents=True, exist_ok=True)
    (plugins_dir / f"{name}.py").write_text(response.text, encoding="utf-8")
    return info


def search_plugins(query: str | None, client: httpx.Client, registry_url: str) -> list[tuple[str, dict]]:
    plugins = fetch_registry(registry_url, client)
    return [
        (name, info)
        for name, info in plugins.items()
        if not query or query in name or query in (info.get("description") or "")
    ]


def list_plugins(plugins_dir: Path) -> list[str]:
    if not plugins_dir.is_dir():
        return []
    return sorted(p.stem for p in plugins_dir.glob("*.py") if not p.name.startswith("_"))


def remove_plugin(name: str, plugins_dir: Path) -> Path:
    path = plugins_dir / f"{name}.py"
    if not path.exists():
        raise CliError(f"Plugin {name} is not installed")
    path.unlink()
    return path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nexbot-pm",
        description="NexBot plugin manager",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  nexbot-pm create myplugin
  nexbot-pm install weather
  nexbot-pm search util
        """,
    )
    parser.add_argument(
        "--plugins-dir", default=None,
        help="Plugin directory (default: PLUGINS_DIR or ./plugins)",
    )
    parser.add_argument(
        "--registry", default=None,
        help="Registry URL (default: PLUGIN_REGISTRY_URL)",
    )
    sub = parser.add_subparsers(dest="command")

    create = sub.add_parser("create", help="Create a plugin template")
    create.add_argument("name")
    install = sub.add_parser("install", help="Install a plugin from the registry")
    install.add_argument("name")
    search = sub.add_parser("search", help="Search the registry")
    search.add_argument("query", nargs="?")
    sub.add_parser("list", help="List installed plugin files")
    remove = sub.add_parser("remove", help="Remove a plugin file")
    remove.add_argument("name")
    return parser


def run(args: argparse.Namespace) -> None:
    """파싱된 인자로 명령을 실행합니다. 실패 시 CliError"""
    plugins_dir = Path(args.plugins_dir or Config.get_plugins_path())
    registry_url = args.registry or Config.registry.url

    if args.command == "create":
        path = create_plugin(args.name, plugins_dir)
        print(f"✅ Plugin template created: {path}")
    elif args.command == "install":
        with httpx.Client(timeout=30, follow_redirects=True) as client:
            info = install_plugin(args.name, plugins_dir, client, registry_url)
        print(f"✅ Plugin {args.name} v{info.get('version', '?')} installed")
        print(f"📖 {info.get('description', '')}")
        print(f"💡 Enable it in Telegram with: {Config.get_active_prefix()}plugin install {args.name}")
    elif args.command == "search":
        with httpx.Client(timeout=30, follow_redirects=True) as client:
            results = search_plugins(args.query, client, registry_url)
        if not results:
            print("📭 No plugins found")
        for name, info in results:
            print(f"{name} v{info.get('version', '?')}")
            print(f"  {info.get('description', '')}")
            print(f"  author: {info.get('author', '?')}\n")
    elif args.command == "list":
        names = list_plugins(plugins_dir)
        if not names:
            print("📭 No plugins installed")
        for name in names:
            print(f"  - {name}")
    elif args.command == "remove":
        path = remove_plugin(args.name, plugins_dir)
        print(f"✅ Removed {path}")


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        run(args)
    except CliError as e:
        print(f"❌ {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
