"""nexbot-pm CLI 테스트"""

import httpx
import pytest

from nexbot.cli import (
    CliError,
    create_plugin,
    install_plugin,
    list_plugins,
    main,
    remove_plugin,
    search_plugins,
)
from nexbot.core.plugin_manager import PluginManager

REGISTRY_URL = "https://registry.test/registry.json"
REGISTRY = {
    "plugins": {
        "weather": {
            "version": "1.2.0",
            "description": "Weather forecasts",
            "author": "someone",
            "url": "https://registry.test/weather.py",
        },
        "translate": {
            "version": "0.3.0",
            "description": "Text utility",
            "author": "someone",
            "url": "https://registry.test/missing.py",
        },
    }
}
WEATHER_SOURCE = "# weather plugin source\n"


def _handler(request: httpx.Request) -> httpx.Response:
    if request.url == REGISTRY_URL:
        return httpx.Response(200, json=REGISTRY)
    if request.url.path == "/weather.py":
        return httpx.Response(200, text=WEATHER_SOURCE)
    return httpx.Response(404)


@pytest.fixture
def http_client():
    with httpx.Client(transport=httpx.MockTransport(_handler)) as client:
        yield client


class TestCreate:
    def test_creates_loadable_template(self, tmp_path):
        path = create_plugin("my_tool", tmp_path)
        assert path == tmp_path / "my_tool.py"
        assert "class MyToolPlugin(Plugin)" in path.read_text(encoding="utf-8")

        manager = PluginManager(builtin_dir=tmp_path / "none", plugins_dir=tmp_path)
        plugin = manager.import_plugin(path)
        assert plugin.meta.name == "my_tool"
        assert "my_tool" in plugin.register_commands()

    def test_refuses_overwrite(self, tmp_path):
        create_plugin("tool", tmp_path)
        with pytest.raises(CliError):
            create_plugin("tool", tmp_path)

    @pytest.mark.parametrize("name", ["my-tool", "class", "1tool"])
    def test_invalid_names(self, tmp_path, name):
        with pytest.raises(CliError):
            create_plugin(name, tmp_path)


class TestRegistry:
    def test_install_downloads_source(self, tmp_path, http_client):
        info = install_plugin("weather", tmp_path / "plugins", http_client, REGISTRY_URL)
        assert info["version"] == "1.2.0"
        assert (tmp_path / "plugins" / "weather.py").read_text(encoding="utf-8") == WEATHER_SOURCE

    def test_install_unknown_plugin(self, tmp_path, http_client):
        with pytest.raises(CliError, match="not found"):
            install_plugin("nope", tmp_path, http_client, REGISTRY_URL)

    def test_install_download_failure(self, tmp_path, http_client):
        with pytest.raises(CliError, match="Download failed"):
            install_plugin("translate", tmp_path, http_client, REGISTRY_URL)
        assert not (tmp_path / "translate.py").exists()

    def test_registry_unreachable(self, tmp_path, http_client):
        with pytest.raises(CliError, match="registry"):
            install_plugin("weather", tmp_path, http_client, "https://registry.test/other.json")

    def test_search_matches_name_and_description(self, http_client):
        assert [n for n, _ in search_plugins("weat", http_client, REGISTRY_URL)] == ["weather"]
        assert [n for n, _ in search_plugins("utility", http_client, REGISTRY_URL)] == ["translate"]
        assert len(search_plugins(None, http_client, REGISTRY_URL)) == 2


class TestLocalFiles:
    def test_list_and_remove(self, tmp_path):
        (tmp_path / "b.py").write_text("", encoding="utf-8")
        (tmp_path / "a.py").write_text("", encoding="utf-8")
        (tmp_path / "_private.py").write_text("", encoding="utf-8")
        assert list_plugins(tmp_path) == ["a", "b"]

        remove_plugin("a", tmp_path)
        assert list_plugins(tmp_path) == ["b"]

    def test_remove_missing(self, tmp_path):
        with pytest.raises(CliError):
            remove_plugin("nope", tmp_path)

    def test_list_missing_dir(self, tmp_path):
        assert list_plugins(tmp_path / "nope") == []


class TestMain:
    def test_no_command_exits(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 1

    def test_create_and_list(self, tmp_path, capsys):
        main(["--plugins-dir", str(tmp_path), "create", "hello"])
        main(["--plugins-dir", str(tmp_path), "list"])
        out = capsys.readouterr().out
        assert "Plugin template created" in out
        assert "  - hello" in out

    def test_error_exit_code(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--plugins-dir", str(tmp_path), "remove", "ghost"])
        assert exc_info.value.code == 1
        assert "ghost" in capsys.readouterr().err
