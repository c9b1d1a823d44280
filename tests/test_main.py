import sys

import pytest

from devloop import main as devloop_main
from devloop.config import Config, split_list
from devloop.exceptions import LaunchFailure


@pytest.fixture(autouse=True)
def no_logging_setup(monkeypatch):
    monkeypatch.setattr(devloop_main, "configure_logging", lambda level=None: None)


def test_build_command_uses_interpreter():
    args = devloop_main.parse_args(["--interpreter", "node", "server.js", "--port", "8888"])

    assert devloop_main.build_command(args) == ("node", ["server.js", "--port", "8888"])


def test_build_command_direct():
    args = devloop_main.parse_args(["--exec", "./serve", "--", "-v"])

    assert devloop_main.build_command(args) == ("./serve", ["-v"])


def test_parse_filter_options():
    args = devloop_main.parse_args(["--ext", ".js", "--ext", ".mjs", "--exclude", "node_modules", "server.js"])

    assert args.extensions == [".js", ".mjs"]
    assert args.exclude_dirs == ["node_modules"]
    assert args.target == "server.js"


def test_main_returns_child_exit_code(tmp_path):
    target = tmp_path / "app.py"
    target.write_text("import sys\nsys.exit(7)\n")

    assert devloop_main.main(["--interpreter", sys.executable, str(target)]) == 7


def test_main_reports_launch_failure(tmp_path):
    target = tmp_path / "missing-binary"

    assert devloop_main.main(["--exec", str(target)]) == LaunchFailure.exit_code


def test_split_list():
    assert split_list(" .py, .js ,,") == (".py", ".js")
    assert split_list("") == ()


def test_config_reads_list_settings(monkeypatch, tmp_path):
    monkeypatch.setenv("DEVLOOP_EXTENSIONS", ".js,.mjs")
    monkeypatch.setenv("DEVLOOP_EXCLUDE", "node_modules")

    cfg = Config(data_dir=tmp_path)

    assert cfg.extensions == (".js", ".mjs")
    assert cfg.exclude_dirs == ("node_modules",)
    assert cfg.log_file == tmp_path / "devloop.log"
