"""
Tests for the handler protocol, registry, mock, and bundled handlers.
"""

import json
import os
import shutil
import subprocess
import sys
from pathlib import Path

import pytest

from depctl.adapters.base import (
    Handler,
    HandlerContext,
    HandlerError,
    HandlerNotFoundError,
    UnsupportedActionError,
    UnsupportedPlatformError,
    prepend_path,
)
from depctl.adapters.languages.node import NpmHandler
from depctl.adapters.languages.python import PipHandler, normalize_name
from depctl.adapters.mock import MockHandler
from depctl.adapters.registry import HandlerRegistry
from depctl.adapters.shell.command import CommandError, CommandHandler, run_command
from depctl.adapters.shell.filesystem import FileSystemHandler
from depctl.adapters.vcs.git import GitHandler
from depctl.core.config.type_map import TypeMapEntry
from depctl.core.context import strict_errors
from depctl.core.models.action import Action

INSTALL = frozenset({Action.INSTALL})
INSTALL_IMPORT = frozenset({Action.INSTALL, Action.IMPORT})
TEST = frozenset({Action.TEST})

# ── Protocol Tests ───────────────────────────────────────────────────


class TestHandlerContext:
    def test_target_relative_to_definition(self, make_dep, tmp_path: Path):
        ctx = HandlerContext(dependency=make_dep("a", target="vendor"))
        assert ctx.target_path == tmp_path / "vendor"
        assert ctx.working_dir == tmp_path

    def test_no_target(self, make_dep):
        assert HandlerContext(dependency=make_dep("a")).target_path is None

    def test_resolve(self, make_dep, tmp_path: Path):
        ctx = HandlerContext(dependency=make_dep("a"))
        assert ctx.resolve("x/y") == tmp_path / "x" / "y"
        assert ctx.resolve(str(tmp_path / "abs")) == tmp_path / "abs"

    def test_wants(self, make_dep):
        ctx = HandlerContext(dependency=make_dep("a"), actions=INSTALL)
        assert ctx.wants(Action.INSTALL)
        assert not ctx.wants(Action.TEST)

    def test_default_test_unsupported(self, make_dep):
        class InstallOnly(Handler):
            name = "install-only"

            def is_available(self):
                return True

            def install(self, context):
                pass

        with pytest.raises(UnsupportedActionError):
            InstallOnly().test(HandlerContext(dependency=make_dep("a")))


class TestPrependPath:
    def test_prepends_once(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("PATH", "/usr/bin")
        assert prepend_path(tmp_path)
        assert os.environ["PATH"] == os.pathsep.join([str(tmp_path), "/usr/bin"])
        assert not prepend_path(tmp_path)

    def test_empty_var(self, monkeypatch, tmp_path: Path):
        monkeypatch.delenv("DEPCTL_TEST_PATH", raising=False)
        assert prepend_path(tmp_path, env_var="DEPCTL_TEST_PATH")
        assert os.environ["DEPCTL_TEST_PATH"] == str(tmp_path)


# ── Mock Handler Tests ───────────────────────────────────────────────


class TestMockHandler:
    def test_default_success(self, make_dep):
        mock = MockHandler(handler_name="test-mock")
        ctx = HandlerContext(dependency=make_dep("a"))
        mock.install(ctx)
        assert mock.test(ctx) is True
        assert mock.call_count == 2
        assert mock.calls_for("a") == ["install", "test"]

    def test_set_failure(self, make_dep):
        mock = MockHandler()
        mock.set_failure("a", error="Intentional failure")
        with pytest.raises(HandlerError, match="Intentional failure"):
            mock.install(HandlerContext(dependency=make_dep("a")))

    def test_set_exists(self, make_dep):
        mock = MockHandler(default_exists=True)
        mock.set_exists("a", False)
        assert mock.test(HandlerContext(dependency=make_dep("a"))) is False
        assert mock.test(HandlerContext(dependency=make_dep("b"))) is True

    def test_reset(self, make_dep):
        mock = MockHandler()
        mock.set_failure("a")
        with pytest.raises(HandlerError):
            mock.import_(HandlerContext(dependency=make_dep("a")))
        mock.reset()
        assert mock.call_count == 0
        mock.import_(HandlerContext(dependency=make_dep("a")))

    def test_is_available(self):
        assert MockHandler(available=True).is_available()
        assert not MockHandler(available=False).is_available()


# ── Registry Tests ───────────────────────────────────────────────────


class TestHandlerRegistry:
    def test_register_and_get(self):
        registry = HandlerRegistry()
        handler = MockHandler(handler_name="pip")
        registry.register(handler)
        assert registry.get("pip") is handler
        assert registry.list_types() == ["pip"]

    def test_unregister(self):
        registry = HandlerRegistry()
        registry.register(MockHandler(handler_name="pip"))
        registry.unregister("pip")
        assert registry.get("pip") is None

    def test_resolve_missing_type(self):
        registry = HandlerRegistry()
        registry.register(MockHandler(handler_name="pip"))
        with pytest.raises(HandlerNotFoundError, match="'nuget'.*known: pip"):
            registry.resolve("nuget")

    def test_resolve_unsupported_platform(self):
        registry = HandlerRegistry()
        entry = TypeMapEntry(name="odd", handler="x:Y", supports=["plan9"])
        registry.register(MockHandler(), type_name="odd", entry=entry)
        with pytest.raises(UnsupportedPlatformError):
            registry.resolve("odd")

    def test_mock_mode_routes_everything(self):
        registry = HandlerRegistry(mock_mode=True)
        assert isinstance(registry.resolve("anything"), MockHandler)

    def test_set_mock_mode_custom_handler(self):
        registry = HandlerRegistry()
        custom = MockHandler(handler_name="custom")
        registry.set_mock_mode(True, custom)
        assert registry.mock_mode
        assert registry.resolve("pip") is custom

    def test_invoke_install_then_import(self, mock_registry, make_dep):
        result = mock_registry.invoke(INSTALL_IMPORT, make_dep("a"))
        assert result is None
        assert mock_registry.get("mock").calls_for("a") == ["install", "import"]

    def test_invoke_install_only(self, mock_registry, make_dep):
        mock_registry.invoke(INSTALL, make_dep("a"))
        assert mock_registry.get("mock").calls_for("a") == ["install"]

    def test_invoke_test_returns_bool(self, mock_registry, make_dep):
        mock_registry.get("mock").set_exists("a", False)
        assert mock_registry.invoke(TEST, make_dep("a")) is False
        assert mock_registry.invoke(TEST, make_dep("b"), quiet=True) is True

    def test_invoke_validation_failure(self, make_dep):
        registry = HandlerRegistry()
        registry.register(CommandHandler())
        with pytest.raises(HandlerError, match="Validation failed"):
            registry.invoke(INSTALL, make_dep("a", type="command"))

    def test_invoke_propagates_handler_error(self, mock_registry, make_dep):
        mock_registry.get("mock").set_failure("a", "boom")
        with pytest.raises(HandlerError, match="boom"):
            mock_registry.invoke(INSTALL, make_dep("a"))

    def test_from_bundled_type_map(self):
        registry = HandlerRegistry.from_type_map()
        assert set(registry.list_types()) == {"command", "file_system", "pip", "npm", "git"}
        assert isinstance(registry.get("git"), GitHandler)
        assert registry.entry("pip").description

    def test_handler_status(self):
        registry = HandlerRegistry()
        registry.register(MockHandler(handler_name="a", available=False))
        status = registry.handler_status()
        assert status["a"]["available"] is False
        assert status["a"]["supported"] is True
        assert status["a"]["handler"] == "MockHandler"


# ── run_command ──────────────────────────────────────────────────────


class TestRunCommand:
    def test_success(self, tmp_path: Path):
        result = run_command("echo hello", cwd=tmp_path)
        assert result.returncode == 0
        assert result.stdout.strip() == "hello"

    def test_failure_not_strict_returns(self, tmp_path: Path):
        result = run_command("exit 3", cwd=tmp_path)
        assert result.returncode == 3

    def test_failure_strict_raises(self, tmp_path: Path):
        with strict_errors():
            with pytest.raises(CommandError) as exc_info:
                run_command("echo oops >&2; exit 3", cwd=tmp_path)
        assert exc_info.value.returncode == 3
        assert "oops" in str(exc_info.value)

    @pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX shell")
    def test_strict_stops_at_first_failing_line(self, tmp_path: Path):
        script = "false\ntouch after.txt"
        run_command(script, cwd=tmp_path)
        assert (tmp_path / "after.txt").exists()
        (tmp_path / "after.txt").unlink()

        with strict_errors():
            with pytest.raises(CommandError):
                run_command(script, cwd=tmp_path)
        assert not (tmp_path / "after.txt").exists()

    def test_list_command(self, tmp_path: Path):
        result = run_command([sys.executable, "-c", "print('hi')"], cwd=tmp_path)
        assert result.stdout.strip() == "hi"

    def test_env_merged(self, tmp_path: Path):
        result = run_command(
            [sys.executable, "-c", "import os; print(os.environ['DEPCTL_X'], 'PATH' in os.environ)"],
            cwd=tmp_path,
            env={"DEPCTL_X": "42"},
        )
        assert result.stdout.split() == ["42", "True"]

    def test_missing_executable(self, tmp_path: Path):
        with pytest.raises(HandlerError, match="Cannot run"):
            run_command(["definitely-not-a-real-binary-xyz"], cwd=tmp_path)

    def test_timeout_strict(self, tmp_path: Path):
        with strict_errors():
            with pytest.raises(CommandError, match="timed out"):
                run_command([sys.executable, "-c", "import time; time.sleep(5)"],
                            cwd=tmp_path, timeout=0.2)


# ── Command Handler ──────────────────────────────────────────────────


class TestCommandHandler:
    def test_is_available(self):
        assert CommandHandler().is_available()

    def test_validate_requires_command(self, make_dep):
        ok, msg = CommandHandler().validate(HandlerContext(dependency=make_dep("a", type="command")))
        assert not ok
        assert "source" in msg

    def test_install_runs_source_and_commands(self, make_dep, tmp_path: Path):
        dep = make_dep(
            "a",
            type="command",
            source="echo one > one.txt",
            parameters={"commands": ["echo two > two.txt"]},
        )
        CommandHandler().install(HandlerContext(dependency=dep))
        assert (tmp_path / "one.txt").read_text().strip() == "one"
        assert (tmp_path / "two.txt").exists()

    def test_install_runs_in_target_dir(self, make_dep, tmp_path: Path):
        (tmp_path / "out").mkdir()
        dep = make_dep("a", type="command", source="touch here.txt", target="out")
        CommandHandler().install(HandlerContext(dependency=dep))
        assert (tmp_path / "out" / "here.txt").exists()

    def test_install_failure_raises(self, make_dep):
        dep = make_dep("a", type="command", source="exit 4")
        with pytest.raises(CommandError) as exc_info:
            CommandHandler().install(HandlerContext(dependency=dep))
        assert exc_info.value.returncode == 4

    def test_test_command(self, make_dep, tmp_path: Path):
        handler = CommandHandler()
        dep = make_dep("a", type="command", parameters={"test": "test -f marker"})
        assert handler.test(HandlerContext(dependency=dep)) is False
        (tmp_path / "marker").write_text("")
        assert handler.test(HandlerContext(dependency=dep)) is True

    def test_test_without_probe_is_false(self, make_dep):
        dep = make_dep("a", type="command", source="true")
        assert CommandHandler().test(HandlerContext(dependency=dep)) is False


# ── File System Handler ──────────────────────────────────────────────


class TestFileSystemHandler:
    def test_validate(self, make_dep):
        handler = FileSystemHandler()
        ok, msg = handler.validate(HandlerContext(dependency=make_dep("a", type="file_system")))
        assert not ok and "source" in msg
        dep = make_dep("a", type="file_system", source="missing", target="out")
        ok, msg = handler.validate(HandlerContext(dependency=dep))
        assert not ok and "not found" in msg

    def test_copy_file(self, make_dep, tmp_path: Path):
        (tmp_path / "tool.cfg").write_text("x=1")
        dep = make_dep("a", type="file_system", source="tool.cfg", target="out")
        handler = FileSystemHandler()
        ctx = HandlerContext(dependency=dep)
        assert handler.test(ctx) is False
        handler.install(ctx)
        assert (tmp_path / "out" / "tool.cfg").read_text() == "x=1"
        assert handler.test(ctx) is True

    def test_copy_dir_and_detect_drift(self, make_dep, tmp_path: Path):
        src = tmp_path / "templates"
        (src / "sub").mkdir(parents=True)
        (src / "a.txt").write_text("a")
        (src / "sub" / "b.txt").write_text("b")
        dep = make_dep("a", type="file_system", source="templates", target="out")
        handler = FileSystemHandler()
        ctx = HandlerContext(dependency=dep)

        handler.install(ctx)
        assert (tmp_path / "out" / "sub" / "b.txt").read_text() == "b"
        assert handler.test(ctx) is True

        (tmp_path / "out" / "sub" / "b.txt").write_text("changed")
        assert handler.test(ctx) is False

    def test_mirror_removes_stale_files(self, make_dep, tmp_path: Path):
        src = tmp_path / "templates"
        src.mkdir()
        (src / "a.txt").write_text("a")
        out = tmp_path / "out"
        out.mkdir()
        (out / "stale.txt").write_text("old")

        dep = make_dep(
            "a", type="file_system", source="templates", target="out",
            parameters={"mirror": True},
        )
        FileSystemHandler().install(HandlerContext(dependency=dep))
        assert (out / "a.txt").exists()
        assert not (out / "stale.txt").exists()

    def test_import_adds_to_path(self, make_dep, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("PATH", "/usr/bin")
        dep = make_dep("a", type="file_system", source="x", target="bin", add_to_path=True)
        FileSystemHandler().import_(HandlerContext(dependency=dep))
        assert os.environ["PATH"].split(os.pathsep)[0] == str(tmp_path / "bin")


# ── Pip Handler ──────────────────────────────────────────────────────


def _completed(cmd, returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(cmd, returncode, stdout, stderr)


class TestPipHandler:
    def test_normalize_name(self):
        assert normalize_name("Foo_Bar.baz") == "foo-bar-baz"

    def test_install_command(self, make_dep, monkeypatch, tmp_path: Path):
        calls = []

        def fake_run(cmd, **kwargs):
            calls.append(cmd)
            return _completed(cmd)

        monkeypatch.setattr("depctl.adapters.languages.python.run_command", fake_run)
        dep = make_dep(
            "requests",
            type="pip",
            version="2.31.0",
            target="vendor",
            source="https://pypi.example/simple",
            parameters={"extra_args": ["--no-deps"]},
        )
        PipHandler().install(HandlerContext(dependency=dep))

        cmd = calls[0]
        assert cmd[:4] == [sys.executable, "-m", "pip", "install"]
        assert "requests==2.31.0" in cmd
        assert cmd[cmd.index("--target") + 1] == str(tmp_path / "vendor")
        assert cmd[cmd.index("--index-url") + 1] == "https://pypi.example/simple"
        assert cmd[-1] == "--no-deps"
        assert "--upgrade" not in cmd
        assert (tmp_path / "vendor").is_dir()

    def test_install_latest_upgrades(self, make_dep, monkeypatch):
        calls = []
        monkeypatch.setattr(
            "depctl.adapters.languages.python.run_command",
            lambda cmd, **kw: calls.append(cmd) or _completed(cmd),
        )
        PipHandler().install(HandlerContext(dependency=make_dep("rich", type="pip")))
        assert "--upgrade" in calls[0]
        assert "rich" in calls[0]

    def test_install_failure(self, make_dep, monkeypatch):
        monkeypatch.setattr(
            "depctl.adapters.languages.python.run_command",
            lambda cmd, **kw: _completed(cmd, returncode=1, stderr="No matching distribution"),
        )
        with pytest.raises(CommandError, match="No matching distribution"):
            PipHandler().install(HandlerContext(dependency=make_dep("nope", type="pip")))

    def test_test_installed_distribution(self, make_dep):
        # pytest is installed wherever these tests run
        import importlib.metadata

        version = importlib.metadata.version("pytest")
        handler = PipHandler()
        assert handler.test(HandlerContext(dependency=make_dep("pytest", type="pip")))
        assert handler.test(HandlerContext(dependency=make_dep("pytest", type="pip", version=version)))
        assert not handler.test(
            HandlerContext(dependency=make_dep("pytest", type="pip", version="0.0.1"))
        )

    def test_test_missing_distribution(self, make_dep):
        dep = make_dep("definitely-not-installed-xyz", type="pip")
        assert PipHandler().test(HandlerContext(dependency=dep)) is False

    def test_test_in_target_dir(self, make_dep, tmp_path: Path):
        dist_info = tmp_path / "vendor" / "Demo_Pkg-1.2.0.dist-info"
        dist_info.mkdir(parents=True)
        (dist_info / "METADATA").write_text("Metadata-Version: 2.1\nName: Demo_Pkg\nVersion: 1.2.0\n")

        handler = PipHandler()
        ok = make_dep("demo-pkg", type="pip", version="1.2.0", target="vendor")
        old = make_dep("demo-pkg", type="pip", version="1.0.0", target="vendor")
        assert handler.test(HandlerContext(dependency=ok)) is True
        assert handler.test(HandlerContext(dependency=old)) is False

    def test_import(self, make_dep):
        dep = make_dep("json", type="pip")
        PipHandler().import_(HandlerContext(dependency=dep))

    def test_import_name_parameter(self, make_dep):
        dep = make_dep("PyYAML", type="pip", parameters={"import_name": "yaml"})
        PipHandler().import_(HandlerContext(dependency=dep))

    def test_import_failure(self, make_dep):
        dep = make_dep("definitely-not-installed-xyz", type="pip")
        with pytest.raises(HandlerError, match="Cannot import"):
            PipHandler().import_(HandlerContext(dependency=dep))

    def test_import_from_target(self, make_dep, monkeypatch, tmp_path: Path):
        vendor = tmp_path / "vendor"
        vendor.mkdir()
        (vendor / "depctl_vendored_demo.py").write_text("VALUE = 1\n")
        monkeypatch.setattr(sys, "path", list(sys.path))
        dep = make_dep("depctl-vendored-demo", type="pip", target="vendor", add_to_path=True)
        PipHandler().import_(HandlerContext(dependency=dep))
        assert sys.path[0] == str(vendor)
        assert "depctl_vendored_demo" in sys.modules
        sys.modules.pop("depctl_vendored_demo", None)


# ── Npm Handler ──────────────────────────────────────────────────────


class TestNpmHandler:
    def test_install_command(self, make_dep, monkeypatch, tmp_path: Path):
        calls = []
        monkeypatch.setattr(
            "depctl.adapters.languages.node.run_command",
            lambda cmd, **kw: calls.append(cmd) or _completed(cmd),
        )
        dep = make_dep("prettier", type="npm", version="3.3.3", target="tools")
        NpmHandler().install(HandlerContext(dependency=dep))
        assert calls[0] == ["npm", "install", "prettier@3.3.3", "--prefix", str(tmp_path / "tools")]

    def test_install_global(self, make_dep, monkeypatch):
        calls = []
        monkeypatch.setattr(
            "depctl.adapters.languages.node.run_command",
            lambda cmd, **kw: calls.append(cmd) or _completed(cmd),
        )
        dep = make_dep("typescript", type="npm", parameters={"global": True})
        NpmHandler().install(HandlerContext(dependency=dep))
        assert calls[0] == ["npm", "install", "typescript", "--global"]

    def test_test_parses_npm_ls(self, make_dep, monkeypatch):
        output = json.dumps({"dependencies": {"prettier": {"version": "3.3.3"}}})
        monkeypatch.setattr(
            "depctl.adapters.languages.node.run_command",
            lambda cmd, **kw: _completed(cmd, stdout=output),
        )
        handler = NpmHandler()
        assert handler.test(HandlerContext(dependency=make_dep("prettier", type="npm")))
        assert handler.test(
            HandlerContext(dependency=make_dep("prettier", type="npm", version="3.3.3"))
        )
        assert not handler.test(
            HandlerContext(dependency=make_dep("prettier", type="npm", version="2.0.0"))
        )
        assert not handler.test(HandlerContext(dependency=make_dep("eslint", type="npm")))

    def test_test_missing_package(self, make_dep, monkeypatch):
        monkeypatch.setattr(
            "depctl.adapters.languages.node.run_command",
            lambda cmd, **kw: _completed(cmd, returncode=1, stdout="{}"),
        )
        assert not NpmHandler().test(HandlerContext(dependency=make_dep("prettier", type="npm")))

    def test_test_garbage_output(self, make_dep, monkeypatch):
        monkeypatch.setattr(
            "depctl.adapters.languages.node.run_command",
            lambda cmd, **kw: _completed(cmd, stdout="not json"),
        )
        with pytest.raises(HandlerError, match="npm ls"):
            NpmHandler().test(HandlerContext(dependency=make_dep("prettier", type="npm")))

    def test_import_adds_bin(self, make_dep, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("PATH", "/usr/bin")
        dep = make_dep("prettier", type="npm", target="tools", add_to_path=True)
        NpmHandler().import_(HandlerContext(dependency=dep))
        expected = tmp_path / "tools" / "node_modules" / ".bin"
        assert os.environ["PATH"].split(os.pathsep)[0] == str(expected)


# ── Git Handler ──────────────────────────────────────────────────────


def _git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", "-c", "user.email=dev@example.com", "-c", "user.name=dev", *args],
        cwd=cwd, capture_output=True, text=True, check=True,
    )
    return result.stdout.strip()


@pytest.fixture
def origin_repo(tmp_path: Path) -> Path:
    repo = tmp_path / "origin"
    repo.mkdir()
    _git(repo, "init", "--quiet")
    (repo / "README").write_text("v1")
    _git(repo, "add", "README")
    _git(repo, "commit", "--quiet", "-m", "first")
    _git(repo, "tag", "v1")
    (repo / "README").write_text("v2")
    _git(repo, "commit", "--quiet", "-am", "second")
    return repo


class TestGitHandler:
    def test_validate(self, make_dep):
        handler = GitHandler()
        ok, _ = handler.validate(HandlerContext(dependency=make_dep("linters", type="git")))
        assert not ok
        ok, _ = handler.validate(HandlerContext(dependency=make_dep("example/linters", type="git")))
        assert ok

    def test_default_url_and_checkout_dir(self, make_dep, tmp_path: Path):
        handler = GitHandler()
        ctx = HandlerContext(dependency=make_dep("example/linters", type="git", target="vendor"))
        assert handler._url(ctx) == "https://github.com/example/linters.git"
        assert handler._checkout_dir(ctx) == tmp_path / "vendor" / "linters"

    @pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
    def test_clone_and_pin(self, make_dep, origin_repo: Path, tmp_path: Path):
        handler = GitHandler()
        dep = make_dep(
            "origin", type="git", source=str(origin_repo), target="vendor", version="v1"
        )
        ctx = HandlerContext(dependency=dep)
        assert handler.test(ctx) is False

        handler.install(ctx)
        checkout = tmp_path / "vendor" / "origin"
        assert (checkout / "README").read_text() == "v1"
        assert handler.test(ctx) is True

        latest = make_dep("origin", type="git", source=str(origin_repo), target="vendor")
        assert handler.test(HandlerContext(dependency=latest)) is True

    @pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
    def test_wrong_ref(self, make_dep, origin_repo: Path):
        handler = GitHandler()
        dep = make_dep("origin", type="git", source=str(origin_repo), target="vendor")
        handler.install(HandlerContext(dependency=dep))

        pinned = make_dep("origin", type="git", source=str(origin_repo), target="vendor", version="v1")
        assert handler.test(HandlerContext(dependency=pinned)) is False

        unknown = make_dep("origin", type="git", source=str(origin_repo), target="vendor", version="v9")
        assert handler.test(HandlerContext(dependency=unknown)) is False

    @pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
    def test_clone_failure(self, make_dep, tmp_path: Path):
        dep = make_dep("missing", type="git", source=str(tmp_path / "nope"), target="vendor")
        with pytest.raises(HandlerError):
            GitHandler().install(HandlerContext(dependency=dep))
