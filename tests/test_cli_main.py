"""Tests for tsgrammars CLI entrypoints."""

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

import tsgrammars.main as main
from tsgrammars.cli import build as build_module
from tsgrammars.cli import install as install_module
from tsgrammars.config import BuildConfig
from tsgrammars.errors import DownloadFailed, PartialBuildFailure, SubprocessFailed


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(main, "setup_logging", lambda *a, **k: None)


def test_main_dispatches_compile_with_overrides(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    captured: dict[str, object] = {}

    def fake_compile_command(args, config, console=None) -> int:
        captured["args"] = args
        captured["config"] = config
        return 0

    monkeypatch.setattr(main, "compile_command", fake_compile_command)

    exit_code = main.main(
        [
            "--root",
            str(tmp_path),
            "-w",
            "3",
            "-c",
            '{"host_os": "linux"}',
            "compile",
            "foo",
            "bar",
            "--clean",
            "--target",
            "aarch64-apple-darwin",
        ]
    )

    assert exit_code == 0
    args = captured["args"]
    config = captured["config"]
    assert args.languages == ["foo", "bar"]
    assert args.clean is True
    assert args.target == "aarch64-apple-darwin"
    assert isinstance(config, BuildConfig)
    assert config.root_dir == tmp_path.resolve()
    assert config.max_workers == 3


def test_main_without_command_prints_help(capsys: pytest.CaptureFixture[str]) -> None:
    assert main.main([]) == 1
    assert "create-bundle" in capsys.readouterr().out


def test_invalid_configuration_exit_code(tmp_path: Path) -> None:
    assert main.main(["--root", str(tmp_path), "-w", "0", "status"]) == 2


def test_install_dispatch(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    captured: dict[str, object] = {}

    def fake_install_command(args, config) -> int:
        captured["args"] = args
        return 0

    monkeypatch.setattr(main, "install_command", fake_install_command)

    argv = ["--root", str(tmp_path), "install", "--version", "0.12.1", "--skip-if-current"]

    assert main.main(argv) == 0
    args = captured["args"]
    assert args.version == "0.12.1"
    assert args.skip_if_current is True
    assert args.platform is None


def test_partial_failure_maps_to_exit_code_one(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    class FailingPipeline:
        def __init__(self, *args, **kwargs) -> None:
            pass

        def create_bundle(self, clean=False, target=None):
            raise PartialBuildFailure(
                [("bar", SubprocessFailed("cc", ["-o", "bar.so"], 1))],
                bundle_path=tmp_path / "dist" / "b.tar.gz",
            )

    monkeypatch.setattr(build_module, "BuildPipeline", FailingPipeline)
    config = BuildConfig(root_dir=tmp_path, host_os="linux")
    args = SimpleNamespace(clean=False, target=None, no_progress=True)

    assert build_module.bundle_command(args, config) == 1


def test_install_failure_maps_to_exit_code_one(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    class FailingInstaller:
        def __init__(self, *args, **kwargs) -> None:
            pass

        def __enter__(self):
            return self

        def __exit__(self, *exc_info) -> None:
            pass

        def install(self, **kwargs) -> bool:
            raise DownloadFailed("https://example.invalid/b.tar.gz", "HTTP 500", status=500)

    monkeypatch.setattr(install_module, "Installer", FailingInstaller)
    config = BuildConfig(root_dir=tmp_path, host_os="linux")
    args = SimpleNamespace(
        version=None, platform=None, skip_if_current=False, keep_archive=False
    )

    assert install_module.install_command(args, config) == 1


def test_filesystem_error_during_install_maps_to_exit_code_one(tmp_path: Path) -> None:
    not_a_dir = tmp_path / "grammars"
    not_a_dir.write_text("occupied", encoding="utf-8")

    argv = [
        "--root",
        str(tmp_path),
        "--artifact-dir",
        str(not_a_dir),
        "-c",
        '{"host_os": "linux"}',
        "install",
        "--platform",
        "x86_64-unknown-linux-gnu",
    ]

    assert main.main(argv) == 1


def test_filesystem_error_during_build_maps_to_exit_code_one(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    class ReadOnlyPipeline:
        def __init__(self, *args, **kwargs) -> None:
            pass

        def create_bundle(self, clean=False, target=None):
            raise PermissionError(13, "Permission denied", str(tmp_path / "dist"))

    monkeypatch.setattr(build_module, "BuildPipeline", ReadOnlyPipeline)
    config = BuildConfig(root_dir=tmp_path, host_os="linux")
    args = SimpleNamespace(clean=False, target=None, no_progress=True)

    assert build_module.bundle_command(args, config) == 1
