"""Tests for qls/resolver.py"""

from pathlib import Path

import pytest

from qls import resolver
from qls.errors import ToolchainError
from qls.resolver import DEFAULT_DEBUG_FILE, resolve_toolchain


@pytest.fixture
def linux_host(monkeypatch):
    monkeypatch.setattr(resolver.sys, "platform", "linux")
    monkeypatch.setattr(resolver.platform, "machine", lambda: "x86_64")


@pytest.fixture
def ndk(tmp_path):
    bin_dir = tmp_path / "ndk" / "toolchains" / "llvm" / "prebuilt" / "linux-x86_64" / "bin"
    bin_dir.mkdir(parents=True)
    return tmp_path / "ndk", bin_dir


class TestHostTag:
    @pytest.mark.parametrize(
        "plat, machine, tag",
        [
            ("linux", "x86_64", "linux-x86_64"),
            ("linux", "aarch64", "linux-x86_64"),
            ("darwin", "arm64", "darwin-x86_64"),
            ("win32", "AMD64", "windows-x86_64"),
        ],
    )
    def test_tags(self, monkeypatch, plat, machine, tag):
        monkeypatch.setattr(resolver.sys, "platform", plat)
        monkeypatch.setattr(resolver.platform, "machine", lambda: machine)
        assert resolver.ndk_host_tag() == tag


class TestResolveToolchain:
    def test_from_environment(self, linux_host, ndk, tmp_path):
        ndk_home, bin_dir = ndk
        (bin_dir / "llvm-addr2line").write_text("")
        env = {"ANDROID_SDK_ROOT": str(tmp_path / "sdk"), "ANDROID_NDK_HOME": str(ndk_home)}

        paths = resolve_toolchain(env=env, cwd=tmp_path)

        assert paths.logcat == tmp_path / "sdk" / "platform-tools" / "adb"
        assert paths.addr2line == bin_dir / "llvm-addr2line"
        assert paths.debug_file == tmp_path / DEFAULT_DEBUG_FILE

    def test_falls_back_to_gnu_style_name(self, linux_host, ndk, tmp_path):
        ndk_home, bin_dir = ndk
        (bin_dir / "aarch64-linux-android-addr2line").write_text("")
        env = {"ANDROID_SDK_ROOT": "/sdk", "ANDROID_NDK_HOME": str(ndk_home)}

        paths = resolve_toolchain(env=env, cwd=tmp_path)
        assert paths.addr2line == bin_dir / "aarch64-linux-android-addr2line"

    def test_nothing_installed_uses_first_candidate(self, linux_host, ndk, tmp_path, caplog):
        ndk_home, bin_dir = ndk
        env = {"ANDROID_SDK_ROOT": "/sdk", "ANDROID_NDK_HOME": str(ndk_home)}
        paths = resolve_toolchain(env=env, cwd=tmp_path)
        assert paths.addr2line == bin_dir / "llvm-addr2line"
        assert "No addr2line found" in caplog.text

    def test_windows_executables(self, monkeypatch, tmp_path):
        monkeypatch.setattr(resolver.sys, "platform", "win32")
        env = {"ANDROID_SDK_ROOT": str(tmp_path / "sdk"), "ANDROID_NDK_HOME": str(tmp_path / "ndk")}
        paths = resolve_toolchain(env=env, cwd=tmp_path)
        assert paths.logcat.name == "adb.exe"
        assert paths.addr2line.name == "llvm-addr2line.exe"
        assert "windows-x86_64" in paths.addr2line.parts

    @pytest.mark.parametrize("missing", ["ANDROID_SDK_ROOT", "ANDROID_NDK_HOME"])
    def test_missing_env_fails(self, linux_host, missing, tmp_path):
        env = {"ANDROID_SDK_ROOT": "/sdk", "ANDROID_NDK_HOME": "/ndk"}
        del env[missing]
        with pytest.raises(ToolchainError, match=missing):
            resolve_toolchain(env=env, cwd=tmp_path)

    def test_empty_env_value_counts_as_missing(self, linux_host, tmp_path):
        with pytest.raises(ToolchainError):
            resolve_toolchain(env={"ANDROID_SDK_ROOT": "", "ANDROID_NDK_HOME": "/ndk"}, cwd=tmp_path)

    def test_overrides_skip_environment(self, tmp_path):
        paths = resolve_toolchain(
            env={},
            cwd=tmp_path,
            adb="/opt/adb",
            addr2line="/opt/addr2line",
            debug_file="/proj/libmain.so",
        )
        assert paths.logcat == Path("/opt/adb")
        assert paths.addr2line == Path("/opt/addr2line")
        assert paths.debug_file == Path("/proj/libmain.so")

    def test_replay_does_not_need_sdk(self, tmp_path):
        paths = resolve_toolchain(
            env={}, cwd=tmp_path, addr2line="/opt/addr2line", need_logcat=False
        )
        assert paths.logcat is None
