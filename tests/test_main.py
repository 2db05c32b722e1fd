"""Tests for qls/main.py"""

import io
import logging

import pytest

from qls.main import build_argparser, build_config, main, make_output_sink, parse_loglevel, run
from qls.output_formatter import PipelineConfig
from qls.parser import Severity
from qls.pipeline import OutputLine

from logsamples import PACKAGE, crash_frame_line, logcat_line


@pytest.fixture
def capture_log(tmp_path):
    f = tmp_path / "capture.log"
    f.write_text(
        "".join(
            [
                logcat_line("I", f"{PACKAGE}: info"),
                logcat_line("E", f"{PACKAGE}: error"),
                crash_frame_line(0, "0000000000001a2b"),
            ]
        ),
        encoding="utf-8",
    )
    return f


def _args(*argv):
    return build_argparser().parse_args(list(argv))


class TestArgs:
    def test_short_flags(self):
        args = _args("-p", PACKAGE, "-v", "2", "-t", "-r")
        assert build_config(args) == PipelineConfig(PACKAGE, 2, True, True)

    def test_defaults(self):
        args = _args()
        cfg = build_config(args)
        assert cfg.target_package == PipelineConfig.DEFAULT_PACKAGE
        assert cfg.verbosity == 0
        assert not cfg.raw_stacktrace_only
        assert not cfg.include_timestamp

    @pytest.mark.parametrize("value, expected", [("3", 3), ("abc", 0), (None, 0), ("7", 7)])
    def test_parse_loglevel(self, value, expected):
        assert parse_loglevel(value) == expected

    def test_out_of_range_loglevel(self):
        assert build_config(_args("-v", "7")).verbosity == 0


class TestOutputSink:
    def test_writes_every_level(self):
        stream = io.StringIO()
        sink = make_output_sink(stream)
        sink(OutputLine(Severity.DEBUG, "debug line"))
        sink(OutputLine(Severity.FATAL, "[Rust stacktrace] fn at a.rs:1"))
        assert stream.getvalue().splitlines() == [
            "[DEBUG] debug line",
            "[ERROR] [Rust stacktrace] fn at a.rs:1",
        ]


class TestRun:
    def test_replay_with_fake_addr2line(self, capture_log, fake_addr2line, tmp_path):
        args = _args(
            "-p", PACKAGE,
            "--input", str(capture_log),
            "--addr2line", str(fake_addr2line),
            "--debug-file", str(tmp_path / "libmain.so"),
        )
        out = []
        assert run(args, build_config(args), sink=out.append) == 0
        assert [o.text for o in out] == [
            f"{PACKAGE}: error",
            crash_frame_line(0, "0000000000001a2b").split(" F ", 1)[1].strip(),
            "[Rust stacktrace] fn_0000000000001a2b at src/lib.rs:1",
        ]

    def test_raw_mode(self, capture_log, fake_addr2line, tmp_path):
        args = _args(
            "-p", PACKAGE, "-r", "-v", "3",
            "--input", str(capture_log),
            "--addr2line", str(fake_addr2line),
            "--debug-file", str(tmp_path / "libmain.so"),
        )
        out = []
        assert run(args, build_config(args), sink=out.append) == 0
        assert [o.text for o in out] == ["[Rust stacktrace] fn_0000000000001a2b at src/lib.rs:1"]

    def test_unspawnable_resolver(self, capture_log, tmp_path):
        args = _args(
            "--input", str(capture_log),
            "--addr2line", str(tmp_path / "missing-addr2line"),
        )
        assert run(args, build_config(args), sink=[].append) == 1

    def test_missing_log_file(self, fake_addr2line, tmp_path):
        args = _args(
            "--input", str(tmp_path / "missing.log"),
            "--addr2line", str(fake_addr2line),
        )
        assert run(args, build_config(args), sink=[].append) == 1


class TestMain:
    def test_missing_env_exits_nonzero(self, monkeypatch, capture_log, caplog):
        monkeypatch.delenv("ANDROID_SDK_ROOT", raising=False)
        monkeypatch.delenv("ANDROID_NDK_HOME", raising=False)
        with caplog.at_level(logging.ERROR):
            with pytest.raises(SystemExit) as exc:
                main(["-p", PACKAGE, "--input", str(capture_log)])
        assert exc.value.code == 1
        assert "ANDROID_NDK_HOME env var not set" in caplog.text

    def test_clean_end_of_stream(self, capture_log, fake_addr2line, tmp_path, capsys):
        main([
            "-p", PACKAGE,
            "--input", str(capture_log),
            "--addr2line", str(fake_addr2line),
            "--debug-file", str(tmp_path / "libmain.so"),
        ])
        stdout = capsys.readouterr().out
        assert f"[ERROR] {PACKAGE}: error" in stdout
        assert "[ERROR] [Rust stacktrace] fn_0000000000001a2b at src/lib.rs:1" in stdout
        assert f"{PACKAGE}: info" not in stdout
