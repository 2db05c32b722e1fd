#!/usr/bin/env python3
"""
main.py

Main entry point for the Quick Logcat Symbolizer (QLS).

Responsibilities:
  - Provide the CLI interface
  - Resolve adb / addr2line / debug library paths (resolver.py)
  - Start the log source and the persistent addr2line process
  - Run the per-line pipeline until the log stream ends

Run it from the project root (where ./target is accessible) with
ANDROID_SDK_ROOT and ANDROID_NDK_HOME set:

    qls -p com.example.app -v 2
    qls -p com.example.app --rust
    adb logcat -d | qls -p com.example.app --input -
"""

from __future__ import annotations

import argparse
import logging
import sys
from contextlib import ExitStack
from typing import Iterable, List, Optional, TextIO

from qls.elf_info import check_debug_file
from qls.errors import LogSourceError, SymbolizerError, ToolchainError
from qls.logcat import LogcatProcess, read_lines
from qls.output_formatter import PipelineConfig, level_for_verbosity
from qls.pipeline import OutputLine, Pipeline, Sink
from qls.resolver import resolve_toolchain
from qls.symbolizer import Addr2LineProcess


LOG = logging.getLogger("qls")

OUTPUT_LOGGER = "qls.output"


# ---------------------------------------------------------------------------
# CLI helpers
# ---------------------------------------------------------------------------

def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="qls",
        description=(
            "Quick Logcat Symbolizer (QLS) - follow an Android app's logcat and "
            "symbolize native crash frames with addr2line."
        ),
        epilog=(
            "ANDROID_SDK_ROOT and ANDROID_NDK_HOME need to point at the SDK and NDK "
            "unless --adb / --addr2line are given."
        ),
    )
    p.add_argument(
        "-p",
        "--package",
        default="",
        help="The Android package name to follow.",
    )
    p.add_argument(
        "-v",
        "--loglevel",
        metavar="N",
        default="0",
        help="Log level, 0 (errors only) to 3 (everything). Default: 0.",
    )
    p.add_argument(
        "-t",
        "--time",
        action="store_true",
        help="Prefix output lines with the logcat timestamp.",
    )
    p.add_argument(
        "-r",
        "--rust",
        action="store_true",
        help="Output only the symbolized (Rust) stacktrace.",
    )
    p.add_argument(
        "--adb",
        help="Explicit adb binary. Default: $ANDROID_SDK_ROOT/platform-tools/adb.",
    )
    p.add_argument(
        "--addr2line",
        help="Explicit addr2line binary. Default: llvm-addr2line from $ANDROID_NDK_HOME.",
    )
    p.add_argument(
        "--debug-file",
        help="Library to symbolize against. Default: ./target/aarch64-linux-android/debug/libmain.so.",
    )
    p.add_argument(
        "--input",
        metavar="FILE",
        help="Read a captured log from FILE ('-' for stdin) instead of running adb logcat.",
    )
    p.add_argument(
        "--no-demangle",
        action="store_true",
        help="Do not pass -C to addr2line.",
    )
    return p


def parse_loglevel(value: Optional[str]) -> int:
    """
    Parse the -v value. Anything that is not an integer counts as 0;
    range checking happens in PipelineConfig.create().
    """
    try:
        return int(value) if value is not None else 0
    except ValueError:
        LOG.warning("Log level %r is not a number; using 0", value)
        return 0


def make_output_sink(stream: Optional[TextIO] = None) -> Sink:
    """
    Return a sink writing emitted lines through a dedicated logger.

    The logger does not propagate and has no level of its own, so only the
    output policy decides what reaches the stream.
    """
    out = logging.getLogger(OUTPUT_LOGGER)
    out.propagate = False
    out.setLevel(logging.DEBUG)
    for h in list(out.handlers):
        out.removeHandler(h)
    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    out.addHandler(handler)

    def sink(line: OutputLine) -> None:
        out.log(line.severity.log_level, "%s", line.text)

    return sink


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def build_config(args: argparse.Namespace) -> PipelineConfig:
    return PipelineConfig.create(
        target_package=args.package,
        verbosity=parse_loglevel(args.loglevel),
        raw_stacktrace_only=args.rust,
        include_timestamp=args.time,
    )


def run(
    args: argparse.Namespace,
    config: PipelineConfig,
    sink: Optional[Sink] = None,
) -> int:
    """
    Start the log source and the resolver, then run the pipeline until the
    log stream ends.

    Returns the process exit code.
    """
    try:
        paths = resolve_toolchain(
            adb=args.adb,
            addr2line=args.addr2line,
            debug_file=args.debug_file,
            need_logcat=args.input is None,
        )
    except ToolchainError as e:
        LOG.error("%s", e)
        return 1

    check_debug_file(paths.debug_file)

    with ExitStack() as stack:
        try:
            lines: Iterable[str]
            if args.input is not None:
                lines = read_lines(args.input)
            else:
                lines = stack.enter_context(LogcatProcess(paths.logcat))
            symbolizer = Addr2LineProcess(
                paths.addr2line,
                paths.debug_file,
                demangle=not args.no_demangle,
            )
        except (LogSourceError, SymbolizerError) as e:
            LOG.error("%s", e)
            return 1

        pipeline = Pipeline(
            config,
            symbolizer,
            sink if sink is not None else make_output_sink(),
        )
        try:
            pipeline.run(lines)
        except KeyboardInterrupt:
            LOG.info("Interrupted")
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    args = build_argparser().parse_args(argv)

    logging.basicConfig(
        level=logging.WARNING,
        format="[%(levelname)s] %(message)s",
    )
    config = build_config(args)
    logging.getLogger().setLevel(level_for_verbosity(config.verbosity))
    LOG.debug("Config: %s", config)

    code = run(args, config)
    if code:
        raise SystemExit(code)


if __name__ == "__main__":
    main()
