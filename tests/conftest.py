"""Shared fixtures: scripted resolver child processes."""

import json
import sys

import pytest

from qls.symbolizer import Addr2LineProcess

# One line in, one line out, like "addr2line -f -C -p".
# argv[1]: JSON map address -> response, argv[2]: exit code on EOF.
# The address "crash" makes it exit without answering.
RESOLVER_SCRIPT = r"""
import json, sys
responses = json.loads(sys.argv[1])
exit_code = int(sys.argv[2])
for line in sys.stdin:
    addr = line.rstrip("\n")
    if addr == "crash":
        sys.exit(exit_code)
    sys.stdout.write(responses.get(addr, "fn_" + addr + " at src/lib.rs:1") + "\n")
    sys.stdout.flush()
sys.exit(exit_code)
"""

# Same protocol, but ignores its arguments so it can stand in for the real
# addr2line binary on the command line.
FAKE_ADDR2LINE = r"""
import sys
for line in sys.stdin:
    addr = line.rstrip("\n")
    sys.stdout.write("fn_" + addr + " at src/lib.rs:1\n")
    sys.stdout.flush()
"""


@pytest.fixture
def make_resolver():
    procs = []

    def _make(responses=None, exit_code=0):
        cmd = [
            sys.executable,
            "-c",
            RESOLVER_SCRIPT,
            json.dumps(responses or {}),
            str(exit_code),
        ]
        proc = Addr2LineProcess("addr2line", "libmain.so", cmd=cmd)
        procs.append(proc)
        return proc

    yield _make

    for proc in procs:
        proc.close()


@pytest.fixture
def fake_addr2line(tmp_path):
    if sys.platform.startswith("win"):
        pytest.skip("needs an executable script with a shebang")
    script = tmp_path / "fake-addr2line"
    script.write_text(f"#!{sys.executable}\n{FAKE_ADDR2LINE}")
    script.chmod(0o755)
    return script
