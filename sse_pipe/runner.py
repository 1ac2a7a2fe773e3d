"""Run one command per event, exchanging data over its stdin and stdout.

The input is written from a helper thread while the caller reads stdout.
A plain write-then-read sequence deadlocks as soon as the child fills its
stdout pipe before it has consumed all of stdin.
"""
import errno
import logging
import shutil
import signal
import subprocess
import threading
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from .errors import ResourceError
from .options import RESPONSE_LIMIT

log = logging.getLogger(__name__)

READ_SIZE = 8192
# out of descriptors, processes or memory: the host is in trouble, not the command
RESOURCE_ERRNOS = {errno.EMFILE, errno.ENFILE, errno.EAGAIN, errno.ENOMEM}


@dataclass
class SubprocessResult:
    output: bytes = b""
    returncode: Optional[int] = None
    truncated: bool = False
    error: Optional[str] = None

    @property
    def signal(self) -> Optional[int]:
        if self.returncode is not None and self.returncode < 0:
            return -self.returncode
        return None

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and self.error is None


def _signal_name(signum):
    try:
        return signal.Signals(signum).name
    except ValueError:
        return "unknown"


def _write_input(stdin, data):
    try:
        if data:
            stdin.write(data)
    except BrokenPipeError:
        # the child exited or closed stdin without reading everything
        pass
    except OSError as e:
        if e.errno != errno.EINVAL:
            raise
    finally:
        try:
            stdin.close()
        except BrokenPipeError:
            pass


def _read_output(stdout, limit):
    chunks = []
    remaining = limit
    while remaining > 0:
        chunk = stdout.read1(min(READ_SIZE, remaining))
        if not chunk:
            return b"".join(chunks), False
        chunks.append(chunk)
        remaining -= len(chunk)
    # at the limit: anything else the child still has to say is dropped
    return b"".join(chunks), stdout.read1(1) != b""


def resolve(program: str) -> str:
    """Find ``program`` on the parent's PATH.

    The child environment is replaced wholesale and usually has no PATH of
    its own, so lookup happens here. Unresolvable names are returned as is.
    """
    return shutil.which(program) or program


def run_command(argv: Sequence[str], env: Mapping[str, str], data: bytes,
                limit: int = RESPONSE_LIMIT) -> SubprocessResult:
    """Run ``argv`` with environment ``env``, feeding ``data`` to its stdin.

    Returns at most ``limit`` bytes of the child's stdout. A child that can
    not be executed, exits non-zero, or dies of a signal is logged and
    reported in the result; it does not raise.

    Raises ResourceError when pipes or the process itself can't be created.
    """
    argv = list(argv)
    log.debug("Running %s", argv[0])
    try:
        proc = subprocess.Popen(
            [resolve(argv[0])] + argv[1:],
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            env=dict(env),
        )
    except OSError as e:
        if e.errno in RESOURCE_ERRNOS:
            raise ResourceError(f"cannot start {argv[0]}: {e}") from e
        log.error("%s: %s", argv[0], e.strerror or e)
        returncode = 126 if isinstance(e, PermissionError) else 127
        return SubprocessResult(returncode=returncode, error=str(e))
    except ValueError as e:
        # e.g. a server-sent field name containing "=" or a NUL byte
        log.error("%s: cannot build environment: %s", argv[0], e)
        return SubprocessResult(error=str(e))

    writer = threading.Thread(target=_write_input, args=(proc.stdin, data), daemon=True)
    writer.start()
    try:
        output, truncated = _read_output(proc.stdout, limit)
    finally:
        proc.stdout.close()
        writer.join()
        returncode = proc.wait()

    if truncated:
        log.warning("%s: output truncated at %d byte", argv[0], limit)

    result = SubprocessResult(output=output, returncode=returncode, truncated=truncated)
    if result.signal is not None:
        log.warning("child exited of signal %d (%s)", result.signal, _signal_name(result.signal))
    elif returncode != 0:
        log.warning("child exited with status %d", returncode)
    return result
