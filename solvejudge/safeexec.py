"""Running commands in an isolated container through the safeexec helper."""

from __future__ import annotations

import os
import posixpath
import re
import secrets
import shutil
import subprocess
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

CGROUP_ROOT = "/sys/fs/cgroup"
REPORT_FILE = "report.txt"

_INT_RE = re.compile(r"[+-]?[0-9]+")
_PROCESS_NAME_ATTEMPTS = 100


class SafeexecError(Exception):
    """Raised when the sandbox cannot be prepared, run or read."""


@dataclass
class SafeexecProcessConfig:
    """What to run in the sandbox and with which limits.

    ``stdin`` is a readable object, ``stdout`` and ``stderr`` writable
    objects; each may be a real file or an in-memory stream, or None.
    """

    time_limit: timedelta = timedelta(0)
    memory_limit: int = 0
    stdin: Any = None
    stdout: Any = None
    stderr: Any = None
    layers: list[str] = field(default_factory=list)
    environ: list[str] = field(default_factory=list)
    workdir: str = ""
    command: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SafeexecReport:
    """Resource usage and exit code of a sandboxed command."""

    memory: int = 0
    time: timedelta = timedelta(0)
    exit_code: int = 0


def _parse_int(value: str, what: str, bits: int) -> int:
    if not _INT_RE.fullmatch(value):
        raise SafeexecError(f"cannot parse {what}: {value!r}")
    number = int(value)
    bound = 1 << (bits - 1)
    if not -bound <= number < bound:
        raise SafeexecError(f"cannot parse {what}: {value!r} out of range")
    return number


def parse_report(text: str) -> SafeexecReport:
    """Parse the ``key value`` lines written by safeexec."""
    memory = 0
    time_ms = 0
    exit_code = 0
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    for line in lines:
        key, sep, value = line.removesuffix("\r").partition(" ")
        if not sep:
            raise SafeexecError("cannot read report")
        if key == "memory":
            memory = _parse_int(value, "memory", 64)
        elif key == "time":
            time_ms = _parse_int(value, "time", 64)
        elif key == "exit_code":
            exit_code = _parse_int(value, "exit_code", 32)
    return SafeexecReport(
        memory=memory, time=timedelta(milliseconds=time_ms), exit_code=exit_code
    )


def _fileno(stream: Any) -> int | None:
    try:
        return stream.fileno()
    except (AttributeError, OSError, ValueError):
        return None


def _stream_target(stream: Any) -> Any:
    if stream is None:
        return subprocess.DEVNULL
    if _fileno(stream) is not None:
        flush = getattr(stream, "flush", None)
        if flush is not None:
            flush()
        return stream
    return subprocess.PIPE


def _write_to(stream: Any, data: bytes) -> None:
    if stream is None or not data:
        return
    try:
        stream.write(data)
    except TypeError:
        stream.write(data.decode("utf-8", errors="replace"))


class SafeexecProcess:
    """A prepared sandbox directory and the command that runs in it."""

    def __init__(
        self,
        name: str,
        path: str,
        cgroup_path: str,
        command: list[str],
        config: SafeexecProcessConfig,
    ) -> None:
        self.name = name
        self.path = path
        self.cgroup_path = cgroup_path
        self.command = command
        self.config = config
        self._popen: subprocess.Popen | None = None

    @property
    def upper_dir(self) -> str:
        """Directory whose contents overlay the container filesystem."""
        return os.path.join(self.path, "upper")

    def start(self) -> None:
        """Launch safeexec without waiting for it."""
        if self._popen is not None:
            raise SafeexecError("process is already started")
        config = self.config
        stdout = _stream_target(config.stdout)
        if (
            config.stderr is not None
            and config.stderr is config.stdout
            and stdout is subprocess.PIPE
        ):
            stderr = subprocess.STDOUT
        else:
            stderr = _stream_target(config.stderr)
        self._popen = subprocess.Popen(
            self.command,
            stdin=_stream_target(config.stdin),
            stdout=stdout,
            stderr=stderr,
        )

    def wait(self) -> SafeexecReport:
        """Wait for safeexec to finish and return its report."""
        if self._popen is None:
            raise SafeexecError("process is not started")
        input_data = None
        if self._popen.stdin is not None:
            data = self.config.stdin.read()
            input_data = data.encode("utf-8") if isinstance(data, str) else data
        out, err = self._popen.communicate(input_data)
        _write_to(self.config.stdout, out)
        _write_to(self.config.stderr, err)
        if self._popen.returncode != 0:
            raise SafeexecError(
                f"safeexec exited with code {self._popen.returncode}"
            )
        with open(os.path.join(self.path, REPORT_FILE), encoding="utf-8") as file:
            return parse_report(file.read())

    def release(self) -> None:
        """Stop the process and remove everything it left behind."""
        if self._popen is not None:
            if self._popen.poll() is None:
                self._popen.kill()
            self._popen.wait()
            for stream in (self._popen.stdin, self._popen.stdout, self._popen.stderr):
                if stream is not None:
                    stream.close()
        try:
            os.rmdir(self.cgroup_path)
        except OSError:
            pass
        if os.path.lexists(self.path):
            shutil.rmtree(self.path)

    def __enter__(self) -> SafeexecProcess:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


@dataclass
class SafeexecProcessor:
    """Creates sandboxed processes run by the safeexec binary at ``path``."""

    path: str
    execution_path: str
    cgroup_path: str

    def create(self, config: SafeexecProcessConfig) -> SafeexecProcess:
        """Prepare a sandbox directory and the command for ``config``."""
        name, path, cgroup_path = self._prepare_process()
        time_limit_ms = config.time_limit // timedelta(milliseconds=1)
        args = [
            self.path,
            "--time-limit", str(time_limit_ms),
            "--memory-limit", str(config.memory_limit),
            "--overlay-lowerdir", ":".join(config.layers),
            "--overlay-upperdir", os.path.join(path, "upper"),
            "--overlay-workdir", os.path.join(path, "workdir"),
            "--rootfs", os.path.join(path, "rootfs"),
            "--cgroup-path", cgroup_path,
            "--report", os.path.join(path, REPORT_FILE),
        ]
        if config.workdir:
            args += ["--workdir", config.workdir]
        for env in config.environ:
            args += ["--env", env]
        args += config.command
        return SafeexecProcess(name, path, cgroup_path, args, config)

    def _create_process_name(self) -> str:
        for _ in range(_PROCESS_NAME_ATTEMPTS):
            name = secrets.token_hex(16)
            try:
                os.makedirs(os.path.join(self.execution_path, name))
            except FileExistsError:
                continue
            return name
        raise SafeexecError("cannot prepare process")

    def _prepare_process(self) -> tuple[str, str, str]:
        name = self._create_process_name()
        path = os.path.join(self.execution_path, name)
        cgroup_path = os.path.join(self.cgroup_path, name)
        try:
            os.rmdir(cgroup_path)
        except FileNotFoundError:
            pass
        except OSError:
            shutil.rmtree(path, ignore_errors=True)
            raise
        try:
            for sub in ("upper", "workdir", "rootfs"):
                os.mkdir(os.path.join(path, sub))
        except OSError:
            shutil.rmtree(path, ignore_errors=True)
            raise
        return name, path, cgroup_path


def setup_cgroup(path: str) -> None:
    """Create a cgroup and enable all of its controllers for children."""
    os.makedirs(path, exist_ok=True)
    with open(os.path.join(path, "cgroup.controllers"), encoding="utf-8") as controllers:
        fd = os.open(os.path.join(path, "cgroup.subtree_control"), os.O_WRONLY)
        try:
            for line in controllers.read().splitlines():
                for part in line.split(" "):
                    os.write(fd, f"+{part}".encode("utf-8"))
        finally:
            os.close(fd)


def get_cgroup_parent_path(cgroup_file: str = "/proc/self/cgroup") -> str:
    """Return the unified (v2) cgroup directory of the current process."""
    with open(cgroup_file, encoding="utf-8") as file:
        for line in file.read().splitlines():
            parts = line.split(":", 2)
            if len(parts) < 3:
                raise SafeexecError(f"invalid cgroup line: {line!r}")
            if parts[1] == "":
                return posixpath.normpath(
                    posixpath.join(CGROUP_ROOT, parts[2].lstrip("/"))
                )
    raise SafeexecError("cannot find cgroup path")


def new_safeexec_processor(
    path: str, execution_path: str, cgroup_name: str
) -> SafeexecProcessor:
    """Set up the cgroup and working directory used by safeexec."""
    cgroup_path = get_cgroup_parent_path()
    if cgroup_name:
        parent = posixpath.dirname(cgroup_path)
        if parent.startswith(CGROUP_ROOT):
            cgroup_path = posixpath.join(parent, cgroup_name)
    setup_cgroup(cgroup_path)
    os.makedirs(execution_path, exist_ok=True)
    return SafeexecProcessor(
        path=path, execution_path=execution_path, cgroup_path=cgroup_path
    )