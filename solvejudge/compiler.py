"""Compilers that build and run programs inside the safeexec sandbox."""

from __future__ import annotations

import contextlib
import io
import logging
import os
import shutil
import tarfile
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Mapping

from .safeexec import (
    SafeexecError,
    SafeexecProcess,
    SafeexecProcessConfig,
    SafeexecProcessor,
)
from .utils import copy_file_rec

STDIN_FILE = "stdin"
STDOUT_FILE = "stdout"
STDERR_FILE = "stderr"
COMPILE_LOG_LIMIT = 2048
COMPILER_SETTING_PREFIX = "invoker.compilers."


class CompilerError(Exception):
    """Raised when a compiler cannot be prepared or run."""


@dataclass(frozen=True)
class MountFile:
    """A host file (``source``) mapped to a path in the container (``target``)."""

    source: str
    target: str


@dataclass(frozen=True)
class CompileReport:
    """Outcome of a compilation."""

    exit_code: int = 0
    used_time: timedelta = timedelta(0)
    used_memory: int = 0
    log: str = ""

    @property
    def success(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True)
class ExecuteReport:
    """Outcome of running a program."""

    exit_code: int = 0
    used_time: timedelta = timedelta(0)
    used_memory: int = 0

    @property
    def success(self) -> bool:
        return self.exit_code == 0


@dataclass
class CompileOptions:
    source: str
    target: str
    input_files: list[MountFile] = field(default_factory=list)
    time_limit: timedelta = timedelta(0)
    memory_limit: int = 0


@dataclass
class ExecuteOptions:
    binary: str = ""
    args: list[str] = field(default_factory=list)
    input_files: list[MountFile] = field(default_factory=list)
    output_files: list[MountFile] = field(default_factory=list)
    time_limit: timedelta = timedelta(0)
    memory_limit: int = 0


@dataclass
class CommandConfig:
    """How one step (compiling or executing) is run in the container."""

    command: str
    environ: list[str] = field(default_factory=list)
    workdir: str = ""
    source: str | None = None
    binary: str | None = None


@dataclass
class CompilerConfig:
    compile: CommandConfig | None = None
    execute: CommandConfig | None = None


@dataclass
class CompilerRecord:
    """A stored compiler: its name, image file and configuration."""

    name: str
    image_id: int
    config: CompilerConfig = field(default_factory=CompilerConfig)
    id: int = 0


class TruncateBuffer:
    """A writable buffer that silently keeps only the first ``limit`` bytes."""

    def __init__(self, limit: int = COMPILE_LOG_LIMIT) -> None:
        self.limit = limit
        self._data = bytearray()

    def write(self, data: bytes | str) -> int:
        size = len(data)
        raw = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        room = self.limit - len(self._data)
        if room > 0:
            self._data += raw[:room]
        return size

    def getvalue(self) -> str:
        return self._data.decode("utf-8", errors="replace")


def _container_path(upper: str, workdir: str, name: str) -> str:
    parts = [part.lstrip("/") for part in (workdir, name) if part]
    return os.path.join(upper, *parts)


def _copy(source: str, target: str, message: str) -> None:
    try:
        copy_file_rec(source, target)
    except OSError as err:
        raise CompilerError(f"{message}: {err}") from err


class Compiler:
    """A compiler image able to compile sources and run binaries."""

    def __init__(
        self,
        safeexec: SafeexecProcessor,
        name: str,
        config: CompilerConfig,
        path: str,
    ) -> None:
        self.safeexec = safeexec
        self.name = name
        self.config = config
        self.path = path

    def _create(self, config: SafeexecProcessConfig) -> SafeexecProcess:
        try:
            return self.safeexec.create(config)
        except (OSError, SafeexecError) as err:
            raise CompilerError(f"unable to create compiler: {err}") from err

    @staticmethod
    def _start(process: SafeexecProcess) -> None:
        try:
            process.start()
        except (OSError, SafeexecError) as err:
            raise CompilerError(f"cannot start compiler: {err}") from err

    def compile(self, options: CompileOptions) -> CompileReport:
        """Compile ``options.source`` into ``options.target``."""
        command = self.config.compile
        if command is None:
            _copy(options.source, options.target, "unable to copy source")
            return CompileReport()
        log = TruncateBuffer(COMPILE_LOG_LIMIT)
        process_config = SafeexecProcessConfig(
            layers=[self.path],
            command=command.command.split(),
            environ=list(command.environ),
            workdir=command.workdir,
            stdout=log,
            stderr=log,
            time_limit=options.time_limit,
            memory_limit=options.memory_limit,
        )
        with self._create(process_config) as process:
            upper = process.upper_dir
            if command.source is not None:
                _copy(
                    options.source,
                    _container_path(upper, command.workdir, command.source),
                    "unable to write source",
                )
            for file in options.input_files:
                _copy(
                    file.source,
                    _container_path(upper, command.workdir, file.target),
                    "unable to write file",
                )
            self._start(process)
            report = process.wait()
            if report.exit_code == 0 and command.binary is not None:
                _copy(
                    _container_path(upper, command.workdir, command.binary),
                    options.target,
                    "unable to copy binary",
                )
        return CompileReport(
            exit_code=report.exit_code,
            used_time=report.time,
            used_memory=report.memory,
            log=log.getvalue(),
        )

    def execute(self, options: ExecuteOptions) -> ExecuteReport:
        """Run ``options.binary`` in the container."""
        command = self.config.execute
        if command is None:
            return ExecuteReport()
        with contextlib.ExitStack() as stack:
            stdin = None
            for file in options.input_files:
                if file.target != STDIN_FILE:
                    continue
                try:
                    stdin = stack.enter_context(open(file.source, "rb"))
                except OSError as err:
                    raise CompilerError(f"cannot open input file: {err}") from err
                break
            stdout = None
            stderr = None
            for file in options.output_files:
                if file.target not in (STDOUT_FILE, STDERR_FILE):
                    continue
                try:
                    handle = stack.enter_context(open(file.source, "wb"))
                except OSError as err:
                    raise CompilerError(f"cannot create output file: {err}") from err
                if file.target == STDOUT_FILE:
                    stdout = handle
                else:
                    stderr = handle
                break
            process_config = SafeexecProcessConfig(
                layers=[self.path],
                command=command.command.split() + list(options.args),
                environ=list(command.environ),
                workdir=command.workdir,
                stdin=stdin,
                stdout=stdout,
                stderr=stderr,
                time_limit=options.time_limit,
                memory_limit=options.memory_limit,
            )
            process = stack.enter_context(self._create(process_config))
            upper = process.upper_dir
            if command.binary is not None:
                _copy(
                    options.binary,
                    _container_path(upper, command.workdir, command.binary),
                    "unable to write binary",
                )
            for file in options.input_files:
                if file.target == STDIN_FILE:
                    continue
                _copy(
                    file.source,
                    _container_path(upper, command.workdir, file.target),
                    "unable to write file",
                )
            self._start(process)
            report = process.wait()
            if report.exit_code == 0:
                for file in options.output_files:
                    if file.target in (STDOUT_FILE, STDERR_FILE):
                        continue
                    _copy(
                        _container_path(upper, command.workdir, file.target),
                        file.source,
                        "unable to copy file",
                    )
        return ExecuteReport(
            exit_code=report.exit_code,
            used_time=report.time,
            used_memory=report.memory,
        )


def _local_file_path(file: Any) -> str | None:
    if not isinstance(file, (io.BufferedReader, io.FileIO)):
        return None
    name = getattr(file, "name", None)
    if isinstance(name, str) and os.path.isfile(name):
        return name
    return None


def _extract_tar_gz(archive: str, target: str) -> None:
    os.makedirs(target, exist_ok=True)
    with tarfile.open(archive, "r:gz") as tar:
        if hasattr(tarfile, "data_filter"):
            tar.extractall(target, filter="data")
        else:
            tar.extractall(target)


class CompilerManager:
    """Finds compilers and keeps their images unpacked in a cache directory.

    ``files`` provides ``download_file(file_id)`` returning a readable binary
    file; ``compilers`` maps compiler names to records and ``settings`` maps
    setting keys to values.
    """

    def __init__(
        self,
        files: Any,
        cache_dir: str,
        safeexec: SafeexecProcessor,
        compilers: Mapping[str, CompilerRecord],
        settings: Mapping[str, str],
        logger: logging.Logger | None = None,
    ) -> None:
        os.makedirs(cache_dir, exist_ok=True)
        self.files = files
        self.cache_dir = cache_dir
        self.safeexec = safeexec
        self.compilers = compilers
        self.settings = settings
        self.logger = logger or logging.getLogger(__name__)
        self._images: dict[int, Future[str]] = {}
        self._lock = threading.Lock()

    def get_compiler_name(self, name: str) -> str:
        """Resolve an alias such as ``polygon.cpp.g++17`` to a compiler name."""
        try:
            return self.settings[COMPILER_SETTING_PREFIX + name]
        except KeyError:
            raise CompilerError(f"cannot get compiler {name!r}") from None

    def get_compiler(self, name: str) -> Compiler:
        record = self.compilers.get(name)
        if record is None:
            raise CompilerError(f"compiler {name!r} not found")
        return self.download_compiler(record)

    def download_compiler(self, record: CompilerRecord) -> Compiler:
        image_path = self._download_image(record.image_id)
        return Compiler(self.safeexec, record.name, record.config, image_path)

    def _image_path(self, image_id: int) -> str:
        return os.path.join(self.cache_dir, f"image-{image_id}")

    def _download_image(self, image_id: int) -> str:
        with self._lock:
            future = self._images.get(image_id)
            owner = future is None
            if future is None:
                future = Future()
                self._images[image_id] = future
        if owner:
            try:
                future.set_result(self._run_download_image(image_id))
            except Exception as err:
                self._delete_image(image_id)
                future.set_exception(err)
        return future.result()

    def _run_download_image(self, image_id: int) -> str:
        local_archive = os.path.join(self.cache_dir, f"image-{image_id}.tar.gz")
        with contextlib.suppress(FileNotFoundError):
            os.remove(local_archive)
        image_path = self._image_path(image_id)
        shutil.rmtree(image_path, ignore_errors=True)
        with self.files.download_file(image_id) as image_file:
            archive = _local_file_path(image_file)
            copied = archive is None
            if copied:
                archive = local_archive
                with open(local_archive, "wb") as out:
                    shutil.copyfileobj(image_file, out)
            try:
                _extract_tar_gz(archive, image_path)
            except (OSError, tarfile.TarError) as err:
                raise CompilerError(f"cannot extract image: {err}") from err
            finally:
                if copied:
                    with contextlib.suppress(FileNotFoundError):
                        os.remove(local_archive)
        return image_path

    def _delete_image(self, image_id: int) -> None:
        with self._lock:
            shutil.rmtree(self._image_path(image_id), ignore_errors=True)
            self._images.pop(image_id, None)