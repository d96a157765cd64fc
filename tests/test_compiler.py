import io
import os
import sys
import tarfile
from datetime import timedelta

import pytest

from solvejudge.compiler import (
    CommandConfig,
    CompileOptions,
    CompileReport,
    Compiler,
    CompilerConfig,
    CompilerError,
    CompilerManager,
    CompilerRecord,
    ExecuteOptions,
    ExecuteReport,
    MountFile,
    TruncateBuffer,
)
from solvejudge.safeexec import SafeexecProcessor

FAKE_SAFEEXEC = """
import os
import subprocess
import sys

args = sys.argv[1:]
opts = {}
while args and args[0].startswith("--"):
    opts.setdefault(args[0], []).append(args[1])
    args = args[2:]
upper = opts["--overlay-upperdir"][0]
workdir = opts.get("--workdir", [""])[0].lstrip("/")
cwd = os.path.join(upper, workdir)
os.makedirs(cwd, exist_ok=True)
env = dict(os.environ)
for item in opts.get("--env", []):
    key, _, value = item.partition("=")
    env[key] = value
code = subprocess.call(args, cwd=cwd, env=env)
with open(opts["--report"][0], "w") as report:
    report.write("memory 1024\\ntime 7\\nexit_code %d\\n" % code)
"""


@pytest.fixture
def processor(tmp_path):
    script = tmp_path / "safeexec"
    script.write_text(f"#!{sys.executable}\n" + FAKE_SAFEEXEC)
    script.chmod(0o755)
    cgroup = tmp_path / "cgroup"
    cgroup.mkdir()
    return SafeexecProcessor(
        path=str(script),
        execution_path=str(tmp_path / "exec"),
        cgroup_path=str(cgroup),
    )


@pytest.fixture
def layer(tmp_path):
    path = tmp_path / "layer"
    path.mkdir()
    return str(path)


def test_truncate_buffer_keeps_prefix():
    buffer = TruncateBuffer(limit=5)
    assert buffer.write(b"abc") == 3
    assert buffer.write(b"defgh") == 5
    assert buffer.write(b"ij") == 2
    assert buffer.getvalue() == "abcde"


def test_compile_without_command_copies_source(tmp_path, processor, layer):
    source = tmp_path / "main.py"
    source.write_bytes(b"print(1)\n")
    target = tmp_path / "out" / "main"
    compiler = Compiler(processor, "python", CompilerConfig(), layer)
    report = compiler.compile(CompileOptions(source=str(source), target=str(target)))
    assert report == CompileReport()
    assert report.success
    assert target.read_bytes() == b"print(1)\n"


def test_compile_runs_command_and_copies_binary(tmp_path, processor, layer):
    source = tmp_path / "main.c"
    source.write_bytes(b"int main() {}\n")
    target = tmp_path / "main"
    config = CompilerConfig(
        compile=CommandConfig(
            command="cp source.txt binary",
            workdir="/box",
            source="source.txt",
            binary="binary",
        )
    )
    compiler = Compiler(processor, "gcc", config, layer)
    report = compiler.compile(
        CompileOptions(
            source=str(source), target=str(target), time_limit=timedelta(seconds=20)
        )
    )
    assert report.success
    assert report.used_time == timedelta(milliseconds=7)
    assert report.used_memory == 1024
    assert target.read_bytes() == b"int main() {}\n"
    assert os.listdir(processor.execution_path) == []


def test_compile_failure_collects_log(tmp_path, processor, layer):
    source = tmp_path / "main.c"
    source.write_bytes(b"x")
    target = tmp_path / "main"
    config = CompilerConfig(
        compile=CommandConfig(command="cat missing.txt", binary="binary")
    )
    compiler = Compiler(processor, "gcc", config, layer)
    report = compiler.compile(CompileOptions(source=str(source), target=str(target)))
    assert not report.success
    assert "missing.txt" in report.log
    assert not target.exists()


def test_compile_passes_environment(tmp_path, processor, layer):
    source = tmp_path / "main.c"
    source.write_bytes(b"x")
    config = CompilerConfig(
        compile=CommandConfig(command="sh -c env", environ=["SOLVE_FLAG=on"])
    )
    compiler = Compiler(processor, "gcc", config, layer)
    report = compiler.compile(
        CompileOptions(source=str(source), target=str(tmp_path / "main"))
    )
    assert report.success
    assert "SOLVE_FLAG=on" in report.log


def test_compile_input_files_are_mounted(tmp_path, processor, layer):
    source = tmp_path / "main.c"
    source.write_bytes(b"x")
    header = tmp_path / "testlib.h"
    header.write_bytes(b"header")
    target = tmp_path / "main"
    config = CompilerConfig(
        compile=CommandConfig(command="cp testlib.h binary", binary="binary")
    )
    compiler = Compiler(processor, "gcc", config, layer)
    report = compiler.compile(
        CompileOptions(
            source=str(source),
            target=str(target),
            input_files=[MountFile(source=str(header), target="testlib.h")],
        )
    )
    assert report.success
    assert target.read_bytes() == b"header"


def test_execute_without_command_returns_empty_report(tmp_path, processor, layer):
    compiler = Compiler(processor, "gcc", CompilerConfig(), layer)
    assert compiler.execute(ExecuteOptions(binary=str(tmp_path / "x"))) == ExecuteReport()


def test_execute_stdin_to_stdout(tmp_path, processor, layer):
    binary = tmp_path / "solution"
    binary.write_bytes(b"bin")
    input_path = tmp_path / "test.in"
    input_path.write_bytes(b"1 2\n")
    output_path = tmp_path / "test.out"
    config = CompilerConfig(execute=CommandConfig(command="cat", binary="solution"))
    compiler = Compiler(processor, "gcc", config, layer)
    report = compiler.execute(
        ExecuteOptions(
            binary=str(binary),
            input_files=[MountFile(source=str(input_path), target="stdin")],
            output_files=[MountFile(source=str(output_path), target="stdout")],
            time_limit=timedelta(seconds=1),
        )
    )
    assert report.success
    assert output_path.read_bytes() == b"1 2\n"


def test_execute_passes_args_and_files(tmp_path, processor, layer):
    data = tmp_path / "data"
    data.write_bytes(b"payload")
    output_path = tmp_path / "out"
    config = CompilerConfig(execute=CommandConfig(command="cat"))
    compiler = Compiler(processor, "gcc", config, layer)
    report = compiler.execute(
        ExecuteOptions(
            args=["data.txt"],
            input_files=[MountFile(source=str(data), target="data.txt")],
            output_files=[MountFile(source=str(output_path), target="stdout")],
        )
    )
    assert report.exit_code == 0
    assert output_path.read_bytes() == b"payload"


def test_execute_copies_output_files(tmp_path, processor, layer):
    data = tmp_path / "data"
    data.write_bytes(b"result")
    result = tmp_path / "result"
    config = CompilerConfig(
        execute=CommandConfig(command="cp input.txt result.txt", workdir="/box")
    )
    compiler = Compiler(processor, "gcc", config, layer)
    report = compiler.execute(
        ExecuteOptions(
            input_files=[MountFile(source=str(data), target="input.txt")],
            output_files=[MountFile(source=str(result), target="result.txt")],
        )
    )
    assert report.success
    assert result.read_bytes() == b"result"
    assert os.listdir(processor.execution_path) == []


def test_execute_failure_reports_exit_code(tmp_path, processor, layer):
    config = CompilerConfig(execute=CommandConfig(command="false"))
    compiler = Compiler(processor, "gcc", config, layer)
    report = compiler.execute(ExecuteOptions())
    assert not report.success
    assert report.exit_code != 0


def test_execute_missing_stdin_raises(tmp_path, processor, layer):
    config = CompilerConfig(execute=CommandConfig(command="cat"))
    compiler = Compiler(processor, "gcc", config, layer)
    with pytest.raises(CompilerError):
        compiler.execute(
            ExecuteOptions(
                input_files=[MountFile(source=str(tmp_path / "nope"), target="stdin")]
            )
        )


def _image_bytes():
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        content = b"tool"
        info = tarfile.TarInfo("bin/tool")
        info.size = len(content)
        tar.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


class _Files:
    def __init__(self, data=None, path=None):
        self.data = data
        self.path = path
        self.calls = 0

    def download_file(self, file_id):
        self.calls += 1
        if self.path is not None:
            return open(self.path, "rb")
        if self.data is None:
            raise FileNotFoundError(f"file {file_id} missing")
        return io.BytesIO(self.data)


def _manager(tmp_path, processor, files, settings=None):
    record = CompilerRecord(
        name="gcc",
        image_id=5,
        config=CompilerConfig(execute=CommandConfig(command="cat")),
    )
    return CompilerManager(
        files,
        str(tmp_path / "cache"),
        processor,
        {"gcc": record},
        settings or {},
    )


def test_get_compiler_name(tmp_path, processor):
    manager = _manager(
        tmp_path, processor, _Files(), {"invoker.compilers.polygon.cpp.g++17": "gcc"}
    )
    assert manager.get_compiler_name("polygon.cpp.g++17") == "gcc"
    with pytest.raises(CompilerError):
        manager.get_compiler_name("polygon.unknown")


def test_get_compiler_downloads_image_once(tmp_path, processor):
    files = _Files(data=_image_bytes())
    manager = _manager(tmp_path, processor, files)
    first = manager.get_compiler("gcc")
    second = manager.get_compiler("gcc")
    assert first.name == "gcc"
    assert first.path == second.path
    assert files.calls == 1
    with open(os.path.join(first.path, "bin", "tool"), "rb") as file:
        assert file.read() == b"tool"
    assert not os.path.exists(os.path.join(manager.cache_dir, "image-5.tar.gz"))


def test_download_from_local_file_keeps_archive(tmp_path, processor):
    archive = tmp_path / "image.tar.gz"
    archive.write_bytes(_image_bytes())
    manager = _manager(tmp_path, processor, _Files(path=str(archive)))
    compiler = manager.get_compiler("gcc")
    assert archive.exists()
    assert os.path.isfile(os.path.join(compiler.path, "bin", "tool"))


def test_failed_download_is_retried(tmp_path, processor):
    files = _Files()
    manager = _manager(tmp_path, processor, files)
    with pytest.raises(FileNotFoundError):
        manager.get_compiler("gcc")
    with pytest.raises(FileNotFoundError):
        manager.get_compiler("gcc")
    assert files.calls == 2
    assert os.listdir(manager.cache_dir) == []


def test_unknown_compiler_raises(tmp_path, processor):
    manager = _manager(tmp_path, processor, _Files())
    with pytest.raises(CompilerError):
        manager.get_compiler("missing")