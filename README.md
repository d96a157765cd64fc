# solvejudge

Building blocks for a programming-contest judge. The package runs compilers
and programs inside an external sandbox binary. It also provides a queue of
background tasks with leases, collects permissions through a role
hierarchy, and builds ICPC-style contest standings. Only the standard
library is used.

## Modules

- `solvejudge.utils`: file helpers.
  - `make_temp_dir()` creates a randomly named directory in the system temp
    directory.
  - `copy_file(source, target)` copies a file together with its permission
    bits, and `copy_file_rec` first creates the target's parent
    directories.
  - `read_file(name, limit)` reads at most `limit` bytes as text, drops
    invalid UTF-8 and appends `"..."` when the file is longer.
- `solvejudge.safeexec`: drives the sandbox binary.
  - `new_safeexec_processor(path, execution_path, cgroup_name)` finds the
    current cgroup v2 directory, sets up a child cgroup and returns a
    `SafeexecProcessor`.
  - `SafeexecProcessor.create(config)` prepares a working directory (with
    `upper`, `workdir` and `rootfs`) for a `SafeexecProcessConfig`.
  - `SafeexecProcess` has `start()`, `wait()` and `release()`. It is also a
    context manager that releases the process on exit. `wait()` returns a
    `SafeexecReport` (`memory`, `time`, `exit_code`) read from the report
    file the sandbox writes. `parse_report(text)` parses that file on its
    own.
  - Failures raise `SafeexecError`.
- `solvejudge.compiler`: compilers and their images.
  - `Compiler.compile(CompileOptions)` returns a `CompileReport` whose log
    is cut at 2048 bytes.
  - `Compiler.execute(ExecuteOptions)` returns an `ExecuteReport`. Files
    are mapped in and out of the container with `MountFile`. The targets
    `stdin`, `stdout` and `stderr` are bound to the process streams.
  - A compiler is described by a `CompilerRecord` holding a
    `CompilerConfig` with `compile` and `execute` `CommandConfig`s. A
    compiler with no compile step copies the source to the target; one with
    no execute step does nothing.
  - `CompilerManager` resolves names through the `invoker.compilers.<name>`
    settings (`get_compiler_name`) and looks up records (`get_compiler`).
    It downloads each `.tar.gz` image once and unpacks it into its cache
    directory (`download_compiler`). Failures raise `CompilerError`.
- `solvejudge.standings`: `build_standings(begin_time, participants,
  problems, submissions, now)` builds the standings table.
  - Columns are the problems sorted by code.
  - Submissions made at or after `now` are ignored, and compilation errors
    do not count as attempts.
  - A solved problem scores its `points` (1 by default). It adds 20 penalty
    minutes for each earlier attempt, plus the whole minutes from the start
    to the accepted submission.
  - Rows are ordered managers first, then regular participants, then the
    rest. Within each kind they go by score descending, then by penalty.
- `solvejudge.tasks`: the task queue.
  - `register_task(kind, factory)` registers the implementation of a task
    kind, and `is_supported_task(kind)` checks for one.
  - `pop_queued_task(store)` claims a task from a `TaskStore` and wraps it
    in a `TaskGuard`. The guard has `set_status`, `set_state` and `ping`.
    These raise `TaskError` once the task is no longer running or its lease
    has expired.
  - `TaskContext` runs a background thread that renews the lease. It
    cancels the context when the lease is lost.
- `solvejudge.invoker`: `Invoker` takes tasks from a store and runs the
  registered implementation for each one.
  - `run_daemon_tick()` runs one task. `run_daemon(stop_event)` loops until
    the event is set.
  - The task is marked succeeded or failed depending on whether
    `execute(ctx)` raised.
- `solvejudge.accounts`: permissions.
  - `AccountManager.make_context(account)` starts from the role for the
    account: the guest role, the `<status>_user_group` role, or the scope
    user role. Settings can override each of these.
  - It walks the role edges and collects every built-in role it reaches
    into a `PermissionSet`.
  - The result is an `AccountContext`.
- `solvejudge.localizations`: `localization_settings()` returns the
  built-in Russian messages as `("localization.ru.<name>", text)` pairs.

## Examples

```python
from solvejudge.accounts import AccountManager, Role
from solvejudge.standings import (
    ContestProblem, Participant, ParticipantKind, Submission, build_standings,
)

manager = AccountManager(
    roles=[Role(1, "guest_group"), Role(2, "login", built_in=True)],
    role_edges=[(1, 2)],
)
assert manager.make_context(None).permissions == {"login"}

standings = build_standings(
    begin_time=1000,
    participants=[Participant(id=1, kind=ParticipantKind.REGULAR)],
    problems=[ContestProblem(id=10, code="A")],
    submissions=[
        Submission(1, participant_id=1, problem_id=10, create_time=1300,
                   verdict="wrong_answer"),
        Submission(2, participant_id=1, problem_id=10, create_time=1600,
                   verdict="accepted"),
    ],
    now=2000,
)
row = standings.rows[0]
assert (row.score, row.penalty) == (1, 30)
```

## What it does not do

- The package registers no task kinds of its own. It does not read problem
  packages, run tests against a checker or produce verdicts for a
  solution. Those are implementations you register with `register_task`.
- It has no file storage. `CompilerManager` expects an object with
  `download_file(file_id)`, and the task store, settings, compilers, roles
  and users are passed in by the caller.
- It has no database, no HTTP server and no command-line entry point.

## Requirements

Python 3.10 or later. Sandboxed execution runs on Linux only: it needs
cgroup v2 and the sandbox binary whose path you pass to
`new_safeexec_processor`.