"""Contest standings built from participants' submissions."""

from __future__ import annotations

import enum
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

ACCEPTED = "accepted"
COMPILATION_ERROR = "compilation_error"
ATTEMPT_PENALTY = 20


class ParticipantKind(str, enum.Enum):
    REGULAR = "regular"
    UPSOLVING = "upsolving"
    MANAGER = "manager"


@dataclass(frozen=True)
class Participant:
    """A contest participant; ``begin_time`` overrides the contest start
    for regular participants when non-zero."""

    id: int
    kind: ParticipantKind
    account_id: int = 0
    begin_time: int = 0


@dataclass(frozen=True)
class ContestProblem:
    id: int
    code: str
    problem_id: int = 0
    points: int | None = None


@dataclass(frozen=True)
class Submission:
    """A solution sent to a contest problem.

    ``verdict`` is None while the solution has not been judged yet;
    otherwise it is a verdict name such as ``"accepted"``.
    """

    id: int
    participant_id: int
    problem_id: int
    create_time: int
    verdict: str | None = None


@dataclass(frozen=True)
class StandingsColumn:
    problem: ContestProblem


@dataclass
class StandingsCell:
    column: int
    verdict: str | None = None
    attempt: int = 0
    time: int = 0


@dataclass
class StandingsRow:
    participant: Participant
    cells: list[StandingsCell] = field(default_factory=list)
    score: int = 0
    penalty: int = 0


@dataclass
class Standings:
    columns: list[StandingsColumn] = field(default_factory=list)
    rows: list[StandingsRow] = field(default_factory=list)


def participant_order(kind: ParticipantKind) -> int:
    """Managers come first, then regular participants, then the rest."""
    if kind == ParticipantKind.MANAGER:
        return 0
    if kind == ParticipantKind.REGULAR:
        return 1
    return 2


def problem_score(problem: ContestProblem) -> int:
    """Points for solving ``problem``; one unless configured otherwise."""
    return problem.points if problem.points is not None else 1


def _build_cell(
    column: int, submissions: list[Submission], begin_time: int, now: int
) -> StandingsCell:
    cell = StandingsCell(column=column)
    for submission in sorted(submissions, key=lambda s: (s.create_time, s.id)):
        if submission.create_time >= now:
            continue
        if submission.verdict is None:
            cell.attempt += 1
            cell.verdict = None
            break
        if submission.verdict == COMPILATION_ERROR:
            continue
        cell.attempt += 1
        cell.verdict = submission.verdict
        if begin_time:
            cell.time = max(submission.create_time - begin_time, 0)
        if submission.verdict == ACCEPTED:
            break
    return cell


def build_standings(
    begin_time: int,
    participants: Iterable[Participant],
    problems: Iterable[ContestProblem],
    submissions: Iterable[Submission],
    now: int | datetime,
) -> Standings:
    """Build ICPC-style standings as of ``now`` (a Unix time or datetime).

    Participants without submissions get no row. Rows are ordered by
    participant kind, then by score descending, then by penalty.
    """
    if isinstance(now, datetime):
        now = int(now.timestamp())
    standings = Standings(
        columns=[
            StandingsColumn(problem)
            for problem in sorted(problems, key=lambda p: p.code)
        ]
    )
    column_by_problem = {
        column.problem.id: index for index, column in enumerate(standings.columns)
    }
    by_participant: dict[int, list[Submission]] = defaultdict(list)
    for submission in submissions:
        by_participant[submission.participant_id].append(submission)
    for participant in participants:
        participant_begin = begin_time
        if participant.kind == ParticipantKind.REGULAR and participant.begin_time:
            participant_begin = participant.begin_time
        if participant.id not in by_participant:
            continue
        by_column: dict[int, list[Submission]] = defaultdict(list)
        for submission in by_participant[participant.id]:
            column = column_by_problem.get(submission.problem_id)
            if column is not None:
                by_column[column].append(submission)
        row = StandingsRow(participant=participant)
        for column in range(len(standings.columns)):
            if column not in by_column:
                continue
            cell = _build_cell(column, by_column[column], participant_begin, now)
            if cell.attempt > 0:
                row.cells.append(cell)
        for cell in row.cells:
            if cell.verdict == ACCEPTED:
                row.score += problem_score(standings.columns[cell.column].problem)
                row.penalty += (cell.attempt - 1) * ATTEMPT_PENALTY + cell.time // 60
        standings.rows.append(row)
    standings.rows.sort(
        key=lambda row: (participant_order(row.participant.kind), -row.score, row.penalty)
    )
    return standings