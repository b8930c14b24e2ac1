"""Reconciliation: decide whether to push, pull, or leave a file alone."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from backend.filesystem.file_info import FileInfo, index_by_path

if TYPE_CHECKING:
    from collections.abc import Iterable


class Outcome(StrEnum):
    """Action chosen for one identity."""

    NO_OP = "no_op"
    PUSH = "push"
    PULL = "pull"


class TieBreak(StrEnum):
    """Which side wins when digests differ and timestamps are equal."""

    LOCAL = "local"
    REMOTE = "remote"


@dataclass(frozen=True)
class Decision:
    """Outcome for one identity, with the fingerprints it was derived from."""

    identity: str
    outcome: Outcome
    local: FileInfo
    remote: FileInfo


def decide(local: FileInfo, remote: FileInfo, tie_break: TieBreak = TieBreak.LOCAL) -> Outcome:
    """Compare two fingerprints of the same identity.

    Digest equality wins over timestamps. When both exist and differ, the
    strictly newer side wins; equal seconds go to ``tie_break``.
    """
    if not local.exists and not remote.exists:
        return Outcome.NO_OP
    if not remote.exists:
        return Outcome.PUSH
    if not local.exists:
        return Outcome.PULL
    if local.digest == remote.digest:
        return Outcome.NO_OP
    if local.seconds < remote.seconds:
        return Outcome.PULL
    if local.seconds > remote.seconds:
        return Outcome.PUSH
    return Outcome.PUSH if tie_break is TieBreak.LOCAL else Outcome.PULL


def plan_directory(
    local_infos: Iterable[FileInfo],
    remote_infos: Iterable[FileInfo],
    tie_break: TieBreak = TieBreak.LOCAL,
) -> list[Decision]:
    """Decide every identity present on either side exactly once.

    Both collections must already be rebased onto their mapping roots.
    """
    local_index = index_by_path(local_infos)
    remote_index = index_by_path(remote_infos)

    decisions: list[Decision] = []
    for identity in sorted(local_index.keys() | remote_index.keys()):
        local = local_index.get(identity) or FileInfo.missing(identity)
        remote = remote_index.get(identity) or FileInfo.missing(identity)
        decisions.append(
            Decision(
                identity=identity,
                outcome=decide(local, remote, tie_break),
                local=local,
                remote=remote,
            )
        )
    return decisions


def summarize(decisions: Iterable[Decision]) -> dict[Outcome, int]:
    """Count decisions per outcome, including zero counts."""
    counts = Counter(d.outcome for d in decisions)
    return {outcome: counts.get(outcome, 0) for outcome in Outcome}
