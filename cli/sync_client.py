"""CLI sync client for Skywriter two-way file sync."""

from __future__ import annotations

import argparse
import getpass
import logging
import os
import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING

from backend.exceptions import SyncError
from backend.filesystem.file_info import FileInfo
from backend.services.reconcile_service import Decision, Outcome, decide, plan_directory
from cli.mapping_config import (
    DEFAULT_CONFIG_FILE,
    ClientConfig,
    DirectoryMapping,
    FileMapping,
    parse_client_config,
    write_client_config,
)
from cli.remote_client import RemoteStoreClient, validate_server_url
from cli.transfer import pull, push

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

    from cli.transfer import RemoteStore

logger = logging.getLogger(__name__)

TOKEN_ENV_VAR = "SKYWRITER_TOKEN"

# Failures that abort one file or one mapping, never the whole pass.
_UNIT_ERRORS = (SyncError, OSError, ValueError)


@dataclass(frozen=True)
class SyncUnit:
    """One file to reconcile: where it lives locally and what was decided."""

    local_path: Path
    decision: Decision


@dataclass(frozen=True)
class SyncFailure:
    identity: str
    message: str


@dataclass
class SyncPlan:
    """Decisions for every mapped file, plus mappings that could not be enumerated."""

    units: list[SyncUnit] = field(default_factory=list)
    failures: list[SyncFailure] = field(default_factory=list)

    @property
    def decisions(self) -> list[Decision]:
        return [unit.decision for unit in self.units]


@dataclass
class SyncReport:
    """Result of executing a sync plan."""

    pushed: list[str] = field(default_factory=list)
    pulled: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    failures: list[SyncFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def files_synced(self) -> int:
        return len(self.pushed) + len(self.pulled)


class _KeyedLocks:
    """Lazily created mutex per key."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def get(self, key: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(key, threading.Lock())


def _is_safe_local_path(local_root: Path, file_path: str) -> Path | None:
    """Resolve a server-provided path within local_root, returning None on traversal."""
    local_path = (local_root / file_path).resolve()
    if not local_path.is_relative_to(local_root.resolve()):
        return None
    return local_path


class SyncClient:
    """Runs reconciliation passes over a mapping table against one remote store."""

    def __init__(self, config: ClientConfig, remote: RemoteStore) -> None:
        self.config = config
        self.remote = remote
        self._locks = _KeyedLocks()

    # ── Planning ─────────────────────────────────────

    def _plan_file(self, mapping: FileMapping) -> list[SyncUnit]:
        local = FileInfo.from_path(mapping.local_path, self.config.probe_failure)
        local = replace(local, path=mapping.remote_identity)
        remote = self.remote.fetch_file_info(mapping.remote_identity)
        decision = Decision(
            identity=mapping.remote_identity,
            outcome=decide(local, remote, self.config.tie_break),
            local=local,
            remote=remote,
        )
        return [SyncUnit(local_path=mapping.local_path, decision=decision)]

    def _plan_directory(self, mapping: DirectoryMapping) -> list[SyncUnit]:
        local_infos = [
            info.rebase(mapping.local_root)
            for info in FileInfo.from_directory(mapping.local_root, self.config.probe_failure)
        ]
        remote_infos = self.remote.fetch_dir_info(mapping.remote_root)

        units: list[SyncUnit] = []
        for decision in plan_directory(local_infos, remote_infos, self.config.tie_break):
            local_path = _is_safe_local_path(mapping.local_root, decision.identity)
            if local_path is None:
                logger.warning("Skipping %s: escapes %s", decision.identity, mapping.local_root)
                continue
            units.append(
                SyncUnit(
                    local_path=local_path,
                    decision=replace(
                        decision, identity=mapping.remote_identity(decision.identity)
                    ),
                )
            )
        return units

    def _plan(self, jobs: Iterable[tuple[str, Callable[[], list[SyncUnit]]]]) -> SyncPlan:
        plan = SyncPlan()
        with ThreadPoolExecutor(max_workers=self.config.workers) as executor:
            futures = {executor.submit(job): name for name, job in jobs}
            for future in as_completed(futures):
                name = futures[future]
                try:
                    plan.units.extend(future.result())
                except _UNIT_ERRORS as exc:
                    logger.warning("Cannot fingerprint %s: %s", name, exc)
                    plan.failures.append(SyncFailure(identity=name, message=str(exc)))
        plan.units.sort(key=lambda unit: unit.decision.identity)
        return plan

    def plan_pass(self) -> SyncPlan:
        """Fingerprint every mapping and decide what to do, without transferring."""
        mappings = self.config.mappings
        jobs: list[tuple[str, Callable[[], list[SyncUnit]]]] = [
            (m.remote_identity, lambda m=m: self._plan_file(m)) for m in mappings.files
        ]
        jobs.extend(
            (m.remote_root or "/", lambda m=m: self._plan_directory(m))
            for m in mappings.directories
        )
        return self._plan(jobs)

    # ── Execution ────────────────────────────────────

    @contextmanager
    def _hold(self, unit: SyncUnit) -> Iterator[None]:
        # Lock order is always local, then remote.
        with (
            self._locks.get(f"local:{unit.local_path}"),
            self._locks.get(f"remote:{unit.decision.identity}"),
        ):
            yield

    def _execute_unit(self, unit: SyncUnit) -> Outcome:
        decision = unit.decision
        with self._hold(unit):
            if decision.outcome is Outcome.PUSH:
                push(self.remote, unit.local_path, decision.identity)
                logger.info("Pushed %s", decision.identity)
            elif decision.outcome is Outcome.PULL:
                pull(self.remote, decision.identity, unit.local_path)
                logger.info("Pulled %s", decision.identity)
        return decision.outcome

    def execute(self, plan: SyncPlan) -> SyncReport:
        """Carry out every push and pull in ``plan``."""
        report = SyncReport(failures=list(plan.failures))
        pending: list[SyncUnit] = []
        for unit in plan.units:
            if unit.decision.outcome is Outcome.NO_OP:
                report.unchanged.append(unit.decision.identity)
            else:
                pending.append(unit)

        with ThreadPoolExecutor(max_workers=self.config.workers) as executor:
            futures = {executor.submit(self._execute_unit, unit): unit for unit in pending}
            for future in as_completed(futures):
                identity = futures[future].decision.identity
                try:
                    outcome = future.result()
                except _UNIT_ERRORS as exc:
                    logger.warning("Failed to sync %s: %s", identity, exc)
                    report.failures.append(SyncFailure(identity=identity, message=str(exc)))
                    continue
                if outcome is Outcome.PUSH:
                    report.pushed.append(identity)
                else:
                    report.pulled.append(identity)

        report.pushed.sort()
        report.pulled.sort()
        return report

    def sync_file(self, mapping: FileMapping) -> SyncReport:
        """Reconcile a single file mapping."""
        job = (mapping.remote_identity, lambda: self._plan_file(mapping))
        return self.execute(self._plan([job]))

    def sync_directory(self, mapping: DirectoryMapping) -> SyncReport:
        """Reconcile a single directory mapping."""
        name = mapping.remote_root or "/"
        return self.execute(self._plan([(name, lambda: self._plan_directory(mapping))]))

    def run_pass(self) -> SyncReport:
        """One full reconciliation pass over every mapping."""
        report = self.execute(self.plan_pass())
        logger.info(
            "Pass finished: %d pushed, %d pulled, %d unchanged, %d failed",
            len(report.pushed),
            len(report.pulled),
            len(report.unchanged),
            len(report.failures),
        )
        return report


# ── Command line ─────────────────────────────────────


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.INFO if verbose else logging.WARNING)


def print_plan(plan: SyncPlan) -> None:
    decisions = plan.decisions
    to_push = [d.identity for d in decisions if d.outcome is Outcome.PUSH]
    to_pull = [d.identity for d in decisions if d.outcome is Outcome.PULL]
    print("Sync Status:")
    print(f"  To push:   {len(to_push)}")
    print(f"  To pull:   {len(to_pull)}")
    print(f"  Unchanged: {len(decisions) - len(to_push) - len(to_pull)}")
    print(f"  Errors:    {len(plan.failures)}")
    for identity in to_push:
        print(f"    > {identity} (push)")
    for identity in to_pull:
        print(f"    < {identity} (pull)")
    for failure in plan.failures:
        print(f"    ! {failure.identity}: {failure.message}")


def print_report(report: SyncReport) -> None:
    for identity in report.pushed:
        print(f"  Push: {identity}")
    for identity in report.pulled:
        print(f"  Pull: {identity}")
    for failure in report.failures:
        print(f"  FAILED: {failure.identity} ({failure.message})")
    print(
        f"Sync complete. {report.files_synced} file(s) synced, "
        f"{len(report.failures)} failure(s)."
    )


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="skywriter-sync",
        description="Keep mapped local files in sync with a Skywriter server",
    )
    parser.add_argument(
        "--config", "-c", default=DEFAULT_CONFIG_FILE, help="Config file (default: skywriter.toml)"
    )
    parser.add_argument("--token", help=f"Sync token (default: ${TOKEN_ENV_VAR} or config)")
    parser.add_argument(
        "--allow-insecure-http",
        action="store_true",
        help="Allow http:// server URLs for non-localhost hosts",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command")
    init_parser = subparsers.add_parser("init", help="Write a starter config file")
    init_parser.add_argument("--server", "-s", required=True, help="Server URL")
    subparsers.add_parser("status", help="Show what would change")
    subparsers.add_parser("sync", help="Run one sync pass")
    subparsers.add_parser("loop", help="Run a sync pass every sync_seconds")

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    config_path = Path(args.config)

    if args.command is None:
        parser.print_help()
        return

    if args.command == "init":
        if config_path.exists():
            print(f"Error: {config_path} already exists")
            sys.exit(1)
        try:
            server_url = validate_server_url(args.server, args.allow_insecure_http)
        except ValueError as exc:
            print(f"Error: {exc}")
            sys.exit(1)
        write_client_config(config_path, ClientConfig(server_url=server_url, token=args.token))
        print(f"Initialized sync config in {config_path}")
        return

    try:
        config = parse_client_config(config_path)
        server_url = validate_server_url(config.server_url, args.allow_insecure_http)
    except ValueError as exc:
        print(f"Error: {exc}")
        sys.exit(1)

    token = args.token or os.environ.get(TOKEN_ENV_VAR) or config.token
    if not token:
        token = getpass.getpass("Sync token: ")

    with RemoteStoreClient(server_url, token, timeout=config.timeout) as remote:
        client = SyncClient(config, remote)
        if args.command == "status":
            print_plan(client.plan_pass())
        elif args.command == "sync":
            report = client.run_pass()
            print_report(report)
            if not report.ok:
                sys.exit(1)
        elif args.command == "loop":
            try:
                while True:
                    print_report(client.run_pass())
                    time.sleep(config.sync_seconds)
            except KeyboardInterrupt:
                print("Stopped.")


if __name__ == "__main__":
    main()
