"""TOML configuration reader/writer for the sync client and its mapping table."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomli_w

from backend.filesystem.probe import ProbePolicy
from backend.services.reconcile_service import TieBreak

DEFAULT_CONFIG_FILE = "skywriter.toml"


@dataclass(frozen=True)
class FileMapping:
    """A local file kept in sync with one remote identity."""

    local_path: Path
    remote_identity: str


@dataclass(frozen=True)
class DirectoryMapping:
    """A local directory subtree kept in sync with a remote subtree."""

    local_root: Path
    remote_root: str

    def remote_identity(self, relative: str) -> str:
        if not self.remote_root:
            return relative
        return f"{self.remote_root}/{relative}"


@dataclass
class MappingTable:
    files: list[FileMapping] = field(default_factory=list)
    directories: list[DirectoryMapping] = field(default_factory=list)


@dataclass
class ClientConfig:
    """Parsed ``[client]`` section of the config file."""

    server_url: str
    token: str | None = None
    sync_seconds: int = 300
    workers: int = 4
    timeout: float = 60.0
    tie_break: TieBreak = TieBreak.LOCAL
    probe_failure: ProbePolicy = ProbePolicy.RAISE
    mappings: MappingTable = field(default_factory=MappingTable)


def normalize_identity(raw: str, *, allow_root: bool = False) -> str:
    """Slash-normalize a remote identity and reject traversal.

    ``"/notes//a.txt"`` becomes ``"notes/a.txt"``.
    """
    parts = [p for p in raw.replace("\\", "/").split("/") if p not in ("", ".")]
    if ".." in parts:
        msg = f"Remote path must not contain '..': {raw}"
        raise ValueError(msg)
    if not parts and not allow_root:
        msg = f"Remote path must name a file: {raw!r}"
        raise ValueError(msg)
    return "/".join(parts)


def _local_path(raw: str, base_dir: Path) -> Path:
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path.resolve()


def _mapping_table(raw: Any, name: str) -> dict[str, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        msg = f"[client.mappings.{name}] must be a table"
        raise ValueError(msg)
    for local, remote in raw.items():
        if not isinstance(remote, str):
            msg = f"Mapping for {local} must be a string, got {type(remote).__name__}"
            raise ValueError(msg)
    return raw


def parse_client_config(config_path: Path) -> ClientConfig:
    """Parse the client configuration file.

    Relative local paths are resolved against the directory holding the file.
    """
    if not config_path.exists():
        msg = f"Config file not found: {config_path}"
        raise ValueError(msg)

    data = tomllib.loads(config_path.read_text(encoding="utf-8"))
    client_data = data.get("client")
    if not isinstance(client_data, dict):
        msg = f"Missing [client] section in {config_path}"
        raise ValueError(msg)
    if "server_url" not in client_data:
        msg = f"Missing client.server_url in {config_path}"
        raise ValueError(msg)

    base_dir = config_path.resolve().parent
    mappings_data = client_data.get("mappings", {})
    if not isinstance(mappings_data, dict):
        msg = "[client.mappings] must be a table"
        raise ValueError(msg)

    files = [
        FileMapping(
            local_path=_local_path(local, base_dir),
            remote_identity=normalize_identity(remote),
        )
        for local, remote in _mapping_table(mappings_data.get("files"), "files").items()
    ]
    directories = [
        DirectoryMapping(
            local_root=_local_path(local, base_dir),
            remote_root=normalize_identity(remote, allow_root=True),
        )
        for local, remote in _mapping_table(mappings_data.get("directories"), "directories").items()
    ]

    sync_seconds = int(client_data.get("sync_seconds", 300))
    workers = int(client_data.get("workers", 4))
    if sync_seconds < 1:
        msg = "client.sync_seconds must be at least 1"
        raise ValueError(msg)
    if workers < 1:
        msg = "client.workers must be at least 1"
        raise ValueError(msg)

    return ClientConfig(
        server_url=str(client_data["server_url"]),
        token=client_data.get("token"),
        sync_seconds=sync_seconds,
        workers=workers,
        timeout=float(client_data.get("timeout", 60.0)),
        tie_break=TieBreak(client_data.get("tie_break", TieBreak.LOCAL)),
        probe_failure=ProbePolicy(client_data.get("probe_failure", ProbePolicy.RAISE)),
        mappings=MappingTable(files=files, directories=directories),
    )


def write_client_config(config_path: Path, config: ClientConfig) -> None:
    """Write the client configuration back to TOML."""
    client_data: dict[str, Any] = {
        "server_url": config.server_url,
        "sync_seconds": config.sync_seconds,
        "workers": config.workers,
        "timeout": config.timeout,
        "tie_break": config.tie_break.value,
        "probe_failure": config.probe_failure.value,
    }
    if config.token is not None:
        client_data["token"] = config.token
    client_data["mappings"] = {
        "files": {str(m.local_path): m.remote_identity for m in config.mappings.files},
        "directories": {str(m.local_root): m.remote_root for m in config.mappings.directories},
    }

    config_path.write_bytes(tomli_w.dumps({"client": client_data}).encode("utf-8"))
