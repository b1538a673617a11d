"""Runtime configuration for task discovery, output placement and external tools."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

CONFIG_DIR_NAME = ".taskweave"
CONFIG_FILE_NAME = "config.json"
DEFAULT_OUTPUT_DIR = Path(CONFIG_DIR_NAME) / "logs"
DEFAULT_TASK_DIR = Path(CONFIG_DIR_NAME) / "tasks"
_VERBOSITY_VALUES = ("quiet", "summary", "verbose")


@dataclass(slots=True)
class ShellSettings:
    """Shell interpreter used by shell commands."""

    executable: str = "powershell.exe" if os.name == "nt" else "bash"
    timeout_seconds: float = 30.0


@dataclass(slots=True)
class AgentSettings:
    """External AI-agent invocation settings."""

    timeout_seconds: float = 600.0
    definitions: dict[str, dict[str, Any]] = field(default_factory=dict)


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    cwd: Path = field(default_factory=Path.cwd)
    output_root: Path = DEFAULT_OUTPUT_DIR
    task_dirs: tuple[Path, ...] = ()
    default_extension: str = "txt"
    default_verbosity: str = "summary"
    shell: ShellSettings = field(default_factory=ShellSettings)
    agents: AgentSettings = field(default_factory=AgentSettings)

    @classmethod
    def load(cls, cwd: Path | None = None, *, home: Path | None = None) -> Settings:
        """Merge defaults, user config, project config, then ``TASKWEAVE_*`` variables."""

        cwd = (cwd or Path.cwd()).resolve()
        home = home or Path.home()
        raw: dict[str, Any] = {}
        for path in (
            home / CONFIG_DIR_NAME / CONFIG_FILE_NAME,
            cwd / CONFIG_DIR_NAME / CONFIG_FILE_NAME,
        ):
            raw = _merge(raw, _load_config_file(path))

        output_dir = os.getenv("TASKWEAVE_OUTPUT_DIR") or raw.get("outputDir") or DEFAULT_OUTPUT_DIR
        task_dirs_raw = _env_list("TASKWEAVE_TASK_DIRS")
        if task_dirs_raw is None:
            task_dirs_raw = raw.get("taskDirs")
        if task_dirs_raw is None:
            task_dirs_raw = [str(DEFAULT_TASK_DIR), str(home / DEFAULT_TASK_DIR)]
        if not isinstance(task_dirs_raw, list) or not all(
            isinstance(item, str) for item in task_dirs_raw
        ):
            raise ValueError("taskDirs must be a list of directory paths")

        shell_raw = _section(raw, "shell")
        agents_raw = _section(raw, "agents")
        definitions = agents_raw.get("definitions", {})
        if not isinstance(definitions, dict):
            raise ValueError("agents.definitions must be an object keyed by agent name")

        settings = cls(
            cwd=cwd,
            output_root=_resolve(cwd, str(output_dir)),
            task_dirs=_dedupe_paths(_resolve(cwd, item) for item in task_dirs_raw),
            default_extension=str(
                os.getenv("TASKWEAVE_DEFAULT_EXTENSION", raw.get("defaultFileExtension", "txt")),
            ).lstrip("."),
            default_verbosity=str(
                os.getenv("TASKWEAVE_VERBOSITY", raw.get("verbosity", "summary")),
            ).lower(),
            shell=ShellSettings(
                executable=os.getenv(
                    "TASKWEAVE_SHELL",
                    shell_raw.get("executable", ShellSettings().executable),
                ),
                timeout_seconds=_float(
                    "TASKWEAVE_SHELL_TIMEOUT_SECONDS",
                    shell_raw.get("timeoutSeconds", 30.0),
                ),
            ),
            agents=AgentSettings(
                timeout_seconds=_float(
                    "TASKWEAVE_AGENT_TIMEOUT_SECONDS",
                    agents_raw.get("timeoutSeconds", 600.0),
                ),
                definitions=definitions,
            ),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        """Raise configuration error for values the engine cannot work with."""

        if not self.default_extension or "/" in self.default_extension:
            raise ValueError(f"Invalid default file extension: {self.default_extension!r}")
        if self.default_verbosity not in _VERBOSITY_VALUES:
            raise ValueError(
                f"Invalid verbosity {self.default_verbosity!r}; "
                f"expected one of: {', '.join(_VERBOSITY_VALUES)}",
            )
        if self.shell.timeout_seconds <= 0:
            raise ValueError("TASKWEAVE_SHELL_TIMEOUT_SECONDS must be > 0.")
        if self.agents.timeout_seconds <= 0:
            raise ValueError("TASKWEAVE_AGENT_TIMEOUT_SECONDS must be > 0.")
        if not self.shell.executable.strip():
            raise ValueError("Shell executable must be a non-empty string.")


def _load_config_file(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        payload = json.loads(path.read_text("utf-8"))
    except json.JSONDecodeError as error:
        raise ValueError(f"Invalid JSON in config file {path}: {error}") from error
    if not isinstance(payload, dict):
        raise ValueError(f"Expected JSON object in config file {path}")
    return payload


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name, {})
    if not isinstance(value, dict):
        raise ValueError(f"Config section {name!r} must be an object")
    return value


def _resolve(cwd: Path, value: str) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else cwd / path


def _dedupe_paths(paths) -> tuple[Path, ...]:
    deduped: list[Path] = []
    seen: set[Path] = set()
    for path in paths:
        if path in seen:
            continue
        seen.add(path)
        deduped.append(path)
    return tuple(deduped)


def _env_list(name: str) -> list[str] | None:
    raw = os.getenv(name)
    if raw is None:
        return None
    return [part.strip() for part in raw.split(os.pathsep) if part.strip()]


def _float(name: str, default: object) -> float:
    value = os.getenv(name)
    raw = default if value is None else value
    try:
        return float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError) as error:
        raise ValueError(f"Invalid number for {name}: {raw!r}") from error
