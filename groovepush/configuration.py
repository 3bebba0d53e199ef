"""Layered configuration loading for GroovePush."""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, MutableMapping, Optional, Tuple

import yaml

REPO_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_DIR = REPO_ROOT / "config"
DEFAULT_HOME = "~/.groovepush"
PROJECT_CONFIG_SUBPATH = Path(".gp") / "config"
STORAGE_BACKENDS = ("local", "memory")

DiagnosticLevel = Literal["info", "warning", "error"]
ConfigurationStatus = Literal["ready", "missing", "invalid"]


SchemaSpec = Dict[str, Any]


CONFIG_SCHEMA: SchemaSpec = {
    "logging": {
        "type": dict,
        "schema": {
            "level": {"type": str, "default": "WARNING"},
            "structured": {"type": bool, "default": False},
        },
        "default": {},
    },
    "storage": {
        "type": dict,
        "schema": {
            "backend": {"type": str, "default": "local", "choices": STORAGE_BACKENDS},
            "root": {"type": str, "default": f"{DEFAULT_HOME}/remote"},
            "bucket": {"type": str, "default": "groovepush-bucket"},
        },
        "default": {},
    },
    "transfer": {
        "type": dict,
        "schema": {
            "max_workers": {"type": int, "default": 8},
        },
        "default": {},
    },
}


@dataclass
class Diagnostic:
    """Represents a configuration validation or loading issue."""

    level: DiagnosticLevel
    message: str
    source: Optional[Path] = None


@dataclass
class ConfigurationBundle:
    """All configuration data GroovePush needs for one invocation."""

    project_dir: Path
    status: ConfigurationStatus
    home_dir: Path = field(default_factory=lambda: Path(DEFAULT_HOME).expanduser())
    merged: Dict[str, Any] = field(default_factory=dict)
    repo_defaults: Dict[str, Any] = field(default_factory=dict)
    user_overrides: Dict[str, Any] = field(default_factory=dict)
    project_overrides: Dict[str, Any] = field(default_factory=dict)
    files_loaded: List[Path] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    log_path: Optional[Path] = None


def resolve_home_dir(env: Optional[Mapping[str, str]] = None) -> Path:
    """Resolve the per-user GroovePush directory from the environment."""

    env_source = env if env is not None else os.environ
    raw = env_source.get("GP_HOME", DEFAULT_HOME)
    return Path(raw).expanduser()


def load_runtime_configuration(
    project_dir: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> ConfigurationBundle:
    """Load repo defaults, then user and project overrides."""

    env_source = env if env is not None else os.environ
    resolved_project = Path(project_dir) if project_dir is not None else Path.cwd()
    home_dir = resolve_home_dir(env_source)
    diagnostics: List[Diagnostic] = []
    files_loaded: List[Path] = []

    repo_defaults, repo_files = _load_directory_configs(
        DEFAULT_CONFIG_DIR,
        diagnostics,
        label="repo defaults",
    )
    files_loaded.extend(repo_files)

    user_overrides, user_files = _load_directory_configs(
        home_dir / "config",
        diagnostics,
        label="user overrides",
        required=False,
    )
    files_loaded.extend(user_files)

    status: ConfigurationStatus = "ready"
    project_overrides: Dict[str, Any] = {}

    if not resolved_project.exists():
        diagnostics.append(
            Diagnostic(
                level="error",
                message=f"Project directory '{resolved_project}' does not exist.",
            )
        )
        status = "missing"
    elif not resolved_project.is_dir():
        diagnostics.append(
            Diagnostic(
                level="error",
                message=f"Project path '{resolved_project}' is not a directory.",
            )
        )
        status = "invalid"
    else:
        project_overrides, project_files = _load_directory_configs(
            resolved_project / PROJECT_CONFIG_SUBPATH,
            diagnostics,
            label="project overrides",
            required=False,
        )
        files_loaded.extend(project_files)

    merged = deepcopy(repo_defaults)
    _deep_merge_dicts(merged, user_overrides)
    _deep_merge_dicts(merged, project_overrides)
    _apply_environment(merged, home_dir, env_source)

    _validate_schema(merged, diagnostics)

    if status == "ready" and any(diag.level == "error" for diag in diagnostics):
        status = "invalid"

    return ConfigurationBundle(
        project_dir=resolved_project,
        status=status,
        home_dir=home_dir,
        merged=merged,
        repo_defaults=repo_defaults,
        user_overrides=user_overrides,
        project_overrides=project_overrides,
        files_loaded=files_loaded,
        diagnostics=diagnostics,
    )


def _apply_environment(
    merged: MutableMapping[str, Any],
    home_dir: Path,
    env: Mapping[str, str],
) -> None:
    storage = merged.setdefault("storage", {})
    if not isinstance(storage, MutableMapping):
        return
    # The store lives under GP_HOME unless a config file says otherwise.
    storage.setdefault("root", str(home_dir / "remote"))
    override = env.get("GP_STORAGE_ROOT")
    if override:
        storage["root"] = override


def _load_directory_configs(
    directory: Path,
    diagnostics: List[Diagnostic],
    label: str,
    required: bool = True,
) -> Tuple[Dict[str, Any], List[Path]]:
    """Load all YAML files from a directory, merging them in order."""

    data: Dict[str, Any] = {}
    loaded_files: List[Path] = []

    if not directory.exists():
        if required:
            diagnostics.append(
                Diagnostic(
                    level="warning",
                    message=f"No configuration directory found at '{directory}' ({label}).",
                    source=directory,
                )
            )
        return data, loaded_files

    if not directory.is_dir():
        diagnostics.append(
            Diagnostic(
                level="error",
                message=f"Configuration path '{directory}' ({label}) is not a directory.",
                source=directory,
            )
        )
        return data, loaded_files

    yaml_files = sorted(directory.glob("*.yml")) + sorted(directory.glob("*.yaml"))

    for yaml_file in yaml_files:
        try:
            content = yaml.safe_load(yaml_file.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            diagnostics.append(
                Diagnostic(
                    level="error",
                    message=f"Failed to parse '{yaml_file}': {exc}",
                    source=yaml_file,
                )
            )
            continue

        if content is None:
            loaded_files.append(yaml_file)
            continue

        if not isinstance(content, MutableMapping):
            diagnostics.append(
                Diagnostic(
                    level="warning",
                    message=f"Ignoring '{yaml_file}' because it does not contain a mapping.",
                    source=yaml_file,
                )
            )
            continue

        _deep_merge_dicts(data, dict(content))
        loaded_files.append(yaml_file)

    return data, loaded_files


def _deep_merge_dicts(dest: MutableMapping[str, Any], source: Mapping[str, Any]) -> None:
    """Recursively merge mapping values."""

    for key, value in source.items():
        if (
            key in dest
            and isinstance(dest[key], MutableMapping)
            and isinstance(value, Mapping)
        ):
            _deep_merge_dicts(dest[key], value)
        else:
            dest[key] = deepcopy(value)


def _default_from_spec(spec: SchemaSpec) -> Any:
    return deepcopy(spec.get("default"))


def _validate_schema(config: Dict[str, Any], diagnostics: List[Diagnostic]) -> None:
    _validate_section(config, CONFIG_SCHEMA, "config", diagnostics)


def _validate_section(
    target: Dict[str, Any],
    schema: SchemaSpec,
    path: str,
    diagnostics: List[Diagnostic],
) -> None:
    if not isinstance(target, dict):
        diagnostics.append(
            Diagnostic(
                level="error",
                message=f"Configuration section '{path}' must be a mapping.",
            )
        )
        return

    for key in list(target.keys()):
        if key not in schema:
            diagnostics.append(
                Diagnostic(
                    level="warning",
                    message=f"Unknown configuration key '{path}.{key}'.",
                )
            )

    for key, spec in schema.items():
        child_path = f"{path}.{key}"
        if key not in target:
            if "default" in spec:
                target[key] = _default_from_spec(spec)
            if spec.get("type") is dict:
                _validate_section(target[key], spec.get("schema", {}), child_path, diagnostics)
            continue

        value = target[key]
        expected_type = spec.get("type")

        if expected_type is dict:
            if not isinstance(value, dict):
                diagnostics.append(
                    Diagnostic(
                        level="error",
                        message=f"'{child_path}' must be a mapping.",
                    )
                )
                target[key] = _default_from_spec(spec) or {}
                _validate_section(target[key], spec.get("schema", {}), child_path, diagnostics)
                continue
            _validate_section(value, spec.get("schema", {}), child_path, diagnostics)
        elif expected_type and (
            not isinstance(value, expected_type)
            # bool is an int subclass; reject it where a count is expected
            or (expected_type is int and isinstance(value, bool))
        ):
            diagnostics.append(
                Diagnostic(
                    level="error",
                    message=f"'{child_path}' must be of type {expected_type.__name__}.",
                )
            )
            target[key] = _default_from_spec(spec)
        elif "choices" in spec and value not in spec["choices"]:
            diagnostics.append(
                Diagnostic(
                    level="error",
                    message=(
                        f"'{child_path}' must be one of {', '.join(spec['choices'])} "
                        f"(got '{value}')."
                    ),
                )
            )
            target[key] = _default_from_spec(spec)


__all__ = [
    "ConfigurationBundle",
    "ConfigurationStatus",
    "DEFAULT_CONFIG_DIR",
    "Diagnostic",
    "load_runtime_configuration",
    "resolve_home_dir",
]
