"""Configuration management for roam-organize.

Settings live in a YAML file. Discovery order:
1. ROAM_ORGANIZE_CONFIG environment variable (explicit path)
2. Walk up from cwd looking for .roam-organize.yaml
3. ~/.roam-organize/config.yaml

Example .roam-organize.yaml (relative paths resolve against root_directory,
which itself defaults to the directory holding the config file):

    root_directory: .
    fleeting_directory: fleeting
    permanent_directory: permanent
    moc_directory: moc
    index_file: index.org
    move_target_directory: permanent
    move_target_file: moc/permanent.org
    source_tag: fleeting
    target_tag: permanent
    id_named_directories: false
    id_named_files: true
    database_file: ~/.emacs.d/org-roam.db
    tag_anchors:
      - [idea, 5f1c0e1e-2d2a-4b8e-9f57-1b0b6f3d8a11]
      - {tag: project, id: 0b8e8a5c-6f11-4c0c-a1b7-2d5f3c9e7b42}
    templates:
      - key: f
        description: Fleeting note
        directory: fleeting
        tags: [fleeting]
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml

from .errors import ConfigurationError, ErrorCode
from .models import SettingCheck, TagAnchor, Template, ValidationReport

log = logging.getLogger(__name__)

CONFIG_FILENAME = ".roam-organize.yaml"

# Maximum directory traversal depth when searching for the config file
MAX_CONFIG_SEARCH_DEPTH = 50


# =============================================================================
# Setting declarations
# =============================================================================

SETTING_KINDS: dict[str, str] = {
    "root_directory": "directory",
    "fleeting_directory": "directory",
    "permanent_directory": "directory",
    "moc_directory": "directory",
    "index_file": "file",
    "tag_anchors": "list",
    "move_target_directory": "directory",
    "move_target_file": "file",
    "source_tag": "string",
    "target_tag": "string",
    "id_named_directories": "boolean",
    "id_named_files": "boolean",
    "templates": "list",
    "database_file": "file",
}

DEFAULT_SETTINGS: dict[str, Any] = {
    "fleeting_directory": "fleeting",
    "permanent_directory": "permanent",
    "moc_directory": "moc",
    "index_file": "index.org",
    "tag_anchors": [],
    "move_target_directory": "permanent",
    "move_target_file": "moc/permanent.org",
    "source_tag": "fleeting",
    "target_tag": "permanent",
    "id_named_directories": False,
    "id_named_files": False,
    "templates": [],
    "database_file": "~/.emacs.d/org-roam.db",
}

PATH_KINDS = frozenset({"directory", "file"})

KIND_PREDICATES: dict[str, Callable[[Any], bool]] = {
    "directory": lambda value: isinstance(value, str) and bool(value),
    "file": lambda value: isinstance(value, str) and bool(value),
    "string": lambda value: isinstance(value, str) and bool(value),
    "boolean": lambda value: isinstance(value, bool),
    "list": lambda value: isinstance(value, list),
}


def get_state_dir() -> Path:
    """Directory holding persisted mode state (ROAM_ORGANIZE_STATE_DIR overrides)."""
    override = os.environ.get("ROAM_ORGANIZE_STATE_DIR")
    if override:
        return Path(override)
    return Path.home() / ".roam-organize"


# =============================================================================
# Validation
# =============================================================================


def _is_inside(path: Path, root: Path) -> bool:
    return path.resolve().is_relative_to(root.resolve())


def validate(
    root: Path,
    settings: Mapping[str, Any],
    kinds: Mapping[str, str] = SETTING_KINDS,
) -> ValidationReport:
    """Check every setting against its declared kind.

    Failures never short-circuit: the report covers every setting so callers
    see all problems at once.

    Args:
        root: Root directory that directory settings must live under.
        settings: Setting name -> value (path values already resolved).
        kinds: Setting name -> declared kind.

    Returns:
        ValidationReport with one check per setting.

    Raises:
        ConfigurationError: If a setting declares a kind with no predicate.
    """
    checks: list[SettingCheck] = []
    for name, kind in kinds.items():
        predicate = KIND_PREDICATES.get(kind)
        if predicate is None:
            raise ConfigurationError(
                f"Setting '{name}' declares unknown kind '{kind}'",
                details={"setting": name, "kind": kind},
            )

        value = settings.get(name)
        kind_ok = predicate(value)
        exists: bool | None = None
        inside_root: bool | None = None

        if kind in PATH_KINDS:
            path = Path(value) if kind_ok else None
            if kind == "directory":
                exists = bool(path and path.is_dir())
                inside_root = bool(path and _is_inside(path, root))
            else:
                exists = bool(path and path.is_file())

        checks.append(
            SettingCheck(
                name=name,
                kind=kind,
                value=value,
                kind_ok=kind_ok,
                exists=exists,
                inside_root=inside_root,
            )
        )

    return ValidationReport(root=root, checks=checks)


# =============================================================================
# Config store
# =============================================================================


class ConfigStore:
    """Named settings with declared kinds, loaded from YAML."""

    def __init__(
        self,
        values: Mapping[str, Any],
        source: Path | None = None,
        kinds: Mapping[str, str] = SETTING_KINDS,
    ) -> None:
        self.kinds = dict(kinds)
        self.source = source
        self.values: dict[str, Any] = {**DEFAULT_SETTINGS, **values}

        unknown = sorted(set(values) - set(self.kinds))
        for name in unknown:
            log.warning("Ignoring unknown setting '%s'%s", name, f" in {source}" if source else "")

    @property
    def root(self) -> Path:
        raw = self.values.get("root_directory")
        if not isinstance(raw, str) or not raw:
            raise ConfigurationError(
                "root_directory is not set",
                code=ErrorCode.CONFIG_NOT_FOUND,
            )
        root = Path(raw).expanduser()
        if not root.is_absolute() and self.source is not None:
            root = self.source.parent / root
        return root.resolve()

    def get(self, name: str) -> Any:
        if name not in self.kinds:
            raise KeyError(name)
        return self.values.get(name)

    def path(self, name: str) -> Path:
        """Resolve a path setting; relative values resolve against the root."""
        if self.kinds.get(name) not in PATH_KINDS:
            raise KeyError(f"{name} is not a path setting")
        if name == "root_directory":
            return self.root
        path = Path(self.values[name]).expanduser()
        if not path.is_absolute():
            path = self.root / path
        return path

    def flag(self, name: str) -> bool:
        return self.get(name) is True

    def resolved_settings(self) -> dict[str, Any]:
        """Setting values with path kinds resolved to absolute strings."""
        resolved: dict[str, Any] = {}
        for name, kind in self.kinds.items():
            value = self.values.get(name)
            if kind in PATH_KINDS and KIND_PREDICATES[kind](value):
                resolved[name] = str(self.path(name))
            else:
                resolved[name] = value
        return resolved

    def validate(self) -> ValidationReport:
        return validate(self.root, self.resolved_settings(), self.kinds)

    @property
    def tag_anchors(self) -> list[TagAnchor]:
        """The tag -> anchor id table as TagAnchor pairs.

        Accepts ``[tag, id]`` pairs or ``{tag: ..., id: ...}`` mappings.
        """
        anchors: list[TagAnchor] = []
        for item in self.values.get("tag_anchors") or []:
            if isinstance(item, Mapping) and "tag" in item and "id" in item:
                anchors.append(TagAnchor(tag=str(item["tag"]), id=str(item["id"])))
            elif isinstance(item, (list, tuple)) and len(item) == 2:
                anchors.append(TagAnchor(tag=str(item[0]), id=str(item[1])))
            else:
                raise ConfigurationError(
                    f"Malformed tag_anchors entry: {item!r}",
                    details={"suggestion": "Use [tag, id] or {tag: ..., id: ...}"},
                )
        return anchors

    @property
    def templates(self) -> list[Template]:
        templates: list[Template] = []
        for item in self.values.get("templates") or []:
            if not isinstance(item, Mapping):
                raise ConfigurationError(f"Malformed templates entry: {item!r}")
            templates.append(Template(**item))
        return templates


def find_config_file(start_dir: Path | None = None, max_depth: int = MAX_CONFIG_SEARCH_DEPTH) -> Path | None:
    """Locate the config file (env override, walk up from start_dir, user file)."""
    explicit = os.environ.get("ROAM_ORGANIZE_CONFIG")
    if explicit:
        return Path(explicit)

    current = Path(start_dir or os.getcwd()).resolve()
    for _ in range(max_depth):
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:  # Reached filesystem root
            break
        current = parent

    user_config = get_state_dir() / "config.yaml"
    if user_config.is_file():
        return user_config
    return None


def load_config(path: Path | None = None, start_dir: Path | None = None) -> ConfigStore:
    """Load the configuration store.

    Args:
        path: Explicit config file. Discovered via find_config_file() if None.
        start_dir: Directory to start discovery from (defaults to cwd).

    Raises:
        ConfigurationError: If no config file is found or it cannot be parsed.
    """
    config_path = path or find_config_file(start_dir)
    if config_path is None:
        raise ConfigurationError(
            "No configuration found.",
            code=ErrorCode.CONFIG_NOT_FOUND,
            details={
                "suggestion": f"Create {CONFIG_FILENAME} at your notes root "
                "or set ROAM_ORGANIZE_CONFIG",
            },
        )

    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(
            f"Cannot read configuration {config_path}: {e}",
            code=ErrorCode.CONFIG_NOT_FOUND,
        ) from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration {config_path} must be a mapping")

    data.setdefault("root_directory", str(config_path.parent))
    log.debug("Loaded configuration from %s", config_path)
    return ConfigStore(data, source=config_path)


def create_directories(store: ConfigStore) -> list[Path]:
    """Create every configured directory (and parents of file settings under the root).

    Returns:
        Directories that did not exist before the call.
    """
    root = store.root
    targets: list[Path] = []
    for name, kind in store.kinds.items():
        if not KIND_PREDICATES[kind](store.values.get(name)):
            continue
        if kind == "directory":
            targets.append(store.path(name))
        elif kind == "file":
            parent = store.path(name).parent
            if _is_inside(parent, root):
                targets.append(parent)

    created: list[Path] = []
    for target in targets:
        if target.is_dir():
            continue
        target.mkdir(parents=True, exist_ok=True)
        log.info("Created directory %s", target)
        created.append(target)
    return created
