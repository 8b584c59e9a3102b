"""Enable/disable switch for the organizing commands.

State (the enabled flag and the registry of note templates) persists in a
JSON file so it survives between CLI invocations:

    {
      "enabled": true,
      "templates": {"f": {"key": "f", "directory": "fleeting", ...}}
    }

Enabling is guarded: the configuration must validate and, unless overridden,
the working directory must be inside the configured root. Disabling always
succeeds. Organizing operations go through ``ModeController.run`` and do
nothing while the mode is disabled.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, TypeVar

from .config import ConfigStore, get_state_dir
from .index import NodeIndex
from .models import OperationResult, Template

log = logging.getLogger(__name__)

STATE_FILENAME = "state.json"

T = TypeVar("T")

DISABLED_MESSAGE = "roam-organize mode is disabled; run 'rorg toggle' to enable it"


def _load_state(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {"enabled": False, "templates": {}}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as e:
        log.warning("Ignoring unreadable state file %s: %s", path, e)
        return {"enabled": False, "templates": {}}
    if not isinstance(payload, dict):
        return {"enabled": False, "templates": {}}
    payload.setdefault("enabled", False)
    payload.setdefault("templates", {})
    return payload


class ModeController:
    """Disabled/Enabled state machine gating the organizing operations."""

    def __init__(self, store: ConfigStore, index: NodeIndex, state_path: Path | None = None) -> None:
        self.store = store
        self.index = index
        self.state_path = state_path or get_state_dir() / STATE_FILENAME
        self._state = _load_state(self.state_path)

    @property
    def enabled(self) -> bool:
        return self._state["enabled"] is True

    @property
    def templates(self) -> dict[str, Template]:
        """The template registry, keyed by template key."""
        return {key: Template(**data) for key, data in self._state["templates"].items()}

    def _save(self) -> None:
        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        self.state_path.write_text(json.dumps(self._state, indent=2), encoding="utf-8")

    def _merge_templates(self) -> list[str]:
        """Add configured templates whose key is not registered yet."""
        registry = self._state["templates"]
        added: list[str] = []
        for template in self.store.templates:
            if template.key in registry:
                log.debug("Template '%s' already registered; keeping existing", template.key)
                continue
            registry[template.key] = template.model_dump()
            added.append(template.key)
        return added

    def enable(self, cwd: Path | None = None, override: bool = False) -> OperationResult:
        """Try to enter the Enabled state.

        Args:
            cwd: Working directory to check against the root (defaults to Path.cwd()).
            override: Skip the working-directory check.
        """
        if self.enabled:
            return OperationResult(message="roam-organize mode is already enabled")

        report = self.store.validate()
        if not report.ok:
            return OperationResult(
                status="error",
                message="Configuration is invalid; mode stays disabled.\n" + report.text,
            )

        if not override:
            root = self.store.root
            here = (cwd or Path.cwd()).resolve()
            if not here.is_relative_to(root):
                return OperationResult(
                    status="error",
                    message=(
                        f"Working directory {here} is outside the root {root}; "
                        "mode stays disabled (use --anywhere to override)"
                    ),
                )

        added = self._merge_templates()
        self._state["enabled"] = True
        self._save()
        log.info("Mode enabled")

        message = "roam-organize mode enabled"
        if added:
            message += f"; registered template(s): {', '.join(added)}"
        return OperationResult(message=message)

    def disable(self) -> OperationResult:
        self._state["enabled"] = False
        self._save()
        log.info("Mode disabled")
        return OperationResult(message="roam-organize mode disabled")

    def toggle(self, cwd: Path | None = None, override: bool = False) -> OperationResult:
        if self.enabled:
            return self.disable()
        return self.enable(cwd=cwd, override=override)

    def run(self, operation: Callable[..., T], *args: Any, **kwargs: Any) -> T | OperationResult:
        """Invoke an organizing operation, or report the disabled state without doing work."""
        if not self.enabled:
            log.warning(DISABLED_MESSAGE)
            return OperationResult(status="disabled", message=DISABLED_MESSAGE)
        return operation(*args, **kwargs)
