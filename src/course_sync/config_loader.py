"""
YAML settings files for course_sync.

A run may be configured entirely through environment variables; the files
found here only supply values the environment leaves out.  Files can pull
in other files with ``!include`` (handy for keeping secrets apart) and
reference environment variables as ``${NAME}`` or ``${NAME:-fallback}``.

Usage:
    from course_sync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config("deploy/sync.yml")
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

ENV_CONFIG_VAR = "COURSE_SYNC_CONFIG"

# Looked up relative to the working directory, then the home directory.
PROJECT_CONFIG_NAMES = (
    Path(".course_sync") / "config.yml",
    Path(".course_sync") / "config.yaml",
)
USER_CONFIG_NAME = Path(".config") / "course_sync" / "config.yml"

_PLACEHOLDER = re.compile(r"\$\{(?P<name>[^}:]+?)(?::-(?P<fallback>.*?))?\}")


# ---------------------------------------------------------------------------
# ${NAME} placeholders
# ---------------------------------------------------------------------------


def interpolate_env_vars(value: str) -> str:
    """Substitute ``${NAME}`` and ``${NAME:-fallback}`` in *value*.

    An unset or empty variable yields its fallback, or ``""`` without one.
    An unterminated ``${`` is kept as written.
    """

    def _substitute(match: re.Match) -> str:
        return os.environ.get(match["name"]) or match["fallback"] or ""

    return _PLACEHOLDER.sub(_substitute, value)


def _interpolate_recursive(obj: Any) -> Any:
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {key: _interpolate_recursive(item) for key, item in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_interpolate_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# !include
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader that understands ``!include <file>``.

    The tag is registered on this subclass only.  ``chain`` holds the files
    currently being loaded, outermost first.
    """

    def __init__(self, stream: Any, chain: tuple[Path, ...]) -> None:
        super().__init__(stream)
        self.chain = chain

    def include(self, node: yaml.ScalarNode) -> Any:
        current = self.chain[-1]
        target = (current.parent / self.construct_scalar(node)).resolve()
        if target in self.chain:
            cycle = " -> ".join(str(p) for p in (*self.chain, target))
            raise ValueError(f"Circular include detected: {cycle}")
        if not target.is_file():
            raise FileNotFoundError(
                f"Include file not found: {target} (referenced from {current})"
            )
        return _load_yaml_with_includes(target, _chain=self.chain)


ConfigLoader.add_constructor("!include", ConfigLoader.include)


def _load_yaml_with_includes(path: Path, *, _chain: tuple[Path, ...] = ()) -> Any:
    """Parse one YAML file, expanding ``!include`` tags relative to it."""
    path = Path(path).resolve()
    with path.open(encoding="utf-8") as fh:
        loader = ConfigLoader(fh, (*_chain, path))
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery and merge
# ---------------------------------------------------------------------------


def discover_config_files(explicit: str | None = None) -> list[Path]:
    """List the settings files to read, most important first.

    1. *explicit* (``--config``) or else ``$COURSE_SYNC_CONFIG``; this one
       must exist.
    2. ``.course_sync/config.yml`` or ``.course_sync/config.yaml`` under
       the working directory.
    3. ``~/.config/course_sync/config.yml``.

    Raises:
        FileNotFoundError: If the named file of step 1 is missing.
    """
    found: list[Path] = []

    named = explicit or os.environ.get(ENV_CONFIG_VAR)
    if named:
        named_path = Path(named).expanduser().resolve()
        if not named_path.exists():
            raise FileNotFoundError(f"Config file not found: {named_path}")
        found.append(named_path)

    cwd = Path.cwd()
    found.extend(cwd / name for name in PROJECT_CONFIG_NAMES if (cwd / name).exists())

    user_file = Path.home() / USER_CONFIG_NAME
    if user_file.exists():
        found.append(user_file)
    return found


def load_hierarchical_config(explicit: str | None = None) -> dict[str, Any]:
    """Read every discovered file into one raw settings dict.

    A top-level section from a more important file replaces the whole
    section of a less important one; sections are not merged key by key.
    Placeholders are expanded after merging.  Without any file the result
    is ``{}``.
    """
    sections: dict[str, Any] = {}
    for path in reversed(discover_config_files(explicit)):
        data = _load_yaml_with_includes(path)
        if data is None:
            continue
        if not isinstance(data, dict):
            logger.warning(
                "Ignoring %s: expected a mapping at the top level, got %s",
                path,
                type(data).__name__,
            )
            continue
        logger.debug("Config %s provides sections: %s", path, ", ".join(data))
        sections.update(data)

    if not sections:
        logger.debug("No config files found -- using environment only")
    return _interpolate_recursive(sections)
