"""
Configuration file loading for bookstack-sync.

A configuration is the merge of every YAML file found in the usual places,
highest precedence first:

1. the file named by ``BOOKSTACK_SYNC_CONFIG``
2. ``.bookstack_sync/config.yml`` (or ``config.yaml``) in the working
   directory, usually next to the synced folder
3. ``~/.config/bookstack_sync/config.yml``

Whole top-level sections replace each other ("project wins"); the
``bookstack`` credentials from a project file are never mixed with those of
the global file.  String values may reference the environment as ``${VAR}``
or ``${VAR:-default}``, and a value may be pulled from another file with
``!include`` so that tokens can live outside the synced folder.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

from .config_schema import LoggingConfig, SyncSettings

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "BOOKSTACK_SYNC_CONFIG"
PROJECT_DIR_NAME = ".bookstack_sync"
PROJECT_FILE_NAMES = ("config.yml", "config.yaml")

_ENV_REFERENCE = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` references in *value*.

    An unset or empty variable expands to its default, or to ``""`` when
    none is given.  An unterminated ``${`` is kept as is.
    """

    def _expand(match: re.Match) -> str:
        current = os.environ.get(match.group(1))
        if current:
            return current
        return match.group(2) or ""

    return _ENV_REFERENCE.sub(_expand, value)


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader for configuration files.

    Adds ``!include`` and expands environment references in every string.
    ``include_chain`` holds the files being loaded, outermost first.
    """

    include_chain: tuple[Path, ...] = ()


def _construct_str(loader: ConfigLoader, node: yaml.ScalarNode) -> str:
    return interpolate_env_vars(loader.construct_scalar(node))


def _construct_include(loader: ConfigLoader, node: yaml.ScalarNode) -> Any:
    source = loader.include_chain[-1]
    target = (source.parent / loader.construct_scalar(node)).resolve()

    if target in loader.include_chain:
        chain = " -> ".join(str(p) for p in loader.include_chain + (target,))
        raise ValueError(f"Circular include detected: {chain}")
    if not target.is_file():
        raise FileNotFoundError(
            f"Include file not found: {target} (referenced from {source})"
        )
    return load_yaml_file(target, _chain=loader.include_chain)


ConfigLoader.add_constructor("tag:yaml.org,2002:str", _construct_str)
ConfigLoader.add_constructor("!include", _construct_include)


def load_yaml_file(path: Path, _chain: tuple[Path, ...] = ()) -> Any:
    """Load one configuration file, following its ``!include`` directives."""
    path = path.resolve()
    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader.include_chain = _chain + (path,)
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery and merge
# ---------------------------------------------------------------------------


def _project_dir() -> Path:
    return Path.cwd() / PROJECT_DIR_NAME


def discover_config_files() -> list[Path]:
    """Existing configuration files, highest precedence first."""
    candidates = []
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        candidates.append(Path(explicit).expanduser().resolve())
    candidates.extend(_project_dir() / name for name in PROJECT_FILE_NAMES)
    candidates.append(Path.home() / ".config" / "bookstack_sync" / "config.yml")
    return [path for path in candidates if path.is_file()]


def load_hierarchical_config() -> dict[str, Any]:
    """Merge every discovered configuration file into one raw dict.

    Returns an empty dict when there is no configuration file at all; the
    schema defaults and environment variables then apply.

    Raises:
        yaml.YAMLError: If a file is not valid YAML.
        FileNotFoundError: If an ``!include`` target is missing.
        ValueError: If includes form a cycle.
    """
    merged: dict[str, Any] = {}
    for path in reversed(discover_config_files()):
        logger.debug("Loading config: %s", path)
        data = load_yaml_file(path)
        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Ignoring %s: top level is a %s, not a mapping",
                path,
                type(data).__name__,
            )
    return merged


# ---------------------------------------------------------------------------
# Starter file
# ---------------------------------------------------------------------------


def starter_config() -> str:
    """Text of a new configuration file.

    Every setting is listed with its default and commented out, so a fresh
    file changes nothing until the user edits it.
    """
    sections = {
        "bookstack": {
            "url": "https://bookstack.example.com",
            "token_id": "${BOOKSTACK_TOKEN_ID}",
            "token_secret": "${BOOKSTACK_TOKEN_SECRET}",
            "insecure": False,
            "timeout": 60,
        },
        "sync": SyncSettings().model_dump(),
        "logging": LoggingConfig().model_dump(),
    }
    body = yaml.safe_dump(sections, sort_keys=False, default_flow_style=False)
    lines = [
        "# bookstack-sync configuration",
        "#",
        "# Run `bookstack-sync books` to find the ids for sync.books.",
        "# Connection settings may also come from BOOKSTACK_URL,",
        "# BOOKSTACK_TOKEN_ID and BOOKSTACK_TOKEN_SECRET.",
        "#",
    ]
    lines.extend(f"# {line}" if line else "#" for line in body.splitlines())
    return "\n".join(lines) + "\n"


def ensure_config(target: Path | None = None) -> Path:
    """Return a configuration file path, writing a starter file if needed.

    Without *target* the highest-precedence existing file is returned, or a
    starter file is created at ``.bookstack_sync/config.yml``.  An explicit
    *target* is created unless it already exists.
    """
    if target is None:
        existing = discover_config_files()
        if existing:
            logger.debug("Config file already exists: %s", existing[0])
            return existing[0]
        target = _project_dir() / PROJECT_FILE_NAMES[0]
    elif target.exists():
        return target

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(starter_config(), encoding="utf-8")
    logger.info("Created starter config: %s", target)
    return target
