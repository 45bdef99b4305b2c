"""Loading of tablesync configuration from layered YAML files."""

import os
import re
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from tablesync.exceptions import ConfigurationError
from tablesync.models.config import AppConfig

log = structlog.stdlib.get_logger()

DEFAULT_CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"
BASE_CONFIG_NAME = "default"

SUPPORTED_STORE_TYPES = ("sqlite", "memory")

# Servers cap pages well below this
LARGE_PAGE_SIZE = 1000

# ${NAME} or ${NAME:-fallback}
_ENV_REFERENCE = re.compile(r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<fallback>[^}]*))?\}")

__all__ = ["ConfigLoader", "ConfigurationError", "expand_env_references", "merge_sections"]


def read_yaml(path: Path) -> dict[str, Any]:
    """
    Read one configuration file.

    Raises:
        ConfigurationError: If the file is missing, unreadable, not YAML, or
            does not hold a mapping of sections
    """
    try:
        content = yaml.safe_load(path.read_text())
    except FileNotFoundError as e:
        raise ConfigurationError(f"Configuration file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Configuration file {path} is not valid YAML: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration file {path}: {e}") from e

    if not isinstance(content, dict):
        raise ConfigurationError(
            f"Configuration file {path} must hold a mapping of sections, "
            f"got {type(content).__name__}"
        )
    return content


def expand_env_references(value: Any) -> Any:
    """
    Replace ``${NAME}`` and ``${NAME:-fallback}`` in every string of a YAML tree.

    Args:
        value: Parsed YAML (mapping, list or scalar)

    Returns:
        The same structure with references resolved from the environment

    Raises:
        ConfigurationError: If a variable without a fallback is not set
    """
    if isinstance(value, dict):
        return {key: expand_env_references(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env_references(item) for item in value]
    if not isinstance(value, str):
        return value

    def _resolve(match: re.Match) -> str:
        name = match.group("name")
        resolved = os.environ.get(name, match.group("fallback"))
        if resolved is None:
            raise ConfigurationError(
                f"Environment variable {name} is referenced by the configuration but not set"
            )
        return resolved

    return _ENV_REFERENCE.sub(_resolve, value)


def merge_sections(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge an environment file over the base file. Lists are replaced whole."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_sections(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigLoader:
    """Builds AppConfig from YAML files, environment references and APP_ variables.

    Without an explicit path, ``default.yaml`` is read from the config directory
    and ``<APP_ENV>.yaml`` is layered over it when such a file exists. Values set
    in the files win over ``APP_`` prefixed environment variables.
    """

    def __init__(self, config_dir: Path | None = None) -> None:
        """
        Args:
            config_dir: Directory holding the YAML files (defaults to the
                repository's config/ directory)
        """
        self.config_dir: Path = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR

    def load_config(self, config_path: str | None = None) -> AppConfig:
        """
        Load and validate the application configuration.

        Args:
            config_path: Single file to load instead of the layered files

        Returns:
            Validated AppConfig

        Raises:
            ConfigurationError: If a file is missing or malformed, a referenced
                environment variable is unset, or validation fails
        """
        if config_path is not None:
            sections = read_yaml(Path(config_path))
            sources = [str(config_path)]
        else:
            sections, sources = self._read_layers()

        log.info("loading_configuration", sources=sources)

        try:
            config = AppConfig(**expand_env_references(sections))
        except ValidationError as e:
            log.error("configuration_invalid", sources=sources, errors=e.error_count())
            raise ConfigurationError(
                f"Invalid configuration in {', '.join(sources)}: {e}"
            ) from e

        for warning in self.validate_config(config):
            log.warning("configuration_warning", warning=warning)

        log.info(
            "configuration_loaded",
            store=config.store.type,
            tables=[table.name for table in config.pull.tables],
        )
        return config

    def _read_layers(self) -> tuple[dict[str, Any], list[str]]:
        base_path = self.config_dir / f"{BASE_CONFIG_NAME}.yaml"
        if not base_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {base_path}. "
                f"Create {BASE_CONFIG_NAME}.yaml in {self.config_dir} or pass a path."
            )

        sections = read_yaml(base_path)
        sources = [str(base_path)]

        env = os.getenv("APP_ENV", BASE_CONFIG_NAME)
        if env == BASE_CONFIG_NAME:
            return sections, sources

        env_path = self.config_dir / f"{env}.yaml"
        if env_path.exists():
            sections = merge_sections(sections, read_yaml(env_path))
            sources.append(str(env_path))
        else:
            log.warning("environment_config_missing", app_env=env, path=str(env_path))

        return sections, sources

    def validate_config(self, config: AppConfig) -> list[str]:
        """
        Find configuration mistakes that validation alone accepts.

        Returns:
            Human readable warnings, empty if none
        """
        warnings = []

        if config.store.type not in SUPPORTED_STORE_TYPES:
            warnings.append(
                f"store.type '{config.store.type}' is not one of {list(SUPPORTED_STORE_TYPES)}"
            )

        if config.pull.page_size > LARGE_PAGE_SIZE:
            warnings.append(
                f"pull.page_size {config.pull.page_size} exceeds {LARGE_PAGE_SIZE}; "
                "the server will return smaller pages"
            )

        # A shared query ID makes tables overwrite each other's checkpoint
        tables_by_query_id: dict[str, list[str]] = {}
        for table in config.pull.tables:
            if table.query_id is not None:
                tables_by_query_id.setdefault(table.query_id, []).append(table.name)
        for query_id, names in tables_by_query_id.items():
            if len(names) > 1:
                warnings.append(f"query_id '{query_id}' is shared by tables {names}")

        return warnings
