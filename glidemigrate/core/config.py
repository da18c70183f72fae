"""Migration engine configuration.

Keyword tables, pattern checks and rewrite tables are kept in
``config/migration.yaml`` and validated into frozen pydantic models. The
configuration is loaded once per process and passed by reference into the
pure analysis functions and rule constructors.
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "GLIDEMIGRATE_CONFIG"

_DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "migration.yaml"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class TargetConfig(_Frozen):
    package: str
    client_class: str
    cluster_client_class: str
    default_host: str = "localhost"
    default_port: int = 6379
    symbols: Tuple[str, ...] = ()


class ComplexityKeywords(_Frozen):
    advanced: Tuple[str, ...]
    intermediate: Tuple[str, ...]


class PatternCheck(_Frozen):
    tag: str
    keywords: Tuple[str, ...]


class RetryConfig(_Frozen):
    factor: int = 2
    default_retries: int = 5
    default_base_delay: int = 100


class IoredisConfig(_Frozen):
    client_classes: Tuple[str, ...] = ("Redis",)
    array_argument_methods: Tuple[str, ...] = ()
    close_aliases: Tuple[str, ...] = ()
    connection_options: Dict[str, str] = Field(default_factory=dict)


class NodeRedisConfig(_Frozen):
    factory_names: Tuple[str, ...] = ("createClient",)
    cluster_factory_names: Tuple[str, ...] = ("createCluster",)
    close_aliases: Tuple[str, ...] = ()
    lifecycle_events: Tuple[str, ...] = ()
    method_renames: Dict[str, str] = Field(default_factory=dict)


class BlockingConfig(_Frozen):
    array_key_commands: Tuple[str, ...] = ()
    move_command: str = "brpoplpush"


class MigrationConfig(_Frozen):
    """Root configuration model."""

    target: TargetConfig
    source_packages: Dict[str, Tuple[str, ...]]
    complexity: ComplexityKeywords
    patterns: Tuple[PatternCheck, ...]
    retry: RetryConfig = RetryConfig()
    ioredis: IoredisConfig = IoredisConfig()
    node_redis: NodeRedisConfig = NodeRedisConfig()
    blocking: BlockingConfig = BlockingConfig()

    def packages_for(self, source_client: str) -> Tuple[str, ...]:
        return self.source_packages.get(source_client, ())


def load_config(path: Optional[Path] = None) -> MigrationConfig:
    """Load and validate a migration configuration file.

    Args:
        path: YAML file to load. Defaults to the packaged ``migration.yaml``.

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid.
    """
    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH

    if not config_path.exists():
        raise ConfigurationError(f"Migration config not found at {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to read migration config {config_path}: {e}") from e

    try:
        config = MigrationConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid migration config {config_path}: {e}") from e

    logger.debug("Loaded migration config from %s (%d pattern checks)", config_path, len(config.patterns))
    return config


@lru_cache(maxsize=1)
def get_config() -> MigrationConfig:
    """Process-wide configuration, honouring ``GLIDEMIGRATE_CONFIG``."""
    override = os.getenv(CONFIG_ENV_VAR)
    if override:
        logger.info("Using migration config override: %s", override)
        return load_config(Path(override))
    return load_config()
