"""Configuration loading for the multitool host.

The host reads one YAML document whose top-level sections (``logging``,
``timers``, ``tools``) map onto the HostConfig models. Every section and key
is optional, so a missing section falls back to its defaults. Configuration
problems are the operator's to fix: they are logged and raised before any
tool module runs, unlike tool failures, which the CoreContext absorbs.
"""

import logging
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ValidationError

from host.host_config import HostConfig

logger = logging.getLogger(__name__)


class ConfigManager(BaseModel):
    """Reads and validates the host configuration file.

    Keeps the parsed document in ``raw_config_data`` after a load so callers
    can inspect keys the schema does not model.
    """

    config_file: Optional[str] = None
    raw_config_data: Optional[dict] = None

    def __init__(self, config_file: Optional[str] = None):
        """Initialize ConfigManager.

        Args:
            config_file: Path to the YAML file. None means "no file": the
                built-in defaults are used.
        """
        super().__init__(config_file=config_file)

    def load_config(self) -> HostConfig:
        """Build the HostConfig for this host.

        Returns:
            HostConfig: Defaults when no file is configured, otherwise the
            validated contents of the file (an empty file yields defaults).

        Raises:
            ValidationError: If a value fails schema validation, for example
                an unknown ``timers.default_format`` or ``max_timers < 1``.
            ValueError: If the document is not a mapping of sections.
            OSError: If the file cannot be read.
            yaml.YAMLError: If the file is not valid YAML.
        """
        if self.config_file is None:
            logger.debug("No configuration file given, using defaults")
            self.raw_config_data = {}
            return HostConfig()

        self.raw_config_data = self._read_config_file()
        try:
            config = HostConfig.model_validate(self.raw_config_data)
        except ValidationError as e:
            logger.error(f"Invalid configuration in '{self.config_file}': {e}")
            raise

        logger.info(
            f"Loaded configuration from '{self.config_file}' "
            f"({len(config.tools.sources)} tool sources)"
        )
        return config

    def _read_config_file(self) -> dict[str, Any]:
        try:
            with open(self.config_file) as f:
                document = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Cannot read configuration file '{self.config_file}': {e}")
            raise

        if document is None:
            return {}
        if not isinstance(document, dict):
            message = (
                f"Configuration file '{self.config_file}' must contain a mapping "
                f"of sections, not {type(document).__name__}"
            )
            logger.error(message)
            raise ValueError(message)
        return document
