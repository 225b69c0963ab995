import os
from pathlib import Path
from string import Template
from typing import Optional

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from src.models.config import PipelineConfig
from src.utils.exceptions import ConfigValidationError

logger = structlog.get_logger()


class ConfigManager:
    """Loads the YAML pipeline configuration with ${VAR} substitution"""

    def __init__(
        self,
        config_path: str = "config/pipeline_config.yaml",
        load_env: bool = True,
    ):
        self.config_path = Path(config_path)
        self.env_loaded = not load_env
        self._config: Optional[PipelineConfig] = None

    def load_config(self) -> PipelineConfig:
        """Load and validate configuration"""
        if self._config:
            return self._config

        # 1. Load environment
        if not self.env_loaded:  # pragma: no cover
            load_dotenv()
            self.env_loaded = True

        # 2. Check file existence
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        # 3. Read YAML
        try:
            with open(self.config_path) as f:
                raw_content = f.read()
        except OSError as e:
            raise ConfigValidationError(f"Failed to read config file: {e}")

        # 4. Substitute env vars
        try:
            template = Template(raw_content)
            substituted_content = template.safe_substitute(os.environ)
            config_data = yaml.safe_load(substituted_content)
        except (ValueError, yaml.YAMLError) as e:
            raise ConfigValidationError(
                f"Failed to parse YAML or substitute variables: {e}"
            )

        if not isinstance(config_data, dict):
            raise ConfigValidationError("Configuration root must be a mapping")

        # 5. Validate with Pydantic
        try:
            self._config = PipelineConfig(**config_data)
        except ValidationError as e:
            raise ConfigValidationError(f"Invalid configuration: {e}")

        unresolved = _unresolved_placeholders(self._config)
        if unresolved:
            raise ConfigValidationError(
                f"Unset environment variables: {', '.join(sorted(unresolved))}"
            )

        logger.info(
            "config_loaded",
            path=str(self.config_path),
            table=self._config.store.table,
            page_size=self._config.batch.page_size,
            checkpoint_backend=self._config.checkpoint.backend.value,
        )
        return self._config


def _unresolved_placeholders(config: PipelineConfig) -> set:
    """Secrets still of the form ``${VAR}`` after substitution"""
    candidates = [config.store.url, config.store.api_key, config.enrichment.api_key]
    return {value for value in candidates if value.startswith("${")}
