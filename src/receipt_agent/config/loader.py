"""Configuration loader with YAML parsing and environment variable substitution."""

import os
import re
from pathlib import Path

import yaml

from .schema import AgentConfig

# ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


def substitute_env_vars(text: str) -> str:
    """
    Replace ${VAR_NAME} patterns with environment variable values.

    ``${VAR_NAME:-default}`` falls back to ``default`` when the variable
    is unset. Full-line YAML comments are left as written.

    Args:
        text: Text containing ${VAR_NAME} patterns

    Returns:
        Text with environment variables substituted

    Raises:
        ValueError: If a referenced environment variable is not found
            and no default is given
    """

    def replacer(match: re.Match[str]) -> str:
        var_name, default = match.group(1), match.group(2)
        value = os.environ.get(var_name)
        if value is None:
            if default is not None:
                return default
            raise ValueError(f"Environment variable {var_name} not found")
        return value

    return "".join(
        line if line.lstrip().startswith("#") else ENV_VAR_PATTERN.sub(replacer, line)
        for line in text.splitlines(keepends=True)
    )


def load_config(path: Path) -> AgentConfig:
    """
    Load configuration from YAML file with environment variable substitution.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated AgentConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If environment variables are missing or config is invalid
        ValidationError: If config doesn't match schema
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with path.open() as f:
        raw_yaml = f.read()

    # Substitute environment variables
    yaml_with_env = substitute_env_vars(raw_yaml)

    # Parse YAML
    config_dict = yaml.safe_load(yaml_with_env)

    # Validate and construct Pydantic model
    config = AgentConfig.model_validate(config_dict)

    # Additional cross-field validation
    validate_config(config)

    return config


def validate_config(config: AgentConfig) -> None:
    """
    Perform additional cross-field validation.

    Ensures that provider-specific configuration is present when
    a provider is selected.

    Args:
        config: Configuration to validate

    Raises:
        ValueError: If provider-specific config is missing
    """
    if config.ocr.provider == "tencent" and config.ocr.tencent is None:
        raise ValueError("Tencent OCR provider selected but tencent config missing")
