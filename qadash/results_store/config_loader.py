"""Load storage settings from YAML files."""

from pathlib import Path

import yaml

from qadash.results_store.models.provider_config import StorageSettings


def load_storage_settings(config_path: Path) -> StorageSettings:
    """Load storage settings from a YAML file.

    The file mirrors StorageSettings, for example::

        provider: google-drive
        request_timeout: 20
        google_drive:
          credentials_file: credentials/google-drive-credentials.json
        local:
          storage_dir: data/test-results

    Args:
        config_path: Path to the YAML settings file

    Returns:
        Parsed settings

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If YAML is invalid or doesn't match schema

    """
    if not config_path.exists():
        raise FileNotFoundError(f"Settings file not found: {config_path}")

    try:
        with config_path.open() as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        return StorageSettings()

    try:
        return StorageSettings.model_validate(data)
    except Exception as e:
        raise ValueError(f"Invalid storage settings in {config_path}: {e}") from e
