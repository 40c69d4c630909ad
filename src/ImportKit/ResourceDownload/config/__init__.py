"""Configuration models and loaders for ResourceDownload."""

from .loader import export_config_schema, load_config, validate_config_file
from .models import (
    DEFAULT_LIST_FIELDS,
    DEFAULT_SCALAR_FIELDS,
    HttpClientConfig,
    ResourceDownloadConfig,
)

__all__ = [
    "DEFAULT_LIST_FIELDS",
    "DEFAULT_SCALAR_FIELDS",
    "HttpClientConfig",
    "ResourceDownloadConfig",
    "export_config_schema",
    "load_config",
    "validate_config_file",
]
