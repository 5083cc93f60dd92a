"""
Configuration management for NAS Slideshow.
Handles loading, validation, and defaults for all settings.
"""

import os
import yaml
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
import logging

logger = logging.getLogger(__name__)

# Default paths
DEFAULT_CONFIG_PATHS = [
    "/etc/nas-slideshow/config.yaml",
    os.path.expanduser("~/.config/nas-slideshow/config.yaml"),
    "./config.yaml",
]

# Environment variable that overrides the configured NAS password
PASSWORD_ENV_VAR = "NAS_SLIDESHOW_PASSWORD"


@dataclass
class NasConfig:
    """Connection settings for the NAS Web API."""
    url: str = ""
    verify_ssl: bool = True
    timeout_seconds: int = 30


@dataclass
class AccountConfig:
    """NAS credentials."""
    account: str = ""
    password: str = ""


@dataclass
class SearchConfig:
    """Remote photo search settings."""
    folders: List[str] = field(default_factory=list)
    sample_count: int = 20
    timeout_seconds: int = 120
    poll_delay_seconds: float = 3.0
    max_poll_attempts: int = 10
    excluded_extensions: List[str] = field(
        default_factory=lambda: [".mp4", ".mov", ".avi", ".mkv", ".wmv"]
    )


@dataclass
class DownloadConfig:
    """Local download settings."""
    directory: str = "/var/lib/nas-slideshow/photos"
    file_name: str = "photos.zip"
    convert_photos: bool = True  # Re-encode to WebP after unpacking


@dataclass
class GeolocationConfig:
    """Reverse geocoding settings."""
    enabled: bool = False
    api_key: str = ""
    use_mock: bool = True
    cache_ttl_days: int = 7
    cache_directory: str = "/var/lib/nas-slideshow/cache"


@dataclass
class WebConfig:
    """Web interface settings."""
    enabled: bool = True
    port: int = 8080
    host: str = "0.0.0.0"
    photo_route: str = "/photos"


@dataclass
class LoggingConfig:
    """Logging settings."""
    directory: str = ""  # Empty = console only


@dataclass
class SlideshowConfig:
    """Main configuration class."""
    nas: NasConfig = field(default_factory=NasConfig)
    account: AccountConfig = field(default_factory=AccountConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    download: DownloadConfig = field(default_factory=DownloadConfig)
    geolocation: GeolocationConfig = field(default_factory=GeolocationConfig)
    web: WebConfig = field(default_factory=WebConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Runtime state (not persisted)
    config_path: Optional[str] = None


def _dict_to_dataclass(data: Dict[str, Any], cls: type) -> Any:
    """Convert a dictionary to a dataclass instance, handling nested dataclasses."""
    if data is None:
        return cls()

    field_types = {f.name: f.type for f in cls.__dataclass_fields__.values()}
    kwargs = {}

    for key, value in data.items():
        if key not in field_types:
            continue

        field_type = field_types[key]

        if hasattr(field_type, '__dataclass_fields__'):
            kwargs[key] = _dict_to_dataclass(value, field_type)
        else:
            kwargs[key] = value

    return cls(**kwargs)


def load_config(config_path: Optional[str] = None) -> SlideshowConfig:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to config file. If None, searches default locations.

    Returns:
        SlideshowConfig instance with loaded or default values.
    """
    if config_path:
        paths_to_try = [config_path]
    else:
        paths_to_try = DEFAULT_CONFIG_PATHS

    config_data = {}
    found_path = None

    for path in paths_to_try:
        expanded_path = os.path.expanduser(path)
        if os.path.exists(expanded_path):
            try:
                with open(expanded_path, 'r') as f:
                    config_data = yaml.safe_load(f) or {}
                found_path = expanded_path
                logger.info(f"Loaded config from {expanded_path}")
                break
            except (OSError, yaml.YAMLError) as e:
                logger.warning(f"Failed to load config from {expanded_path}: {e}")

    if not found_path:
        logger.info("No config file found, using defaults")

    config = SlideshowConfig(
        nas=_dict_to_dataclass(config_data.get('nas'), NasConfig),
        account=_dict_to_dataclass(config_data.get('account'), AccountConfig),
        search=_dict_to_dataclass(config_data.get('search'), SearchConfig),
        download=_dict_to_dataclass(config_data.get('download'), DownloadConfig),
        geolocation=_dict_to_dataclass(config_data.get('geolocation'), GeolocationConfig),
        web=_dict_to_dataclass(config_data.get('web'), WebConfig),
        logging=_dict_to_dataclass(config_data.get('logging'), LoggingConfig),
        config_path=found_path,
    )

    password = os.environ.get(PASSWORD_ENV_VAR)
    if password:
        config.account.password = password

    # Expand user paths
    config.download.directory = os.path.expanduser(config.download.directory)
    config.geolocation.cache_directory = os.path.expanduser(config.geolocation.cache_directory)

    return config


def save_config(config: SlideshowConfig, config_path: Optional[str] = None) -> str:
    """
    Save configuration to a YAML file.

    Args:
        config: Configuration to save.
        config_path: Path to save to. If None, uses config.config_path or default.

    Returns:
        Path where config was saved.
    """
    if config_path is None:
        config_path = config.config_path or DEFAULT_CONFIG_PATHS[0]

    config_path = os.path.expanduser(config_path)

    os.makedirs(os.path.dirname(config_path) or ".", exist_ok=True)

    data = config_to_dict(config)

    with open(config_path, 'w') as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    logger.info(f"Saved config to {config_path}")
    return config_path


def config_to_dict(config: SlideshowConfig) -> Dict[str, Any]:
    """Convert config to dictionary for serialization."""
    def dataclass_to_dict(obj: Any) -> Any:
        if hasattr(obj, '__dataclass_fields__'):
            result = {}
            for field_name in obj.__dataclass_fields__:
                if field_name == 'config_path':
                    continue  # Skip runtime state
                value = getattr(obj, field_name)
                result[field_name] = dataclass_to_dict(value)
            return result
        elif isinstance(obj, list):
            return [dataclass_to_dict(item) for item in obj]
        elif isinstance(obj, dict):
            return {k: dataclass_to_dict(v) for k, v in obj.items()}
        else:
            return obj

    return dataclass_to_dict(config)


def validate_config(config: SlideshowConfig) -> List[str]:
    """
    Validate configuration and return list of errors.

    Returns:
        List of error messages. Empty if valid.
    """
    errors = []

    # Check NAS connection
    if not config.nas.url:
        errors.append("No NAS URL configured.")
    elif not (config.nas.url.startswith('http://') or config.nas.url.startswith('https://')):
        errors.append("NAS URL must start with http:// or https://")

    if config.nas.timeout_seconds <= 0:
        errors.append("NAS timeout_seconds must be positive")

    # Check credentials
    if not config.account.account or not config.account.password:
        errors.append("NAS account and password are required.")

    # Check search settings
    if not config.search.folders:
        errors.append("No search folders configured. Add at least one NAS folder.")

    for i, folder in enumerate(config.search.folders):
        if not str(folder).startswith('/'):
            errors.append(f"Search folder {i+1} must be an absolute NAS path")

    if config.search.sample_count < 1:
        errors.append("Search sample_count must be at least 1")

    if config.search.timeout_seconds <= 0:
        errors.append("Search timeout_seconds must be positive")

    if config.search.max_poll_attempts < 1:
        errors.append("Search max_poll_attempts must be at least 1")

    if config.search.poll_delay_seconds < 0:
        errors.append("Search poll_delay_seconds cannot be negative")

    # Check download settings
    if not config.download.directory:
        errors.append("Download directory is required")

    if not config.download.file_name or os.sep in config.download.file_name:
        errors.append("Download file_name must be a plain file name")

    # Check geolocation settings
    geo = config.geolocation
    if geo.enabled and not geo.use_mock and not geo.api_key:
        errors.append("Geolocation requires an api_key unless use_mock is enabled")

    if geo.cache_ttl_days < 1:
        errors.append("Geolocation cache_ttl_days must be at least 1")

    # Check web settings
    if config.web.port < 1 or config.web.port > 65535:
        errors.append("Web port must be between 1 and 65535")

    if not config.web.photo_route.startswith('/'):
        errors.append("Web photo_route must start with '/'")

    return errors
