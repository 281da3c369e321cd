"""
Configuration and constants for the Teamleader time-tracking importer
"""
import os
import json
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Rate limiting configuration
# - 0.1s (100ms) = safe default, ~10 calls/second
# - 0.2s (200ms) = slower, use if getting 429 errors
RATE_LIMIT_DELAY = 0.1  # Delay between API calls in seconds (100ms)
MAX_RETRIES = 3  # Maximum number of retries for failed API calls
RETRY_DELAY = 1  # Initial delay between retries in seconds
RETRY_BACKOFF = 2  # Exponential backoff multiplier
REQUEST_TIMEOUT = 30  # Seconds before an API call is abandoned

# Pagination configuration for *.list endpoints
DEFAULT_PAGE_SIZE = 100
MAX_PAGES = 1000  # Safety limit to prevent infinite loops

# Logging configuration
# Console log level: DEBUG, INFO, WARNING, ERROR, CRITICAL
CONSOLE_LOG_LEVEL = logging.INFO
LOGS_DIR = 'logs'

# Teamleader endpoints
DEFAULT_BASE_URL = 'https://api.focus.teamleader.eu'
DEFAULT_AUTHORIZE_URL = 'https://focus.teamleader.eu/oauth2/authorize'
DEFAULT_TOKEN_URL = 'https://focus.teamleader.eu/oauth2/access_token'
DEFAULT_REDIRECT_URI = 'https://tailormade.eu/callback'
OAUTH_SCOPES = 'companies events products projects todos'

# Saved OAuth token, stored next to the config file
TOKEN_FILE_NAME = 'auth_token.json'
TOKEN_EXPIRY_BUFFER = 300  # Treat a saved token as expired 5 minutes early
DEFAULT_TOKEN_LIFETIME = 3600

# Default CLI paths
DEFAULT_CONFIG_PATH = 'appsettings.json'
DEFAULT_INPUT_PATH = 'input.csv'

# Separator used when the task label is moved into the notes
NOTES_SEPARATOR = '\r\n'

# Environment variable names
ENV_TEAMLEADER_BASE_URL = 'TEAMLEADER_BASE_URL'
ENV_TEAMLEADER_TOKEN = 'TEAMLEADER_TOKEN'
ENV_TEAMLEADER_CLIENT_ID = 'TEAMLEADER_CLIENT_ID'
ENV_TEAMLEADER_CLIENT_SECRET = 'TEAMLEADER_CLIENT_SECRET'


@dataclass
class AuthenticationSettings:
    """OAuth client registration for the Teamleader integration"""
    client_id: str = ''
    client_secret: str = ''
    redirect_uri: Optional[str] = None
    authorize_url: Optional[str] = None
    token_url: Optional[str] = None

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id.strip() and self.client_secret.strip())


@dataclass
class CreationPolicy:
    """Per-level switches deciding whether missing entities may be created"""
    create_companies: bool = True
    create_projects: bool = True
    create_groups: bool = True
    create_tasks: bool = True


@dataclass
class AppSettings:
    base_url: str = DEFAULT_BASE_URL
    api_token: Optional[str] = None
    authentication: Optional[AuthenticationSettings] = None
    creation_policy: CreationPolicy = field(default_factory=CreationPolicy)


def _normalize_keys(section) -> Dict:
    """Lowercase keys and strip underscores so 'CreateTasks', 'createTasks' and 'create_tasks' agree"""
    if not isinstance(section, dict):
        return {}
    return {str(k).lower().replace('_', ''): v for k, v in section.items()}


def _as_bool(value, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in ('true', 'yes', 'y', '1'):
        return True
    if text in ('false', 'no', 'n', '0'):
        return False
    return default


def parse_creation_policy(section: Optional[Dict]) -> CreationPolicy:
    """
    Build a CreationPolicy from the 'Import' section of appsettings.json

    Args:
        section: Raw dictionary (any key casing) or None

    Returns:
        CreationPolicy with unspecified options left at True
    """
    data = _normalize_keys(section)
    return CreationPolicy(
        create_companies=_as_bool(data.get('createcompanies'), True),
        create_projects=_as_bool(data.get('createprojects'), True),
        create_groups=_as_bool(data.get('creategroups'), True),
        create_tasks=_as_bool(data.get('createtasks'), True),
    )


def load_settings(config_path: str = DEFAULT_CONFIG_PATH) -> AppSettings:
    """
    Load importer settings from a JSON file, with environment overrides

    Args:
        config_path: Path to appsettings.json

    Returns:
        AppSettings instance

    Raises:
        FileNotFoundError: If the config file does not exist
        ValueError: If the config file is not valid JSON
    """
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8-sig') as f:
        try:
            raw = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {config_path}: {e}") from e

    data = _normalize_keys(raw)

    auth = None
    auth_data = _normalize_keys(data.get('authentication'))
    if auth_data:
        auth = AuthenticationSettings(
            client_id=auth_data.get('clientid') or '',
            client_secret=auth_data.get('clientsecret') or '',
            redirect_uri=auth_data.get('redirecturi'),
            authorize_url=auth_data.get('authorizeurl'),
            token_url=auth_data.get('tokenurl'),
        )

    settings = AppSettings(
        base_url=data.get('baseurl') or DEFAULT_BASE_URL,
        api_token=data.get('apitoken'),
        authentication=auth,
        creation_policy=parse_creation_policy(data.get('import')),
    )

    # Environment variables win over the file
    env_base_url = os.getenv(ENV_TEAMLEADER_BASE_URL)
    if env_base_url:
        settings.base_url = env_base_url
    env_token = os.getenv(ENV_TEAMLEADER_TOKEN)
    if env_token:
        settings.api_token = env_token
    env_client_id = os.getenv(ENV_TEAMLEADER_CLIENT_ID)
    env_client_secret = os.getenv(ENV_TEAMLEADER_CLIENT_SECRET)
    if env_client_id or env_client_secret:
        if settings.authentication is None:
            settings.authentication = AuthenticationSettings()
        if env_client_id:
            settings.authentication.client_id = env_client_id
        if env_client_secret:
            settings.authentication.client_secret = env_client_secret

    settings.base_url = settings.base_url.rstrip('/')
    return settings
