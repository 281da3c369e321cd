"""
OAuth token handling for the Teamleader API
"""
import json
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests

from config import (
    AppSettings, DEFAULT_AUTHORIZE_URL, DEFAULT_REDIRECT_URI, DEFAULT_TOKEN_LIFETIME,
    DEFAULT_TOKEN_URL, OAUTH_SCOPES, REQUEST_TIMEOUT, TOKEN_EXPIRY_BUFFER, TOKEN_FILE_NAME
)
from utils import logger


@dataclass
class OAuthToken:
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: int = DEFAULT_TOKEN_LIFETIME
    token_type: Optional[str] = None
    obtained_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def expires_at(self) -> datetime:
        return self.obtained_at + timedelta(seconds=self.expires_in)

    def is_valid(self, buffer_seconds: int = TOKEN_EXPIRY_BUFFER) -> bool:
        return bool(self.access_token) and self.expires_at > datetime.now(timezone.utc) + timedelta(seconds=buffer_seconds)

    def to_dict(self) -> Dict:
        return {
            'access_token': self.access_token,
            'refresh_token': self.refresh_token,
            'expires_in': self.expires_in,
            'token_type': self.token_type,
            'obtained_at': self.obtained_at.isoformat()
        }

    @classmethod
    def from_response(cls, data: Dict) -> Optional['OAuthToken']:
        """Build a token from an OAuth token-endpoint response"""
        access_token = data.get('access_token')
        if not access_token:
            return None
        expires_in = data.get('expires_in')
        return cls(
            access_token=access_token,
            refresh_token=data.get('refresh_token'),
            expires_in=expires_in if isinstance(expires_in, int) else DEFAULT_TOKEN_LIFETIME,
            token_type=data.get('token_type'),
        )


class TokenManager:
    """
    Acquire, refresh and persist OAuth tokens for one importer run.

    The saved token lives in auth_token.json inside config_dir. The most recent
    token is also kept in memory on this object.
    """

    def __init__(self, settings: AppSettings, config_dir: str):
        self.settings = settings
        self.config_dir = config_dir
        self.token_path = os.path.join(config_dir, TOKEN_FILE_NAME)
        self._cached: Optional[OAuthToken] = None

    @property
    def auth(self):
        return self.settings.authentication

    @property
    def token_url(self) -> str:
        return (self.auth.token_url if self.auth and self.auth.token_url else DEFAULT_TOKEN_URL)

    @property
    def redirect_uri(self) -> str:
        return (self.auth.redirect_uri if self.auth and self.auth.redirect_uri else DEFAULT_REDIRECT_URI)

    def _read_token_data(self) -> Optional[Dict]:
        """Raw contents of the token file, or None if it is missing or unreadable"""
        if not os.path.exists(self.token_path):
            return None
        try:
            with open(self.token_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load saved token: {e}")
            return None
        if not isinstance(data, dict):
            logger.warning(f"Ignoring {TOKEN_FILE_NAME}: expected a JSON object")
            return None
        return data

    def _read_token_file(self) -> Optional[OAuthToken]:
        data = self._read_token_data()
        if data is None:
            return None
        try:
            token = OAuthToken.from_response(data)
            if token is None:
                return None
            obtained_at = data.get('obtained_at')
            if not obtained_at:
                return None
            parsed = datetime.fromisoformat(obtained_at)
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            token.obtained_at = parsed
            return token
        except (TypeError, ValueError) as e:
            logger.warning(f"Failed to load saved token: {e}")
            return None

    def load_saved_token(self) -> Optional[str]:
        """Return the saved access token if it is not (about to be) expired"""
        token = self._read_token_file()
        if token is None or not token.is_valid():
            return None
        logger.info(f"Using saved access token from {TOKEN_FILE_NAME}")
        self._cached = token
        return token.access_token

    def save_token(self, token: OAuthToken) -> str:
        directory = os.path.dirname(self.token_path)
        if directory and not os.path.exists(directory):
            os.makedirs(directory)
        with open(self.token_path, 'w', encoding='utf-8') as f:
            json.dump(token.to_dict(), f, indent=2)
        self._cached = token
        return self.token_path

    def _request_token(self, form: Dict[str, str]) -> Optional[OAuthToken]:
        try:
            response = requests.post(self.token_url, data=form, timeout=REQUEST_TIMEOUT)
            response.raise_for_status()
            token = OAuthToken.from_response(response.json())
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Token request ({form.get('grant_type')}) failed: {e}")
            return None
        if token is not None:
            self._cached = token
        return token

    def client_credentials(self) -> Optional[str]:
        """Client-credentials grant; reuses the in-memory token while it is valid"""
        if self._cached is not None and self._cached.is_valid(buffer_seconds=60):
            return self._cached.access_token
        token = self._request_token({
            'grant_type': 'client_credentials',
            'client_id': self.auth.client_id,
            'client_secret': self.auth.client_secret
        })
        return token.access_token if token else None

    def exchange_authorization_code(self, code: str, redirect_uri: str) -> Optional[OAuthToken]:
        return self._request_token({
            'grant_type': 'authorization_code',
            'client_id': self.auth.client_id,
            'client_secret': self.auth.client_secret,
            'code': code,
            'redirect_uri': redirect_uri
        })

    def refresh(self, refresh_token: str) -> Optional[OAuthToken]:
        if not refresh_token:
            return None
        return self._request_token({
            'grant_type': 'refresh_token',
            'client_id': self.auth.client_id,
            'client_secret': self.auth.client_secret,
            'refresh_token': refresh_token
        })

    def acquire_token(self) -> Optional[str]:
        """
        Get an access token from the first source that yields one:
        saved token, refresh of the saved token, configured ApiToken,
        client-credentials grant.
        """
        token = self.load_saved_token()
        if token:
            return token

        saved = self._read_token_data() or {}
        refresh_token = saved.get('refresh_token')
        if isinstance(refresh_token, str) and refresh_token and self.auth is not None and self.auth.has_credentials:
            logger.info("Saved token expired, attempting refresh using refresh_token...")
            refreshed = self.refresh(refresh_token)
            if refreshed is not None:
                path = self.save_token(refreshed)
                logger.info(f"Refreshed token saved to {path}")
                return refreshed.access_token
            logger.warning("Refresh attempt failed. Please re-authenticate with --auth-test")

        if self.settings.api_token:
            logger.info("Using configured API token")
            return self.settings.api_token

        if self.auth is not None and self.auth.has_credentials:
            logger.info("No saved token found. Attempting OAuth client credentials flow...")
            token = self.client_credentials()
            if token:
                return token
            logger.error("Failed to acquire OAuth token using client credentials.")
            logger.info("Run with --auth-test to authenticate interactively.")
            return None

        logger.error("No token found. Please authenticate using one of these methods:")
        logger.info("  1. Run: python main.py --auth-test")
        logger.info("  2. Add ApiToken to appsettings.json or set TEAMLEADER_TOKEN")
        return None

    def build_authorize_url(self, state: str) -> str:
        authorize_url = (self.auth.authorize_url if self.auth and self.auth.authorize_url else DEFAULT_AUTHORIZE_URL)
        query = urlencode({
            'client_id': self.auth.client_id,
            'response_type': 'code',
            'redirect_uri': self.redirect_uri,
            'state': state,
            'scope': OAUTH_SCOPES
        })
        return f"{authorize_url}?{query}"


def parse_redirect_url(url: str):
    """
    Split a pasted OAuth redirect URL into its query parameters and the
    redirect URI (the URL without query or fragment).
    """
    parts = urlsplit(url.strip())
    params = dict(parse_qsl(parts.query))
    redirect_uri = urlunsplit((parts.scheme, parts.netloc, parts.path, '', ''))
    return params, redirect_uri
