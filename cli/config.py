"""Configuration management for the publisher CLI."""

import json
import os
import shutil
from pathlib import Path
from typing import Optional

from common.constants import DEFAULT_MAX_ASSEMBLE_ROUNDS, DEFAULT_POLL_INTERVAL_SECONDS, DEFAULT_SERVER_URL
from publisher.types import UploadOptions

ENV_URL = "PUBLISHER_URL"
ENV_AUTH_TOKEN = "PUBLISHER_AUTH_TOKEN"
ENV_ORG = "PUBLISHER_ORG"
ENV_PROJECT = "PUBLISHER_PROJECT"


class Config:
    """Manages CLI configuration stored in a JSON file, with environment overrides."""

    DEFAULT_CONFIG = {
        "url": DEFAULT_SERVER_URL,
        "org": None,
        "project": None,
        "timeout": 30,
        "max_retries": 3,
        "initial_backoff": 0.5,
        "max_backoff": 10.0,
        "max_assemble_rounds": DEFAULT_MAX_ASSEMBLE_ROUNDS,
        "poll_interval": DEFAULT_POLL_INTERVAL_SECONDS,
    }

    def __init__(self, config_path: Path):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.artifact-publisher/config.json)
        """
        self.config_path = config_path
        self.data = self._load()

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        Returns:
            Configuration dictionary
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            import tempfile
            self.config_path = Path(tempfile.gettempdir()) / '.artifact-publisher' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                config = self.DEFAULT_CONFIG.copy()
                config.update(data)
                return config
            except (json.JSONDecodeError, IOError):
                backup_path = self.config_path.with_suffix('.json.bak')
                try:
                    shutil.copy(self.config_path, backup_path)
                except OSError:
                    pass
                return self.DEFAULT_CONFIG.copy()
        else:
            config = self.DEFAULT_CONFIG.copy()
            try:
                with open(self.config_path, 'w') as f:
                    json.dump(config, f, indent=2)
            except IOError:
                pass
            return config

    def get_auth_token(self) -> Optional[str]:
        """
        Get the auth token, preferring the environment over the file.

        Returns:
            Token string or None if not set
        """
        return os.environ.get(ENV_AUTH_TOKEN) or self.data.get('auth_token')

    def get_base_url(self) -> str:
        """
        Get service base URL without a trailing slash.

        Returns:
            Base URL string (e.g., "https://sentry.io")
        """
        url = os.environ.get(ENV_URL) or self.data.get('url') or DEFAULT_SERVER_URL
        return url.rstrip('/')

    def get_org(self) -> Optional[str]:
        return os.environ.get(ENV_ORG) or self.data.get('org')

    def get_project(self) -> Optional[str]:
        return os.environ.get(ENV_PROJECT) or self.data.get('project')

    def get_timeout(self) -> float:
        """
        Get request timeout in seconds.

        Returns:
            Timeout value in seconds
        """
        return self.data.get('timeout', 30)

    def get_retry_config(self) -> dict:
        """
        Get retry configuration.

        Returns:
            Dictionary with 'max_retries', 'initial_backoff' and 'max_backoff'
        """
        return {
            'max_retries': self.data.get('max_retries', 3),
            'initial_backoff': self.data.get('initial_backoff', 0.5),
            'max_backoff': self.data.get('max_backoff', 10.0),
        }

    def get_upload_options(
        self,
        wait: bool = False,
        max_wait: Optional[float] = None,
        deadline: Optional[float] = None,
        no_upload: bool = False
    ) -> UploadOptions:
        """
        Build engine options from the stored settings plus per-command flags.

        Args:
            wait: Poll until the server finished assembling
            max_wait: Upper bound for polling, in seconds
            deadline: Cancel the whole run after this many seconds
            no_upload: Only chunk and checksum locally, never contact the server

        Returns:
            UploadOptions instance
        """
        retry = self.get_retry_config()
        return UploadOptions(
            max_retries=retry['max_retries'],
            initial_backoff=retry['initial_backoff'],
            max_backoff=retry['max_backoff'],
            max_assemble_rounds=self.data.get('max_assemble_rounds', DEFAULT_MAX_ASSEMBLE_ROUNDS),
            wait=wait,
            max_wait=max_wait,
            poll_interval=self.data.get('poll_interval', DEFAULT_POLL_INTERVAL_SECONDS),
            deadline=deadline,
            timeout=self.get_timeout(),
            no_upload=no_upload,
        )
