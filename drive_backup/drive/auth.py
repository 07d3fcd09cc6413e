"""
OAuth authentication manager for Drive Backup.

Supplies the bearer token used by the listing client and the downloader.
Tokens are refreshed on demand, so long downloads keep working past expiry.
"""

import logging
from pathlib import Path
from typing import Optional

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

logger = logging.getLogger(__name__)


class OAuthManager:
    """
    Manages OAuth 2.0 authentication for Google Drive (read-only scope).

    Uses a client secret file from the Google Cloud console and caches the
    authorized user token next to it.
    """

    SCOPES = ["https://www.googleapis.com/auth/drive.readonly"]

    def __init__(self, client_secret_path: Path, token_path: Path):
        """
        Initialize OAuth manager.

        Args:
            client_secret_path: Path to OAuth client secret JSON
            token_path: Path to save/load the user token
        """
        self.client_secret_path = client_secret_path
        self.token_path = token_path
        self._credentials: Optional[Credentials] = None

    @property
    def is_configured(self) -> bool:
        """Check if OAuth client secret or a saved token is available."""
        return self.client_secret_path.exists() or self.token_path.exists()

    def _load_token(self) -> Optional[Credentials]:
        if not self.token_path.exists():
            return None
        try:
            return Credentials.from_authorized_user_file(str(self.token_path), self.SCOPES)
        except ValueError as e:
            logger.warning("Ignoring unreadable token file %s: %s", self.token_path, e)
            return None

    def get_credentials(self) -> Optional[Credentials]:
        """
        Get valid credentials, refreshing or re-authorizing as needed.

        Returns:
            Credentials object or None if no authorization is possible
        """
        creds = self._credentials or self._load_token()

        if creds and creds.expired and creds.refresh_token:
            try:
                creds.refresh(Request())
                self._save_token(creds)
            except RefreshError as e:
                logger.warning("Token refresh failed: %s", e)
                creds = None

        if (not creds or not creds.valid) and self.client_secret_path.exists():
            flow = InstalledAppFlow.from_client_secrets_file(str(self.client_secret_path), self.SCOPES)
            creds = flow.run_local_server(port=0)
            self._save_token(creds)

        if creds and creds.valid:
            self._credentials = creds
            return creds

        return None

    def get_token(self) -> Optional[str]:
        """
        Get the access token string.

        Returns:
            Access token string or None
        """
        creds = self.get_credentials()
        if creds:
            return creds.token
        return None

    def _save_token(self, creds: Credentials):
        """Save credentials to token file."""
        try:
            self.token_path.parent.mkdir(parents=True, exist_ok=True)
            self.token_path.write_text(creds.to_json(), encoding="utf-8")
        except OSError as e:
            logger.warning("Could not save token to %s: %s", self.token_path, e)
