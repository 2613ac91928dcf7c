"""OAuth credentials and API service construction for Gmail and Drive."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build

if TYPE_CHECKING:
    from mailferry.config import GoogleConfig

logger = logging.getLogger(__name__)


def load_credentials(config: GoogleConfig, interactive: bool = True) -> Credentials:
    """Load cached credentials, refreshing or re-authorizing as needed.

    Args:
        config: Google configuration
        interactive: Allow running the browser consent flow when no usable
            token is cached

    Raises:
        FileNotFoundError: If authorization is needed and the client
            secrets file is missing
        PermissionError: If authorization is needed but not allowed
    """
    token_path = Path(config.token_file)
    creds: Credentials | None = None

    if token_path.exists():
        creds = Credentials.from_authorized_user_file(str(token_path), config.scopes)

    if creds and creds.valid:
        return creds

    if creds and creds.expired and creds.refresh_token:
        logger.info("Refreshing Google access token")
        creds.refresh(Request())
    else:
        if not interactive:
            raise PermissionError(
                f"No valid Google token in {token_path}, run 'mailferry auth' first"
            )
        secrets_path = Path(config.credentials_file)
        if not secrets_path.exists():
            raise FileNotFoundError(f"OAuth client secrets not found: {secrets_path}")

        flow = InstalledAppFlow.from_client_secrets_file(str(secrets_path), config.scopes)
        creds = flow.run_local_server(port=0)
        logger.info("Google authorization granted")

    token_path.write_text(creds.to_json(), encoding="utf-8")
    return creds


def build_gmail_service(creds: Credentials) -> Any:
    return build("gmail", "v1", credentials=creds, cache_discovery=False)


def build_drive_service(creds: Credentials) -> Any:
    return build("drive", "v3", credentials=creds, cache_discovery=False)
