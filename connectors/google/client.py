"""Google API credentials and service factories.

Uses an authorized-user token file created ahead of time. An expired access
token is refreshed and written back; a missing or revoked token is an error.
"""

import os

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from core.observability import get_logger

logger = get_logger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/gmail.compose",
]


def get_credentials(token_file: str = "token.json") -> Credentials:
    """Load the stored OAuth user credentials, refreshing them when expired.

    Args:
        token_file: Authorized user token (GOOGLE_TOKEN_FILE)

    Raises:
        RuntimeError: Token file missing or not refreshable
    """
    if not os.path.exists(token_file):
        raise RuntimeError(f"Google token file not found: {token_file}")

    creds = Credentials.from_authorized_user_file(token_file, SCOPES)
    if creds.valid:
        return creds

    if not (creds.expired and creds.refresh_token):
        raise RuntimeError(f"Google token in {token_file} cannot be refreshed")

    logger.info("Refreshing Google access token")
    creds.refresh(Request())
    with open(token_file, "w") as token:
        token.write(creds.to_json())

    return creds


class GoogleServices:
    """Lazily built Sheets, Drive and Gmail API resources sharing one credential."""

    def __init__(self, token_file: str = "token.json"):
        self.token_file = token_file
        self._creds = None
        self._services = {}

    def _service(self, name: str, version: str):
        key = (name, version)
        if key not in self._services:
            if self._creds is None:
                self._creds = get_credentials(self.token_file)
            self._services[key] = build(name, version, credentials=self._creds, cache_discovery=False)
        return self._services[key]

    @property
    def sheets(self):
        return self._service("sheets", "v4")

    @property
    def drive(self):
        return self._service("drive", "v3")

    @property
    def gmail(self):
        return self._service("gmail", "v1")
