"""
Credential acquisition for the Slides and Drive APIs.

Order of preference:
1. Service-account JSON named by ``GOOGLE_SLIDES_CREDENTIALS`` (headless, CI)
2. Cached user token from the per-user token store, refreshed if expired
3. Interactive OAuth flow with the client id file, result cached
"""
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google.oauth2.service_account import Credentials as ServiceAccountCredentials
from google_auth_oauthlib.flow import InstalledAppFlow

from . import config

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/presentations",
    "https://www.googleapis.com/auth/drive",
]


class UserAuthorizer:
    """
    Fetch OAuth credentials per user, caching refresh tokens on disk.

    The token store is a JSON object keyed by user id.  Passing
    ``token_store_path=None`` keeps tokens in memory only.

    Example::

        auth = UserAuthorizer(Path("client_id.json"), Path("~/.md2googleslides/credentials.json"))
        creds = auth.get_user_credentials("default", SCOPES)
    """

    def __init__(self, client_id_path: Path, token_store_path: Optional[Path] = None):
        self.client_id_path = Path(client_id_path)
        self.token_store_path = Path(token_store_path).expanduser() if token_store_path else None
        if self.token_store_path is not None:
            self.token_store_path.parent.mkdir(parents=True, exist_ok=True)
        self._tokens: Dict[str, Dict] = self._read_store()

    def _read_store(self) -> Dict[str, Dict]:
        if self.token_store_path is None or not self.token_store_path.exists():
            return {}
        try:
            data = json.loads(self.token_store_path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError:
            logger.warning("Ignoring corrupt token store %s", self.token_store_path)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, user: str, credentials: Credentials) -> None:
        self._tokens[user] = json.loads(credentials.to_json())
        if self.token_store_path is not None:
            self.token_store_path.write_text(json.dumps(self._tokens, indent=2), encoding="utf-8")

    def stored_credentials(self, user: str, scopes: List[str]) -> Optional[Credentials]:
        """Cached credentials for *user*, refreshed if needed; ``None`` if unusable."""
        info = self._tokens.get(user)
        if not info:
            return None
        try:
            credentials = Credentials.from_authorized_user_info(info, scopes)
        except ValueError as exc:
            logger.warning("Stored credentials for %s are incomplete: %s", user, exc)
            return None
        if credentials.valid:
            return credentials
        if not credentials.refresh_token:
            return None
        logger.debug("User %s previously authorized, refreshing", user)
        try:
            credentials.refresh(Request())
        except RefreshError as exc:
            logger.info("Failed to refresh token for %s, will re-authorize: %s", user, exc)
            return None
        self._save(user, credentials)
        return credentials

    def get_user_credentials(self, user: str, scopes: List[str]) -> Credentials:
        credentials = self.stored_credentials(user, scopes)
        if credentials is not None:
            return credentials

        if not self.client_id_path.exists():
            raise FileNotFoundError(
                f"OAuth client id not found at {self.client_id_path}; "
                "download it from the Google Cloud console"
            )
        logger.info("Running interactive OAuth flow – browser window will open …")
        flow = InstalledAppFlow.from_client_secrets_file(str(self.client_id_path), scopes)
        credentials = flow.run_local_server(port=0)
        if credentials.refresh_token:
            self._save(user, credentials)
        return credentials


def get_credentials(user: str = "default", scopes: Optional[List[str]] = None):
    """Credentials for the CLI: service account if configured, else the user flow."""
    scopes = scopes or SCOPES
    service_account = config.service_account_path()
    if service_account:
        logger.debug("Using service account credentials from %s", service_account)
        return ServiceAccountCredentials.from_service_account_file(service_account, scopes=scopes)

    authorizer = UserAuthorizer(config.client_id_path(), config.token_store_path())
    return authorizer.get_user_credentials(user, scopes)
