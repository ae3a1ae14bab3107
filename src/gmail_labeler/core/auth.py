"""OAuth 2.0 authentication for label mutations, with token caching."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import Resource, build

from gmail_labeler.core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

# Label changes, trashing and label reads all fall under gmail.modify.
SCOPES = ["https://www.googleapis.com/auth/gmail.modify"]


def authenticate(
    credentials_path: Path,
    token_path: Path,
    scopes: Sequence[str] = SCOPES,
) -> Credentials:
    """Return credentials that can mutate labels, reusing the cached token when possible.

    A cached token is only reused if it was granted every scope in ``scopes``;
    a token cached for a narrower scope (e.g. ``gmail.readonly``) triggers a
    fresh consent flow instead of failing later on the first modify call.

    Args:
        credentials_path: Path to OAuth 2.0 client credentials JSON.
        token_path: Path to store/load the OAuth token.
        scopes: OAuth scopes to request.

    Returns:
        Valid Google OAuth2 credentials.

    Raises:
        AuthenticationError: If no usable token exists and the consent flow
            cannot run or fails.
    """
    scopes = list(scopes)
    creds = _load_cached_token(token_path, scopes)

    if creds is not None:
        if creds.valid:
            return creds
        if creds.expired and creds.refresh_token and _refresh(creds):
            _save_token(creds, token_path)
            return creds

    return _run_consent_flow(credentials_path, token_path, scopes)


def build_gmail_service(creds: Credentials) -> Resource:
    """Build a Gmail API service resource."""
    return build("gmail", "v1", credentials=creds)


def _load_cached_token(token_path: Path, scopes: list[str]) -> Credentials | None:
    if not token_path.exists():
        return None
    try:
        # loaded with the scopes recorded in the file so they can be checked
        creds = Credentials.from_authorized_user_file(str(token_path))
    except (ValueError, OSError) as e:
        logger.warning("Failed to load cached token: %s", e)
        return None
    if creds.scopes is not None and not creds.has_scopes(scopes):
        logger.warning(
            "Cached token at %s lacks scopes %s, re-authenticating", token_path, scopes
        )
        return None
    return creds


def _refresh(creds: Credentials) -> bool:
    try:
        creds.refresh(Request())
    except GoogleAuthError as e:
        logger.warning("Token refresh failed, re-authenticating: %s", e)
        return False
    return True


def _run_consent_flow(
    credentials_path: Path, token_path: Path, scopes: list[str]
) -> Credentials:
    if not credentials_path.exists():
        raise AuthenticationError(
            f"Credentials file not found: {credentials_path}. "
            "Download it from Google Cloud Console."
        )

    try:
        flow = InstalledAppFlow.from_client_secrets_file(str(credentials_path), scopes)
        creds = flow.run_local_server(port=0)
    except Exception as e:
        raise AuthenticationError(f"OAuth flow failed: {e}") from e

    _save_token(creds, token_path)
    logger.info("Authentication successful, token cached at %s", token_path)
    return creds


def _save_token(creds: Credentials, token_path: Path) -> None:
    """Save credentials to the token cache file."""
    token_path.parent.mkdir(parents=True, exist_ok=True)
    token_path.write_text(creds.to_json())
