"""Saved ChatGPT credentials.

The interactive browser login lives outside this package; it only needs
to leave an ``auth.json`` behind for :func:`load_auth` to find.
"""

import base64
import binascii
import json
import logging
import os
import time

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from omo.errors import AuthError

logger = logging.getLogger(__name__)

JWT_CLAIM_PATH = "https://api.openai.com/auth"
AUTH_FILE = os.path.join(os.path.expanduser("~"), ".omo", "auth.json")
EXPIRY_BUFFER_MS = 5 * 60 * 1000


class AuthData(BaseModel):
    access: str
    refresh: str = ""
    expires: int = 0
    account_id: str = Field(alias="accountId")

    model_config = ConfigDict(populate_by_name=True)


def load_auth(path: str = AUTH_FILE) -> AuthData | None:
    """Return saved credentials, or ``None`` when absent or unreadable."""
    try:
        with open(path, encoding="utf-8") as f:
            return AuthData.model_validate_json(f.read())
    except FileNotFoundError:
        return None
    except (OSError, ValidationError) as e:
        logger.warning(f"Ignoring unreadable auth file {path}: {e}")
        return None


def save_auth(auth: AuthData, path: str = AUTH_FILE) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(auth.model_dump_json(by_alias=True, indent=2))


def clear_auth(path: str = AUTH_FILE) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass


def extract_account_id(token: str) -> str:
    """Read the ChatGPT account id out of an access token's JWT payload.

    Raises:
        AuthError: If the token is malformed or lacks the claim.
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise AuthError("Failed to extract accountId from token")
    payload_b64 = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        payload = json.loads(base64.urlsafe_b64decode(payload_b64))
    except (binascii.Error, ValueError) as e:
        raise AuthError("Failed to extract accountId from token") from e
    claims = payload.get(JWT_CLAIM_PATH) if isinstance(payload, dict) else None
    account_id = (claims or {}).get("chatgpt_account_id")
    if not account_id:
        raise AuthError("Failed to extract accountId from token")
    return account_id


def is_expired(auth: AuthData, now_ms: int | None = None) -> bool:
    """True when the access token expires within the next five minutes."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return now_ms > auth.expires - EXPIRY_BUFFER_MS
