"""Token discovery for a configured forge."""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import time
from pathlib import Path
from typing import Callable, Optional

import httpx

from .config import ForgeConfig, ForgeType, config_dir
from .errors import AuthError

logger = logging.getLogger(__name__)

COMMAND_TIMEOUT = 15

# Public client id of the OAuth app used for the GitHub device flow.
GITHUB_CLIENT_ID = "Ov23liYMRxFDN38Slfzr"
DEVICE_SCOPE = "repo"
DEVICE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"
DEFAULT_POLL_SECONDS = 5
SLOW_DOWN_SECONDS = 5


def token_path(forge: ForgeConfig) -> Path:
    return config_dir() / "tokens" / forge.name


def run_token_command(command: str) -> Optional[str]:
    try:
        result = subprocess.run(
            command,
            shell=True,
            capture_output=True,
            text=True,
            timeout=COMMAND_TIMEOUT,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warning(f"Token command failed: {e}")
        return None
    if result.returncode != 0:
        logger.info(f"Token command exited {result.returncode}")
        return None
    return result.stdout.strip() or None


def load_stored_token(forge: ForgeConfig) -> Optional[str]:
    try:
        return token_path(forge).read_text().strip() or None
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.warning(f"Could not read stored token for {forge.name}: {e}")
        return None


def save_token(forge: ForgeConfig, token: str):
    path = token_path(forge)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(token)
        path.chmod(0o600)
    except OSError as e:
        logger.warning(f"Could not store token for {forge.name}: {e}")


def _post_form(client: httpx.Client, url: str, data: dict) -> dict:
    try:
        response = client.post(url, data=data, headers={"Accept": "application/json"})
        response.raise_for_status()
        body = response.json()
    except (httpx.HTTPError, ValueError) as e:
        raise AuthError(f"Device flow request failed: {e}") from e
    if not isinstance(body, dict):
        raise AuthError("Device flow request failed: unexpected response")
    return body


def device_flow_auth(
    host: str = "github.com",
    client_id: str = GITHUB_CLIENT_ID,
    client: Optional[httpx.Client] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """Authorize through the GitHub OAuth device flow.

    Prints the verification URL and user code, then polls until the user
    approves the request in a browser.

    Raises:
        AuthError: if the code expires, the user denies access or the
            endpoint answers with an error.
    """
    base = f"https://{host}"
    owns_client = client is None
    client = client or httpx.Client(timeout=30.0)
    try:
        body = _post_form(client, f"{base}/login/device/code", {"client_id": client_id, "scope": DEVICE_SCOPE})
        try:
            device_code = body["device_code"]
            user_code = body["user_code"]
            verification_uri = body["verification_uri"]
        except KeyError as e:
            raise AuthError(f"Device flow response is missing {e}") from e
        interval = int(body.get("interval") or DEFAULT_POLL_SECONDS)

        print()
        print("  To authenticate forgeview with GitHub:")
        print(f"  1. Open: {verification_uri}")
        print(f"  2. Enter code: {user_code}")
        print()
        print("  Waiting for authorization...", end="", flush=True)

        poll = {"client_id": client_id, "device_code": device_code, "grant_type": DEVICE_GRANT_TYPE}
        while True:
            sleep(interval)
            body = _post_form(client, f"{base}/login/oauth/access_token", poll)

            token = body.get("access_token")
            if token:
                print(" done!")
                logger.info(f"Device flow authorized for {host}")
                return token

            error = body.get("error")
            if error is None or error == "authorization_pending":
                print(".", end="", flush=True)
            elif error == "slow_down":
                interval = int(body.get("interval") or interval + SLOW_DOWN_SECONDS)
            elif error == "expired_token":
                print()
                raise AuthError("Device code expired. Please try again.")
            elif error == "access_denied":
                print()
                raise AuthError("Authorization denied by user.")
            else:
                print()
                raise AuthError(f"OAuth error: {error}")
    finally:
        if owns_client:
            client.close()


def load_token(forge: ForgeConfig, interactive: Optional[bool] = None) -> str:
    """Find a token for ``forge``.

    Sources, in order: the ``token_env`` variable, ``token_command``, the
    stored token file, and for GitHub ``gh auth token`` then the OAuth
    device flow. A GitHub token found by either of the last two is saved so
    the next launch skips them. The device flow only runs when stdin is a
    terminal, unless ``interactive`` says otherwise.

    Raises:
        AuthError: if no source yields a token.
    """
    if forge.token_env:
        token = os.environ.get(forge.token_env, "").strip()
        if token:
            return token

    if forge.token_command:
        token = run_token_command(forge.token_command)
        if token:
            return token

    token = load_stored_token(forge)
    if token:
        return token

    if forge.type == ForgeType.GITHUB:
        token = run_token_command("gh auth token")
        if token:
            save_token(forge, token)
            return token

        if interactive is None:
            interactive = sys.stdin.isatty()
        if interactive:
            print(f"No GitHub token found for {forge.name}.")
            print("Starting GitHub OAuth device flow...")
            token = device_flow_auth(forge.host)
            save_token(forge, token)
            return token

    hint = f"set ${forge.token_env}" if forge.token_env else f"write a token to {token_path(forge)}"
    raise AuthError(f"No token found for {forge.name} ({forge.host}); {hint}")
