"""OS credential store utility for service secrets (SMTP relay, Zendesk token)."""

import getpass
import logging
from typing import Optional

import keyring
from keyring.backend import KeyringBackend
from keyring.errors import KeyringError

logger = logging.getLogger(__name__)


class CredentialError(RuntimeError):
    pass


class CredentialManager:
    """
    Thin wrapper around the OS keyring.

    Secrets are encrypted by the platform store (Windows Credential Manager,
    macOS Keychain, Secret Service) and can only be read back by the OS user
    account that saved them.
    """

    def __init__(self, backend: Optional[KeyringBackend] = None):
        self._backend = backend

    def _keyring(self):
        return self._backend or keyring.get_keyring()

    def get_credential(self, target_name: str, username: str) -> str:
        """
        Read a secret from the store.

        Args:
            target_name: Service name the secret was stored under
            username: Account the secret belongs to

        Returns:
            The secret value

        Raises:
            CredentialError: The secret is missing or cannot be decrypted
        """
        try:
            secret = self._keyring().get_password(target_name, username)
        except KeyringError as e:
            raise CredentialError(
                f"Could not read credential '{target_name}' for '{username}': {e}. "
                f"Credentials can only be decrypted by the OS user that stored them "
                f"(current user: {getpass.getuser()}). Re-store it with "
                f"'onboard store-credential {target_name} {username}' as this user."
            ) from e

        if not secret:
            raise CredentialError(
                f"Credential '{target_name}' for '{username}' not found. "
                f"Store it with 'onboard store-credential {target_name} {username}' "
                f"while logged in as {getpass.getuser()}."
            )
        logger.debug(f"Found credential for {target_name}")
        return secret

    def store_credential(self, target_name: str, username: str, secret: str) -> None:
        """Save a secret for the current OS user."""
        try:
            self._keyring().set_password(target_name, username, secret)
        except KeyringError as e:
            raise CredentialError(f"Could not store credential '{target_name}': {e}") from e
        logger.info(f"Stored credential '{target_name}' for {username}")
