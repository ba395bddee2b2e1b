"""Encrypted per-network password storage, keyed by BSSID."""

import logging

from ..core import crypto
from ..core.errors import CredentialsError, CredentialsNotFoundError
from ..core.storage import CREDENTIALS_KEY, KeyValueStore
from .models import normalize_bssid

logger = logging.getLogger(__name__)


class CredentialStore:
    """Passwords encrypted at rest with the per-installation key.

    Decrypted passwords are cached in memory; the backing store only
    ever sees ciphertext under the ``credentials`` key.

    Usage:
        creds = CredentialStore(store, key=load_or_create_key(path))
        creds.save_credentials("00:11:22:33:44:55", "hunter22")
        if creds.has_credentials("00:11:22:33:44:55"):
            password = creds.get_credentials("00:11:22:33:44:55")
    """

    def __init__(self, store: KeyValueStore, key: str) -> None:
        self._store = store
        self._key = key
        self._credentials: dict[str, str] = {}
        # Ciphertext that did not decrypt on load, written back untouched
        self._undecryptable: dict[str, str] = {}
        self._load()

    def _load(self) -> None:
        encrypted = self._store.get(CREDENTIALS_KEY, {}) or {}
        for bssid, blob in encrypted.items():
            try:
                self._credentials[normalize_bssid(bssid)] = crypto.decrypt(blob, self._key)
            except CredentialsError as e:
                self._undecryptable[normalize_bssid(bssid)] = blob
                logger.error("Failed to decrypt credentials for %s: %s", bssid, e)
        logger.info("Loaded %d saved credentials", len(self._credentials))

    def _persist(self) -> None:
        encrypted = dict(self._undecryptable)
        encrypted.update(
            {bssid: crypto.encrypt(pw, self._key) for bssid, pw in self._credentials.items()}
        )
        self._store.set(CREDENTIALS_KEY, encrypted)

    def save_credentials(self, bssid: str, password: str) -> None:
        key = normalize_bssid(bssid)
        self._undecryptable.pop(key, None)
        self._credentials[key] = password
        self._persist()
        logger.debug("Saved credentials for %s", bssid)

    def has_credentials(self, bssid: str) -> bool:
        return normalize_bssid(bssid) in self._credentials

    def get_credentials(self, bssid: str) -> str:
        """Stored password for ``bssid``.

        Raises:
            CredentialsNotFoundError: Nothing is stored for ``bssid``
        """
        try:
            return self._credentials[normalize_bssid(bssid)]
        except KeyError:
            raise CredentialsNotFoundError(
                "No saved credentials for network", details={"bssid": bssid}
            ) from None

    def delete_credentials(self, bssid: str) -> bool:
        """Remove stored credentials.

        Returns:
            True if something was removed
        """
        bssid = normalize_bssid(bssid)
        dropped = self._undecryptable.pop(bssid, None)
        if self._credentials.pop(bssid, None) is None and dropped is None:
            return False
        self._persist()
        logger.debug("Deleted credentials for %s", bssid)
        return True

    def clear_all_credentials(self) -> None:
        self._credentials.clear()
        self._undecryptable.clear()
        self._store.delete(CREDENTIALS_KEY)
        logger.info("Cleared all saved credentials")

    def __len__(self) -> int:
        return len(self._credentials)
