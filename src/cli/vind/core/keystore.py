"""Directory-backed store of named public keys."""

import os

from vind.core.errors import KeyStoreError


class KeyStore:
    """A store for public keys.

    Each key is a file named after the key inside `base_path`. Machines
    reference stored keys through their `publicKey` field.

    Parameters
    ----------
    base_path : str
        Directory holding the keys.
    """

    def __init__(self, base_path: str) -> None:
        self.base_path = base_path

    def init(self) -> "KeyStore":
        """Create the store directory if needed."""
        try:
            os.makedirs(self.base_path, mode=0o760, exist_ok=True)
        except OSError as e:
            raise KeyStoreError(f"key store: init: {e}") from e
        return self

    def _key_path(self, name: str) -> str:
        return os.path.join(self.base_path, name)

    def exists(self, name: str) -> bool:
        """Return True if a key named `name` is stored."""
        return os.path.exists(self._key_path(name))

    def store(self, name: str, key: str) -> None:
        """
        Add a key to the store.

        Raises
        ------
        KeyStoreError
            If a key with the same name already exists or cannot be written.
        """
        if self.exists(name):
            raise KeyStoreError(f"key store: store: key '{name}' already exists")
        try:
            with open(self._key_path(name), "w") as f:
                f.write(key)
            os.chmod(self._key_path(name), 0o644)
        except OSError as e:
            raise KeyStoreError(f"key store: write: {e}") from e

    def get(self, name: str) -> bytes:
        """
        Return the stored key bytes.

        Raises
        ------
        KeyStoreError
            If the key is unknown.
        """
        if not self.exists(name):
            raise KeyStoreError(f"key store: get: unknown key '{name}'")
        with open(self._key_path(name), "rb") as f:
            return f.read()

    def remove(self, name: str) -> None:
        """Remove a stored key."""
        if not self.exists(name):
            raise KeyStoreError(f"key store: remove: unknown key '{name}'")
        try:
            os.remove(self._key_path(name))
        except OSError as e:
            raise KeyStoreError(f"key store: remove: {e}") from e
