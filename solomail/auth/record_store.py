"""Persistence of the signed-in account's authentication record."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from azure.identity import AuthenticationRecord

logger = logging.getLogger(__name__)


class AuthRecordError(Exception):
    """Raised when the authentication record cannot be written or removed."""

    pass


class AuthRecordStore:
    """Stores azure-identity's serialized AuthenticationRecord on disk.

    The record carries no secrets: it identifies which account in the
    persistent MSAL token cache belongs to this application, which lets
    silent token acquisition find it again across sessions. The tokens
    themselves stay in the cache owned by azure-identity.

    Attributes:
        record_file: Path to the record file
    """

    def __init__(self, record_file: str | Path):
        """Initialize the AuthRecordStore.

        Args:
            record_file: Path to the record file (created on first save)
        """
        self.record_file = Path(record_file).expanduser()
        self.record_file.parent.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Initialized AuthRecordStore with file: {self.record_file}")

    def exists(self) -> bool:
        """Return True when a record file is present."""
        return self.record_file.exists()

    async def save(self, record: AuthenticationRecord) -> None:
        """Save a record, replacing any previous one.

        Raises:
            AuthRecordError: If writing fails
        """
        try:
            await asyncio.to_thread(self._write_record_file, record.serialize())
            logger.info(f"Authentication record saved to {self.record_file}")
        except Exception as e:
            logger.error(f"Failed to save authentication record: {e}")
            raise AuthRecordError(f"Failed to save authentication record: {e}") from e

    def _write_record_file(self, data: str) -> None:
        with open(self.record_file, "w") as f:
            f.write(data)
        # Owner read/write only
        self.record_file.chmod(0o600)

    async def load(self) -> Optional[AuthenticationRecord]:
        """Load the saved record.

        Returns:
            The record, or None if there is none or it cannot be read
        """
        if not self.record_file.exists():
            logger.debug("Authentication record file does not exist")
            return None

        try:
            data = await asyncio.to_thread(self.record_file.read_text)
            record = AuthenticationRecord.deserialize(data)
        except Exception as e:
            logger.warning(f"Failed to load authentication record: {e}")
            return None

        logger.debug("Authentication record loaded for %s", record.username)
        return record

    async def clear(self) -> None:
        """Remove the saved record.

        Raises:
            AuthRecordError: If the file exists but cannot be removed
        """
        try:
            if self.record_file.exists():
                await asyncio.to_thread(self.record_file.unlink)
                logger.info("Authentication record cleared")
            else:
                logger.debug("No authentication record to clear")
        except Exception as e:
            logger.error(f"Failed to clear authentication record: {e}")
            raise AuthRecordError(f"Failed to clear authentication record: {e}") from e
