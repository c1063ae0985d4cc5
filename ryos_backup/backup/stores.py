"""Read and replace whole object stores."""

from typing import AsyncIterator, Iterable

from tenacity import AsyncRetrying, RetryError, stop_after_attempt, wait_exponential

from ..base import BaseObjectStorage
from .._utils import logger
from ..exceptions import BlobDecodeError, StoreReadError, StoreWriteError
from .codec import decode_value, encode_value
from .models import StoreRecord, StoreWriteResult


class StoreReader:
    """Enumerate an object store as snapshot records."""

    def __init__(self, storage: BaseObjectStorage):
        self.storage = storage

    async def read_all(self, store: str) -> AsyncIterator[StoreRecord]:
        """Yield every readable record of ``store`` in cursor order.

        A record whose value cannot be converted is logged and skipped; an
        error raised by the cursor itself propagates to the caller.
        """
        skipped = 0
        async for key, value in self.storage.open_cursor(store):
            try:
                yield self._to_record(store, key, value)
            except StoreReadError as e:
                skipped += 1
                logger.warning(f"Skipping unreadable record: {e}")
        if skipped:
            logger.warning(f"Skipped {skipped} records while reading store {store}")

    def _to_record(self, store: str, key, value) -> StoreRecord:
        if not isinstance(value, dict):
            raise StoreReadError(store, str(key), f"expected a dict value, got {type(value).__name__}")
        try:
            return StoreRecord(key=str(key), value=encode_value(value))
        except (TypeError, ValueError) as e:
            raise StoreReadError(store, str(key), str(e)) from e


class StoreWriter:
    """Replace the full contents of an object store."""

    def __init__(self, storage: BaseObjectStorage, write_attempts: int = 3):
        self.storage = storage
        self.write_attempts = write_attempts

    async def replace_all(self, store: str, records: Iterable[StoreRecord]) -> StoreWriteResult:
        """Clear ``store`` then insert every record under its key.

        Raises:
            StoreWriteError: if the store could not be cleared. Individual
                insert failures are reported in ``failed_keys`` instead.
        """
        try:
            await self.storage.clear(store)
        except Exception as e:
            raise StoreWriteError(store, f"clear failed: {e}") from e

        result = StoreWriteResult(store=store)
        for record in records:
            try:
                value = decode_value(record.value)
            except BlobDecodeError as e:
                logger.warning(f"Malformed blob in {store}/{record.key}: {e}")
                result.failed_keys.append(record.key)
                continue

            try:
                await self._put_with_retry(store, record.key, value)
            except RetryError as e:
                cause = e.last_attempt.exception()
                logger.warning(f"Failed to write {store}/{record.key}: {cause}")
                result.failed_keys.append(record.key)
                continue
            result.written += 1

        logger.debug(f"Restored {store}: {result.written} written, {len(result.failed_keys)} failed")
        return result

    async def _put_with_retry(self, store: str, key: str, value: dict) -> None:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.write_attempts),
            wait=wait_exponential(multiplier=0.05, max=1),
        ):
            with attempt:
                await self.storage.put(store, key, value)
