"""Tests for retry_async."""

from unittest.mock import AsyncMock

import pytest

from nousflash.utils.exceptions import DataError, StorageError
from nousflash.utils.retry import retry_async


class TestRetryAsync:
    @pytest.mark.asyncio
    async def test_retries_retryable_errors(self):
        operation = AsyncMock(side_effect=[StorageError("busy"), StorageError("busy"), "ok"])

        result = await retry_async(operation, attempts=3, base_delay=0)

        assert result == "ok"
        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_non_retryable_raised_immediately(self):
        operation = AsyncMock(side_effect=DataError("bad row"))

        with pytest.raises(DataError):
            await retry_async(operation, attempts=3, base_delay=0)

        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_raises_last_error_when_exhausted(self):
        operation = AsyncMock(side_effect=[StorageError("first"), StorageError("second")])

        with pytest.raises(StorageError, match="second"):
            await retry_async(operation, attempts=2, base_delay=0)
