"""PostgREST (Supabase REST) implementation of the record store.

Pages over the primary table ordered by its key column, reads joined
secondary rows with an ``in.(...)`` filter and writes derived fields with
a key-scoped ``PATCH``. HTTP and PostgREST failures are mapped onto the
pipeline's retryable / non-retryable store errors.
"""

import asyncio
from typing import Any, Dict, List, Optional, Sequence

import aiohttp
import structlog

from src.models.config import StoreSettings
from src.services.store.base import RecordStore
from src.utils.exceptions import (
    RateLimitError,
    StoreAuthenticationError,
    StoreRequestError,
    StoreTimeoutError,
    StoreUnavailableError,
)

logger = structlog.get_logger()

# Postgres "query_canceled" - raised on statement_timeout
STATEMENT_TIMEOUT_CODE = "57014"

# Rows still missing at least one derived field
PENDING_FILTER = "(embeddings.is.null,summary.is.null)"


class PostgrestStore(RecordStore):
    """Read/write users through the Supabase REST API"""

    def __init__(self, settings: StoreSettings):
        self.settings = settings
        self.base_url = f"{settings.url}/rest/v1"
        self.timeout = aiohttp.ClientTimeout(total=settings.request_timeout_seconds)

    @property
    def name(self) -> str:
        return "postgrest"

    def _headers(self, **extra: str) -> Dict[str, str]:
        headers = {
            "apikey": self.settings.api_key,
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
        }
        headers.update(extra)
        return headers

    async def read_page(self, offset: int, limit: int) -> List[Dict[str, Any]]:
        params = {
            "select": ",".join(self.settings.select_fields),
            "order": f"{self.settings.key_field}.asc",
            "offset": str(offset),
            "limit": str(limit),
        }
        data = await self._request("GET", self.settings.table, params=params)
        return data or []

    async def read_related(self, keys: Sequence[str]) -> List[Dict[str, Any]]:
        if not keys:
            return []

        quoted = ",".join(f'"{k}"' for k in keys)
        params = {
            "select": ",".join(self.settings.related_select_fields),
            self.settings.key_field: f"in.({quoted})",
        }
        data = await self._request("GET", self.settings.related_table, params=params)
        return data or []

    async def write_record(self, key: str, fields: Dict[str, Any]) -> None:
        params = {self.settings.key_field: f"eq.{key}"}
        await self._request(
            "PATCH",
            self.settings.table,
            params=params,
            json_body=fields,
            headers=self._headers(Prefer="return=minimal"),
        )

    async def count_units(self) -> int:
        params = {"select": self.settings.key_field, "or": PENDING_FILTER}
        headers = self._headers(Prefer="count=exact")

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.head(
                    f"{self.base_url}/{self.settings.table}",
                    params=params,
                    headers=headers,
                ) as response:
                    await self._raise_for_status(response)
                    return parse_content_range_total(
                        response.headers.get("Content-Range")
                    )
        except asyncio.TimeoutError:
            raise StoreTimeoutError("Count request timed out")
        except aiohttp.ClientError as e:
            raise StoreUnavailableError(f"Count request failed: {e}")

    async def _request(
        self,
        method: str,
        table: str,
        params: Dict[str, str],
        json_body: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        url = f"{self.base_url}/{table}"

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.request(
                    method,
                    url,
                    params=params,
                    json=json_body,
                    headers=headers or self._headers(),
                ) as response:
                    await self._raise_for_status(response)

                    if response.status == 204:
                        return None
                    return await response.json(content_type=None)

        except asyncio.TimeoutError:
            logger.warning("store_request_timeout", method=method, table=table)
            raise StoreTimeoutError(f"{method} {table} timed out")
        except aiohttp.ClientError as e:
            raise StoreUnavailableError(f"{method} {table} failed: {e}")

    async def _raise_for_status(self, response: aiohttp.ClientResponse) -> None:
        if response.status < 300:
            return

        code: Optional[str] = None
        message = ""
        try:
            body = await response.json(content_type=None)
            if isinstance(body, dict):
                code = body.get("code")
                message = body.get("message") or ""
        except (aiohttp.ContentTypeError, ValueError):
            message = await response.text()

        logger.debug(
            "store_error_response",
            status=response.status,
            code=code,
            message=message[:200],
        )

        if code == STATEMENT_TIMEOUT_CODE:
            raise StoreTimeoutError(f"Statement timeout ({code}): {message}")

        if response.status == 429:
            retry_after = response.headers.get("Retry-After", "")
            raise RateLimitError(
                "Store rate limit exceeded",
                retry_after=float(retry_after) if retry_after.isdigit() else None,
            )

        if response.status >= 500:
            raise StoreUnavailableError(f"Server error {response.status}: {message}")

        if response.status in (401, 403):
            raise StoreAuthenticationError(
                f"Store rejected credentials ({response.status})"
            )

        raise StoreRequestError(
            f"Request rejected ({response.status}): {message}", status=response.status
        )


def parse_content_range_total(content_range: Optional[str]) -> int:
    """Extract the total from ``Content-Range: 0-24/3573`` (``*`` → 0)."""
    if not content_range or "/" not in content_range:
        return 0

    total = content_range.rsplit("/", 1)[1].strip()
    if not total.isdigit():
        return 0
    return int(total)
