"""
Supabase Scanner Client

Async HTTP client for the scanner backend with:
- Scan creation through the ``scan-domain`` edge function
- Automatic retry with exponential backoff on creation
- PostgREST snapshot reads of ``domain_scans`` / ``domain_results``
- Realtime push subscriptions (delegated to SupabaseRealtime)
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx

from idscan.models import DomainRecord, PublisherContext, Scan

from .backend import ResultInsertHandler, ScanUpdateHandler, Unsubscribe
from .realtime import SupabaseRealtime

logger = logging.getLogger(__name__)


# =============================================================================
# ERRORS
# =============================================================================

class ScannerError(Exception):
    """Base exception for scanner backend errors."""
    retryable = False

    def __init__(self, message: str, status_code: int = None, response: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response


class ScanConfigurationError(ScannerError):
    """Scanner URL or key missing or malformed."""


class ScanValidationError(ScannerError):
    """Caller input or call sequence the backend cannot act on."""


class ScanTransportError(ScannerError):
    """Network failure or timeout talking to the backend."""
    retryable = True


class ScannerAPIError(ScannerError):
    """Backend answered with an error or an unusable body."""


class ScanNotFoundError(ScannerError):
    """No scan exists for the requested id."""

    def __init__(self, scan_id: str):
        super().__init__(
            f'Scan not found. The scan ID "{scan_id}" may be invalid or the scan may have been deleted.',
            status_code=404,
        )
        self.scan_id = scan_id


# =============================================================================
# CLIENT
# =============================================================================

@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    exponential_base: float = 2.0
    retryable_status_codes: tuple = (429, 500, 502, 503, 504)


def _json_or_none(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class SupabaseScanClient:
    """
    Async client for the scanner Supabase project.

    Usage:
        async with SupabaseScanClient(url, key) as client:
            scan_id = await client.create_scan(["example.com"])
            scan = await client.fetch_scan_snapshot(scan_id)
            results = await client.fetch_result_set(scan_id)
    """

    SCAN_FUNCTION_PATH = "/functions/v1/scan-domain"
    SCANS_TABLE_PATH = "/rest/v1/domain_scans"
    RESULTS_TABLE_PATH = "/rest/v1/domain_results"

    def __init__(
        self,
        supabase_url: str,
        supabase_key: str,
        functions_url: Optional[str] = None,
        retry_config: Optional[RetryConfig] = None,
        timeout: float = 30.0,
        realtime: Optional[SupabaseRealtime] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the scanner client.

        Args:
            supabase_url: Scanner project URL (https://<ref>.supabase.co)
            supabase_key: Anon/publishable key for the scanner project
            functions_url: Project hosting the edge function (defaults to supabase_url)
            retry_config: Retry configuration for scan creation (optional)
            timeout: Request timeout in seconds
            realtime: Push channel (defaults to SupabaseRealtime on the same project)
            transport: Custom httpx transport (tests)
        """
        if not supabase_url:
            raise ScanConfigurationError("Scanner Supabase URL is not configured (SCANNER_SUPABASE_URL)")
        if not supabase_key:
            raise ScanConfigurationError("Scanner Supabase key is not configured (SCANNER_SUPABASE_KEY)")

        self.supabase_url = supabase_url.rstrip("/")
        self.functions_url = (functions_url or supabase_url).rstrip("/")
        self.retry_config = retry_config or RetryConfig()
        self.realtime = realtime or SupabaseRealtime(self.supabase_url, supabase_key)

        self._client = httpx.AsyncClient(
            base_url=self.supabase_url,
            headers={
                "apikey": supabase_key,
                "Authorization": f"Bearer {supabase_key}",
                "Content-Type": "application/json",
                "x-client-info": "idscan",
            },
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

        self._closed = False

    # ========================================================================
    # SCAN CREATION
    # ========================================================================

    async def create_scan(
        self,
        domains: Sequence[str],
        context: Optional[PublisherContext] = None,
    ) -> str:
        """
        Start a scan through the edge function.

        Args:
            domains: Normalized domains to scan
            context: Optional publisher context stored with the scan

        Returns:
            New scan id

        Raises:
            ScanValidationError: No domains given or client closed
            ScanTransportError: Network failure after all retries
            ScannerAPIError: Error response or no scan id in the body
        """
        if self._closed:
            raise ScanValidationError("Client is closed")
        if not domains:
            raise ScanValidationError("At least one domain is required to start a scan")

        body: Dict[str, Any] = {"domains": list(domains)}
        if context is not None:
            body["context"] = context.to_payload()

        logger.info(f"Starting scan for {len(domains)} domains")
        result = await self._request_with_retry(f"{self.functions_url}{self.SCAN_FUNCTION_PATH}", body)

        scan_id = result.get("scanId") if isinstance(result, dict) else None
        if not scan_id:
            raise ScannerAPIError(
                "No scan ID returned from server. The scan may not have been created.",
                response=result,
            )

        logger.info(f"Scan created: {scan_id}")
        return str(scan_id)

    async def _make_request(self, url: str, body: Dict[str, Any]) -> Any:
        """Make a single POST request."""
        logger.debug(f"POST {url}")

        response = await self._client.post(url, json=body)

        if not response.is_success:
            payload = _json_or_none(response)
            detail = payload.get("error") if isinstance(payload, dict) else None
            raise ScannerAPIError(
                f"Scan request failed: {response.status_code}" + (f" ({detail})" if detail else ""),
                status_code=response.status_code,
                response=payload,
            )

        return _json_or_none(response)

    async def _request_with_retry(self, url: str, body: Dict[str, Any]) -> Any:
        """Make request with automatic retry on failure."""
        last_exception: Optional[ScannerError] = None
        delay = self.retry_config.initial_delay

        for attempt in range(self.retry_config.max_retries + 1):
            try:
                return await self._make_request(url, body)

            except ScannerAPIError as e:
                last_exception = e

                if e.status_code not in self.retry_config.retryable_status_codes:
                    raise

            except httpx.TimeoutException as e:
                last_exception = ScanTransportError(
                    f"Request timed out. The scanner service may be slow to respond: {e}"
                )

            except httpx.HTTPError as e:
                last_exception = ScanTransportError(f"Failed to connect to scanner service: {e}")

            if attempt < self.retry_config.max_retries:
                logger.warning(
                    f"Scan request failed (attempt {attempt + 1}/{self.retry_config.max_retries + 1}): "
                    f"{last_exception}. Retrying in {delay}s..."
                )
                await asyncio.sleep(delay)
                delay = min(
                    delay * self.retry_config.exponential_base,
                    self.retry_config.max_delay
                )

        raise last_exception

    # ========================================================================
    # SNAPSHOT READS
    # ========================================================================

    async def _select(self, path: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        if self._closed:
            raise ScanValidationError("Client is closed")

        try:
            response = await self._client.get(path, params=params)
        except httpx.HTTPError as e:
            raise ScanTransportError(f"Failed to read {path}: {e}")

        if not response.is_success:
            raise ScannerAPIError(
                f"Read of {path} failed: {response.status_code}",
                status_code=response.status_code,
                response=_json_or_none(response),
            )

        rows = _json_or_none(response)
        if not isinstance(rows, list):
            raise ScannerAPIError(f"Unexpected response body from {path}", response=rows)
        return rows

    async def fetch_scan_snapshot(self, scan_id: str) -> Optional[Scan]:
        """
        Read the current scan row.

        Returns:
            Scan, or None when no row matches the id
        """
        rows = await self._select(
            self.SCANS_TABLE_PATH,
            {"select": "*", "id": f"eq.{scan_id}", "limit": "1"},
        )
        if not rows:
            logger.debug(f"No scan row for {scan_id}")
            return None
        return Scan.from_row(rows[0])

    async def fetch_result_set(self, scan_id: str) -> List[DomainRecord]:
        """Read all results for a scan, oldest first."""
        rows = await self._select(
            self.RESULTS_TABLE_PATH,
            {"select": "*", "scan_id": f"eq.{scan_id}", "order": "scanned_at.asc"},
        )

        records = []
        for row in rows:
            try:
                records.append(DomainRecord.from_row(row))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed result row for scan {scan_id}: {e}")

        logger.debug(f"Fetched {len(records)} results for scan {scan_id}")
        return records

    # ========================================================================
    # PUSH SUBSCRIPTIONS
    # ========================================================================

    async def subscribe_scan_updates(self, scan_id: str, on_update: ScanUpdateHandler) -> Unsubscribe:
        return await self.realtime.subscribe_scan_updates(scan_id, on_update)

    async def subscribe_result_inserts(self, scan_id: str, on_insert: ResultInsertHandler) -> Unsubscribe:
        return await self.realtime.subscribe_result_inserts(scan_id, on_insert)

    async def close(self):
        """Close the HTTP client and realtime connection."""
        if not self._closed:
            await self._client.aclose()
            await self.realtime.close()
            self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
