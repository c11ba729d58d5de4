"""
Supabase Realtime Subscriptions

Push channel for scan progress. Each subscription opens its own
``postgres_changes`` channel:
- ``scan-<id>``: UPDATE on domain_scans filtered by id
- ``results-<id>``: INSERT on domain_results filtered by scan_id

Payload rows are parsed into model objects before handlers see them;
malformed payloads are logged and dropped.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from supabase import AsyncClient, acreate_client

from idscan.models import DomainRecord, Scan

from .backend import ResultInsertHandler, ScanUpdateHandler, Unsubscribe

logger = logging.getLogger(__name__)


def extract_record(payload: Any) -> Optional[Dict[str, Any]]:
    """
    Pull the changed row out of a realtime payload.

    Accepts the nested ``{"data": {"record": ...}}`` shape as well as the
    flat ``new`` / ``record`` shapes.
    """
    if not isinstance(payload, dict):
        return None

    data = payload.get("data")
    if isinstance(data, dict) and isinstance(data.get("record"), dict):
        return data["record"]

    for key in ("new", "record"):
        if isinstance(payload.get(key), dict):
            return payload[key]

    return None


class SupabaseRealtime:
    """
    Realtime subscriptions against the scanner Supabase project.

    Usage:
        realtime = SupabaseRealtime(url, key)
        unsubscribe = await realtime.subscribe_scan_updates(scan_id, on_update)
        ...
        await unsubscribe()
        await realtime.close()
    """

    def __init__(self, supabase_url: str, supabase_key: str, schema: str = "public"):
        self.supabase_url = supabase_url
        self.supabase_key = supabase_key
        self.schema = schema
        self._client: Optional[AsyncClient] = None
        self._lock = asyncio.Lock()

    async def _get_client(self) -> AsyncClient:
        async with self._lock:
            if self._client is None:
                self._client = await acreate_client(self.supabase_url, self.supabase_key)
            return self._client

    async def _subscribe(
        self,
        channel_name: str,
        event: str,
        table: str,
        row_filter: str,
        on_row: Callable[[Dict[str, Any]], None],
    ) -> Unsubscribe:
        client = await self._get_client()

        def handle(payload: Any) -> None:
            row = extract_record(payload)
            if row is None:
                logger.debug(f"Ignoring realtime payload without a row on {channel_name}")
                return
            try:
                on_row(row)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Dropping malformed realtime row on {channel_name}: {e}")

        channel = client.channel(channel_name)
        channel.on_postgres_changes(
            event,
            callback=handle,
            table=table,
            schema=self.schema,
            filter=row_filter,
        )
        await channel.subscribe()
        logger.info(f"Subscribed to {channel_name} ({event} {table})")

        async def unsubscribe() -> None:
            logger.info(f"Unsubscribing from {channel_name}")
            await client.remove_channel(channel)

        return unsubscribe

    async def subscribe_scan_updates(self, scan_id: str, on_update: ScanUpdateHandler) -> Unsubscribe:
        return await self._subscribe(
            f"scan-{scan_id}",
            "UPDATE",
            "domain_scans",
            f"id=eq.{scan_id}",
            lambda row: on_update(Scan.from_row(row)),
        )

    async def subscribe_result_inserts(self, scan_id: str, on_insert: ResultInsertHandler) -> Unsubscribe:
        return await self._subscribe(
            f"results-{scan_id}",
            "INSERT",
            "domain_results",
            f"scan_id=eq.{scan_id}",
            lambda row: on_insert(DomainRecord.from_row(row)),
        )

    async def close(self):
        """Drop all channels and the realtime connection."""
        if self._client is not None:
            await self._client.remove_all_channels()
            self._client = None
