"""Record stores backing the pipeline.

The pipeline talks to two small protocols: an ``InstructionStore`` it reads
work from and ticks off, and an ``ArtifactStore`` it reports finished
artifacts to. The Notion implementations share one ``AsyncClient``.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from notion_client import AsyncClient, APIResponseError
from notion_client.errors import HTTPResponseError, RequestTimeoutError
from notion_client.helpers import async_collect_paginated_api

from clip_stitch.errors import RecordSyncFailed
from clip_stitch.loader import PROP_PROCESSED
from clip_stitch.logging import get_logger
from clip_stitch.models import CompletionRecord

logger = get_logger(__name__)

NOTION_ERRORS = (APIResponseError, HTTPResponseError, RequestTimeoutError)

# Output database property names
PROP_FILE_NAME = "File Name"
PROP_SET = "Set"
PROP_FORMAT = "Format"
PROP_DURATION = "Duration"


class InstructionStore(Protocol):
    """Source of clip instructions."""

    async def query_unprocessed(self) -> list[dict[str, Any]]:
        """Return every row whose processed flag is false."""
        ...

    async def mark_processed(self, record_id: str) -> None:
        """Set a row's processed flag."""
        ...


class ArtifactStore(Protocol):
    """Destination for completion records."""

    async def create_record(self, record: CompletionRecord) -> None:
        """Create one row describing a finished artifact."""
        ...


def create_notion_client(secret: str) -> AsyncClient:
    """Notion client that only logs warnings and above."""
    return AsyncClient(auth=secret, log_level=logging.WARNING)


def completion_properties(record: CompletionRecord) -> dict[str, Any]:
    """Output-database properties for ``record``."""
    return {
        PROP_FILE_NAME: {
            "type": "title",
            "title": [{"text": {"content": record.file_name}}],
        },
        PROP_SET: {
            "type": "relation",
            "relation": [{"id": record.set_reference}],
        },
        PROP_FORMAT: {
            "type": "select",
            "select": {"name": record.output_format.value},
        },
        PROP_DURATION: {"type": "number", "number": record.duration},
    }


class NotionInstructionStore:
    """Input database: one page per clip instruction."""

    def __init__(self, client: AsyncClient, database_id: str) -> None:
        self.client = client
        self.database_id = database_id

    async def query_unprocessed(self) -> list[dict[str, Any]]:
        """Fetch all unprocessed pages, following pagination.

        Raises:
            RecordSyncFailed: The query was rejected or timed out.
        """
        try:
            pages = await async_collect_paginated_api(
                self.client.databases.query,
                database_id=self.database_id,
                filter={"and": [{"property": PROP_PROCESSED, "checkbox": {"equals": False}}]},
            )
        except NOTION_ERRORS as e:
            raise RecordSyncFailed(
                f"Querying input database failed: {e}",
                context={"database_id": self.database_id},
            ) from e

        logger.info(f"Fetched {len(pages)} unprocessed instructions")
        return pages

    async def mark_processed(self, record_id: str) -> None:
        try:
            await self.client.pages.update(
                page_id=record_id,
                properties={PROP_PROCESSED: {"checkbox": True}},
            )
        except NOTION_ERRORS as e:
            raise RecordSyncFailed(
                f"Marking instruction processed failed: {e}",
                context={"record_id": record_id},
            ) from e


class NotionArtifactStore:
    """Output database: one page per finished artifact."""

    def __init__(self, client: AsyncClient, database_id: str) -> None:
        self.client = client
        self.database_id = database_id

    async def create_record(self, record: CompletionRecord) -> None:
        try:
            await self.client.pages.create(
                parent={"type": "database_id", "database_id": self.database_id},
                properties=completion_properties(record),
            )
        except NOTION_ERRORS as e:
            raise RecordSyncFailed(
                f"Creating output record failed: {e}",
                context={"file_name": record.file_name},
            ) from e
