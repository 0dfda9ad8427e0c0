"""Instruction loading from Notion pages.

Turns raw input-database pages into ``ClipInstruction``s. A page missing a
required property is rejected on its own; the rest of the batch still loads.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from clip_stitch import timecode
from clip_stitch.errors import ClipStitchError, IncompleteInstruction
from clip_stitch.logging import get_logger
from clip_stitch.models import ClipInstruction, OutputFormat

logger = get_logger(__name__)

# Input database property names
PROP_INPUT_FILE = "Input File Reference"
PROP_OUTPUT_BASE = "Output Base"
PROP_IN_TIMESTAMP = "In Timestamp"
PROP_OUT_TIMESTAMP = "Out Timestamp"
PROP_SET_CODE = "Set Code"
PROP_SET_REFERENCE = "Set Reference"
PROP_ORDER = "Order"
PROP_FORMAT = "Format"
PROP_PROCESSED = "Processed"


@dataclass
class LoadFailure:
    """A page that could not be turned into an instruction."""

    record_id: str
    error: ClipStitchError


def _property(page: dict[str, Any], name: str) -> dict[str, Any]:
    prop = page.get("properties", {}).get(name)
    if not prop:
        raise IncompleteInstruction(f"Missing property {name!r}", context={"record_id": page.get("id")})
    return prop


def _missing(page: dict[str, Any], name: str) -> IncompleteInstruction:
    return IncompleteInstruction(f"Property {name!r} is empty", context={"record_id": page.get("id")})


def _first_plain_text(rich_text: list[dict[str, Any]] | None) -> str | None:
    if not rich_text:
        return None
    return rich_text[0].get("plain_text") or None


def rich_text_value(page: dict[str, Any], name: str) -> str:
    """Plain text of the first rich-text fragment of a property."""
    value = _first_plain_text(_property(page, name).get("rich_text"))
    if value is None:
        raise _missing(page, name)
    return value


def rollup_text_value(page: dict[str, Any], name: str) -> str:
    """Plain text of the first rich-text item rolled up into a property."""
    items = (_property(page, name).get("rollup") or {}).get("array") or []
    value = _first_plain_text(items[0].get("rich_text")) if items else None
    if value is None:
        raise _missing(page, name)
    return value


def relation_value(page: dict[str, Any], name: str) -> str:
    """Id of the first related page."""
    relations = _property(page, name).get("relation") or []
    if not relations or not relations[0].get("id"):
        raise _missing(page, name)
    return relations[0]["id"]


def number_value(page: dict[str, Any], name: str) -> int:
    number = _property(page, name).get("number")
    if number is None:
        raise _missing(page, name)
    if isinstance(number, float) and not number.is_integer():
        raise IncompleteInstruction(
            f"Property {name!r} must be a whole number, got {number}",
            context={"record_id": page.get("id")},
        )
    return int(number)


def select_value(page: dict[str, Any], name: str) -> str:
    select = _property(page, name).get("select") or {}
    if not select.get("name"):
        raise _missing(page, name)
    return select["name"]


def instruction_from_page(page: dict[str, Any]) -> ClipInstruction:
    """Map one input-database page to a ``ClipInstruction``.

    Raises:
        IncompleteInstruction: A required property is missing or empty, or
            the format is not one we produce.
        MalformedTimecode: A timestamp cannot be parsed.
    """
    record_id = page.get("id")
    if not record_id:
        raise IncompleteInstruction("Page has no id")

    format_name = select_value(page, PROP_FORMAT)
    try:
        output_format = OutputFormat.from_store_name(format_name)
    except ValueError as e:
        raise IncompleteInstruction(str(e), context={"record_id": record_id}) from e

    fields = {
        "source_name": rich_text_value(page, PROP_INPUT_FILE),
        "in_point": timecode.parse(rich_text_value(page, PROP_IN_TIMESTAMP)),
        "out_point": timecode.parse(rich_text_value(page, PROP_OUT_TIMESTAMP)),
        "output_base": rich_text_value(page, PROP_OUTPUT_BASE),
        "order": number_value(page, PROP_ORDER),
        "output_format": output_format,
        "set_code": rollup_text_value(page, PROP_SET_CODE),
        "set_reference": relation_value(page, PROP_SET_REFERENCE),
        "record_id": record_id,
    }
    try:
        return ClipInstruction(**fields)
    except ValidationError as e:
        raise IncompleteInstruction(
            f"Unusable property values: {e.error_count()} error(s)",
            context={"record_id": record_id},
        ) from e


def load_instructions(
    pages: list[dict[str, Any]],
) -> tuple[list[ClipInstruction], list[LoadFailure]]:
    """Map every page, keeping failures separate from good instructions."""
    instructions: list[ClipInstruction] = []
    failures: list[LoadFailure] = []

    for page in pages:
        record_id = page.get("id", "<no id>")
        try:
            instructions.append(instruction_from_page(page))
        except ClipStitchError as e:
            logger.warning(f"Skipping instruction {record_id}: {e.message}")
            failures.append(LoadFailure(record_id=record_id, error=e))

    logger.info(
        f"Loaded {len(instructions)} instructions",
        extra={"rejected": len(failures)},
    )
    return instructions, failures


def source_path(instruction: ClipInstruction, sources_dir: Path) -> Path:
    return sources_dir / instruction.source_name


def intermediate_path(instruction: ClipInstruction, temp_dir: Path) -> Path:
    """Where the extracted clip for ``instruction`` lives.

    Depends only on instruction fields, so a rerun lands on the same file.
    """
    return temp_dir / instruction.intermediate_name
