"""Tests for instruction loading."""

from pathlib import Path

import pytest

from clip_stitch.errors import IncompleteInstruction, MalformedTimecode
from clip_stitch.loader import (
    instruction_from_page,
    intermediate_path,
    load_instructions,
    source_path,
)
from clip_stitch.models import OutputFormat
from clip_stitch.timecode import Timecode
from helpers import build_instruction, build_page


class TestInstructionFromPage:
    """Tests for instruction_from_page()."""

    def test_full_page(self):
        """Every property lands on the instruction."""
        page = build_page(
            record_id="page-42",
            name="keynote.mp4",
            output_base="Clip 7",
            in_timestamp="01:02:03.45",
            out_timestamp="01:02:13",
            set_code="XYZ",
            set_reference="set-abc",
            order=3,
            output_format="GIF",
        )

        instruction = instruction_from_page(page)

        assert instruction.record_id == "page-42"
        assert instruction.source_name == "keynote.mp4"
        assert instruction.output_base == "Clip 7"
        assert instruction.in_point == Timecode(1, 2, 3, 4)
        assert instruction.out_point == Timecode(1, 2, 13, 0)
        assert instruction.set_code == "XYZ"
        assert instruction.set_reference == "set-abc"
        assert instruction.order == 3
        assert instruction.output_format is OutputFormat.GIF

    def test_float_order(self):
        """Notion numbers may arrive as floats."""
        instruction = instruction_from_page(build_page(order=2.0))
        assert instruction.order == 2

    def test_fractional_order(self):
        """A fractional order would collide with its neighbour's file."""
        with pytest.raises(IncompleteInstruction) as exc_info:
            instruction_from_page(build_page(order=1.5))

        assert "Order" in str(exc_info.value)

    @pytest.mark.parametrize(
        "prop",
        [
            "Input File Reference",
            "Output Base",
            "In Timestamp",
            "Out Timestamp",
            "Set Code",
            "Set Reference",
            "Order",
            "Format",
        ],
    )
    def test_missing_property(self, prop):
        """Each required property is checked."""
        page = build_page()
        del page["properties"][prop]

        with pytest.raises(IncompleteInstruction) as exc_info:
            instruction_from_page(page)

        assert prop in str(exc_info.value)

    def test_empty_rich_text(self):
        """An empty rich-text list counts as missing."""
        page = build_page()
        page["properties"]["Output Base"]["rich_text"] = []

        with pytest.raises(IncompleteInstruction):
            instruction_from_page(page)

    def test_empty_rollup(self):
        """A rollup with no items counts as missing."""
        page = build_page()
        page["properties"]["Set Code"]["rollup"]["array"] = []

        with pytest.raises(IncompleteInstruction):
            instruction_from_page(page)

    def test_empty_relation(self):
        """A relation with no pages counts as missing."""
        page = build_page()
        page["properties"]["Set Reference"]["relation"] = []

        with pytest.raises(IncompleteInstruction):
            instruction_from_page(page)

    def test_null_order_and_select(self):
        """Null number or select values count as missing."""
        page = build_page()
        page["properties"]["Order"]["number"] = None
        with pytest.raises(IncompleteInstruction):
            instruction_from_page(page)

        page = build_page()
        page["properties"]["Format"]["select"] = None
        with pytest.raises(IncompleteInstruction):
            instruction_from_page(page)

    def test_unknown_format(self):
        """Formats other than Video and GIF are rejected."""
        with pytest.raises(IncompleteInstruction):
            instruction_from_page(build_page(output_format="Audio"))

    def test_non_text_id(self):
        """Values the model rejects are reported as an incomplete row."""
        with pytest.raises(IncompleteInstruction) as exc_info:
            instruction_from_page(build_page(record_id=42))

        assert exc_info.value.context["record_id"] == 42

    def test_malformed_timestamp(self):
        """Timestamp errors surface for the row."""
        with pytest.raises(MalformedTimecode):
            instruction_from_page(build_page(in_timestamp="ten seconds"))


class TestLoadInstructions:
    """Tests for load_instructions()."""

    def test_bad_rows_skipped(self):
        """Failures are collected while good rows still load."""
        bad = build_page(record_id="bad")
        del bad["properties"]["Order"]
        pages = [
            build_page(record_id="good-1"),
            bad,
            build_page(record_id="worse", out_timestamp="xx"),
            build_page(record_id="good-2"),
        ]

        instructions, failures = load_instructions(pages)

        assert [i.record_id for i in instructions] == ["good-1", "good-2"]
        assert [f.record_id for f in failures] == ["bad", "worse"]
        assert isinstance(failures[0].error, IncompleteInstruction)
        assert isinstance(failures[1].error, MalformedTimecode)

    def test_non_ascii_digits_skipped(self):
        """Unicode digits in a timestamp fail that row only."""
        pages = [
            build_page(record_id="bad", in_timestamp="00:0²"),
            build_page(record_id="good"),
        ]

        instructions, failures = load_instructions(pages)

        assert [i.record_id for i in instructions] == ["good"]
        assert [f.record_id for f in failures] == ["bad"]
        assert isinstance(failures[0].error, MalformedTimecode)

    def test_empty(self):
        """No pages, no work."""
        assert load_instructions([]) == ([], [])


class TestPaths:
    """Tests for deterministic paths."""

    def test_intermediate_path(self):
        """The intermediate path only depends on instruction fields."""
        instruction = build_instruction(
            source_name="interview.mp4",
            output_format=OutputFormat.GIF,
            output_base="Clip 2",
            order=4,
        )

        path = intermediate_path(instruction, Path("/working/Temp"))

        assert path == Path("/working/Temp/interview-GIF-Clip 2-part4.mp4")
        assert path == intermediate_path(build_instruction(
            source_name="interview.mp4",
            output_format=OutputFormat.GIF,
            output_base="Clip 2",
            order=4,
            record_id="another-page",
        ), Path("/working/Temp"))

    def test_source_path(self):
        """Sources are looked up by name in the sources directory."""
        instruction = build_instruction(source_name="a.mp4")
        assert source_path(instruction, Path("/working/Sources")) == Path("/working/Sources/a.mp4")
