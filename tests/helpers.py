"""Builders and in-memory fakes shared by the test modules."""

from pathlib import Path

from clip_stitch.errors import ProbeFailed, RecordSyncFailed, TranscodeError
from clip_stitch.ffmpeg import FFmpegCommand
from clip_stitch.models import ClipInstruction, CompletionRecord, OutputFormat
from clip_stitch.timecode import parse


def build_page(
    record_id="page-1",
    name="interview.mp4",
    output_base="Clip 1",
    in_timestamp="00:00:10",
    out_timestamp="00:00:20",
    set_code="ABC",
    set_reference="set-1",
    order=1,
    output_format="Video",
):
    """A Notion input-database page as returned by databases.query."""
    return {
        "id": record_id,
        "properties": {
            "Input File Reference": {"type": "rich_text", "rich_text": [{"plain_text": name}]},
            "Output Base": {"type": "rich_text", "rich_text": [{"plain_text": output_base}]},
            "In Timestamp": {"type": "rich_text", "rich_text": [{"plain_text": in_timestamp}]},
            "Out Timestamp": {"type": "rich_text", "rich_text": [{"plain_text": out_timestamp}]},
            "Set Code": {
                "type": "rollup",
                "rollup": {"array": [{"rich_text": [{"plain_text": set_code}]}]},
            },
            "Set Reference": {"type": "relation", "relation": [{"id": set_reference}]},
            "Order": {"type": "number", "number": order},
            "Format": {"type": "select", "select": {"name": output_format}},
            "Processed": {"type": "checkbox", "checkbox": False},
        },
    }


def build_instruction(
    record_id="page-1",
    source_name="interview.mp4",
    in_point="00:00:10",
    out_point="00:00:20",
    output_base="Clip 1",
    order=1,
    output_format=OutputFormat.VIDEO,
    set_code="ABC",
    set_reference="set-1",
):
    return ClipInstruction(
        source_name=source_name,
        in_point=parse(in_point),
        out_point=parse(out_point),
        output_base=output_base,
        order=order,
        output_format=output_format,
        set_code=set_code,
        set_reference=set_reference,
        record_id=record_id,
    )


class FakeRunner:
    """Stands in for FFmpegRunner.

    Records every command, writes an empty output file for each success,
    and fails any command whose output name is in ``fail_outputs``.
    """

    def __init__(self, duration=125.0, fail_outputs=(), fail_probe=False):
        self.duration = duration
        self.fail_outputs = set(fail_outputs)
        self.fail_probe = fail_probe
        self.commands: list[FFmpegCommand] = []
        self.probed: list[Path] = []

    async def run(self, command: FFmpegCommand) -> None:
        self.commands.append(command)
        if command.output_path.name in self.fail_outputs:
            raise TranscodeError("FFmpeg exited with code 1: boom")
        command.output_path.parent.mkdir(parents=True, exist_ok=True)
        command.output_path.touch()

    async def probe_duration(self, path: Path) -> float:
        self.probed.append(path)
        if self.fail_probe:
            raise ProbeFailed("No duration line in ffprobe output")
        return self.duration


class FakeInstructionStore:
    """In-memory input database."""

    def __init__(self, pages=(), fail_marks=()):
        self.pages = list(pages)
        self.fail_marks = set(fail_marks)
        self.marked: list[str] = []

    async def query_unprocessed(self):
        marked = set(self.marked)
        return [page for page in self.pages if page["id"] not in marked]

    async def mark_processed(self, record_id: str) -> None:
        if record_id in self.fail_marks:
            raise RecordSyncFailed("Marking instruction processed failed")
        self.marked.append(record_id)


class FakeArtifactStore:
    """In-memory output database."""

    def __init__(self, fail_names=()):
        self.fail_names = set(fail_names)
        self.records: list[CompletionRecord] = []

    async def create_record(self, record: CompletionRecord) -> None:
        if record.file_name in self.fail_names:
            raise RecordSyncFailed("Creating output record failed")
        self.records.append(record)
