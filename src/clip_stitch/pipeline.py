"""Two-stage clip pipeline.

Stage one extracts every instruction's clip and sorts the results into
combination groups. Stage two stitches each group, records the artifact and
ticks off the group's instructions. Stage two starts only once stage one
has fully drained, because recombination reads the files extraction wrote.

Failures stay inside the unit that raised them. An instruction or group
that fails is reported and left unprocessed, so the next run picks it up
again; already extracted clips are found on disk and skipped.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from clip_stitch.config import PipelineSettings
from clip_stitch.errors import (
    ClipStitchError,
    ExtractionFailed,
    FFmpegNotFoundError,
    ProbeFailed,
    RecordSyncFailed,
    SynthesisFailed,
    TranscodeError,
    format_error_for_display,
    wrap_unit_error,
)
from clip_stitch.ffmpeg import FFmpegRunner, build_extraction_command
from clip_stitch.filtergraph import RecombinationPlan, synthesize
from clip_stitch.loader import LoadFailure, intermediate_path, load_instructions, source_path
from clip_stitch.logging import (
    get_logger,
    log_operation_complete,
    log_operation_failed,
    log_operation_start,
)
from clip_stitch.models import (
    ClipInstruction,
    CombinationGroup,
    CombinationKey,
    CompletionRecord,
    ExtractedClip,
    minutes_with_seconds_in_decimal,
)
from clip_stitch.pool import BoundedPool
from clip_stitch.store import ArtifactStore, InstructionStore

logger = get_logger(__name__)


class ExtractionStatus:
    """How an instruction's clip came to exist."""

    EXTRACTED = "extracted"  # ffmpeg ran
    SKIPPED = "skipped"  # Already on disk from an earlier run
    PLANNED = "planned"  # Dry run, nothing executed


@dataclass
class UnitFailure:
    """A unit of work that did not complete.

    Attributes:
        stage: Pipeline stage the unit belongs to
        subject: Record id or combination code the unit worked on
        error: What went wrong
    """

    stage: str
    subject: str
    error: ClipStitchError

    def to_dict(self) -> dict:
        return {
            "stage": self.stage,
            "subject": self.subject,
            "error_type": type(self.error).__name__,
            "error": format_error_for_display(self.error),
        }


@dataclass
class ExtractionResult:
    """Everything stage one hands to stage two."""

    groups: dict[CombinationKey, CombinationGroup] = field(default_factory=dict)
    counts: dict[str, int] = field(
        default_factory=lambda: {
            ExtractionStatus.EXTRACTED: 0,
            ExtractionStatus.SKIPPED: 0,
            ExtractionStatus.PLANNED: 0,
        }
    )
    failures: list[UnitFailure] = field(default_factory=list)

    def register(self, clip: ExtractedClip) -> None:
        """File a clip under its combination group."""
        key = clip.instruction.combination_key
        if key not in self.groups:
            self.groups[key] = CombinationGroup(key=key)
        self.groups[key].add(clip)


class ExtractionScheduler:
    """Stage one: cut one intermediate clip per instruction."""

    def __init__(self, settings: PipelineSettings, runner: FFmpegRunner) -> None:
        self.settings = settings
        self.runner = runner
        self.pool = BoundedPool(settings.extraction_concurrency, name="extraction")

    async def extract(self, instruction: ClipInstruction) -> tuple[ExtractedClip, str]:
        """Produce the intermediate clip for one instruction.

        Returns:
            The clip and an ``ExtractionStatus`` value.

        Raises:
            InvalidTimeRange: The out-point precedes the in-point.
            ExtractionFailed: ffmpeg failed or could not be found.
        """
        duration = instruction.duration
        output = intermediate_path(instruction, self.settings.temp_dir)
        clip = ExtractedClip(
            path=output,
            duration_seconds=instruction.duration_seconds,
            order=instruction.order,
            instruction=instruction,
        )
        command = build_extraction_command(
            source_path(instruction, self.settings.sources_dir),
            output,
            instruction.in_point,
            duration,
        )
        log = logger.bind(record_id=instruction.record_id)

        if not self.settings.use_ffmpeg:
            log.info(f"Dry run: {command}")
            return clip, ExtractionStatus.PLANNED

        if output.exists():
            log.info(f"Already extracted: {output.name}")
            return clip, ExtractionStatus.SKIPPED

        try:
            await self.runner.run(command)
        except (TranscodeError, FFmpegNotFoundError) as e:
            raise ExtractionFailed(e.message, context={"record_id": instruction.record_id, **e.context}) from e

        log.info(f"Extracted {output.name}", extra={"duration_seconds": clip.duration_seconds})
        return clip, ExtractionStatus.EXTRACTED

    async def run(self, instructions: list[ClipInstruction]) -> ExtractionResult:
        """Extract every instruction and group the resulting clips."""
        result = ExtractionResult()
        log_operation_start(logger, "extraction", instructions=len(instructions))
        started = time.monotonic()

        async def unit(instruction: ClipInstruction) -> None:
            clip, status = await self.extract(instruction)
            result.register(clip)
            result.counts[status] += 1

        outcomes = await self.pool.map(unit, instructions)

        for outcome in outcomes:
            if outcome.ok:
                continue
            error = wrap_unit_error(outcome.error, ExtractionFailed, record_id=outcome.item.record_id)
            log_operation_failed(logger, "extract clip", error, record_id=outcome.item.record_id)
            result.failures.append(
                UnitFailure(stage="extraction", subject=outcome.item.record_id, error=error)
            )

        log_operation_complete(
            logger,
            "extraction",
            duration=time.monotonic() - started,
            groups=len(result.groups),
            failed=len(result.failures),
            **result.counts,
        )
        return result


@dataclass
class GroupOutcome:
    """What stage two did for one group."""

    key: CombinationKey
    record: CompletionRecord | None = None
    marked: list[str] = field(default_factory=list)
    mark_failures: list[UnitFailure] = field(default_factory=list)
    dry_run: bool = False


class CompletionSync:
    """Ticks off the instructions of a group whose artifact was recorded."""

    def __init__(self, store: InstructionStore, limit: int) -> None:
        self.store = store
        self.pool = BoundedPool(limit, name="completion")

    async def mark_group(self, group: CombinationGroup) -> tuple[list[str], list[UnitFailure]]:
        """Mark every instruction of ``group`` processed.

        Returns:
            Record ids that were marked, and failures for the rest.
        """
        outcomes = await self.pool.map(self.store.mark_processed, group.record_ids)

        marked = []
        failures = []
        for outcome in outcomes:
            if outcome.ok:
                marked.append(outcome.item)
                continue
            error = wrap_unit_error(outcome.error, RecordSyncFailed, record_id=outcome.item)
            log_operation_failed(logger, "mark processed", error, record_id=outcome.item)
            failures.append(UnitFailure(stage="completion", subject=outcome.item, error=error))
        return marked, failures


def completion_duration(seconds: float, minutes_with_seconds_in_decimal_mode: bool) -> float:
    """Duration as stored in the output database."""
    if minutes_with_seconds_in_decimal_mode:
        return minutes_with_seconds_in_decimal(seconds)
    return seconds


class RecombinationScheduler:
    """Stage two: stitch, probe, record, then mark processed."""

    def __init__(
        self,
        settings: PipelineSettings,
        runner: FFmpegRunner,
        artifact_store: ArtifactStore,
        completion: CompletionSync,
    ) -> None:
        self.settings = settings
        self.runner = runner
        self.artifact_store = artifact_store
        self.completion = completion
        self.pool = BoundedPool(settings.recombination_concurrency, name="recombination")

    def plan(self, group: CombinationGroup) -> RecombinationPlan:
        return synthesize(
            group,
            temp_dir=self.settings.temp_dir,
            finished_dir=self.settings.finished_dir,
            crossfade_length=self.settings.crossfade_length,
        )

    async def _execute(self, plan: RecombinationPlan, key: CombinationKey) -> None:
        # Every pass must succeed; a failed palette pass aborts the render.
        for command in plan.commands:
            try:
                await self.runner.run(command)
            except (TranscodeError, FFmpegNotFoundError) as e:
                raise SynthesisFailed(e.message, context={"combination": str(key), **e.context}) from e

    async def _submit(self, record: CompletionRecord) -> None:
        try:
            await self.artifact_store.create_record(record)
        except RecordSyncFailed:
            raise
        except Exception as e:
            raise wrap_unit_error(e, RecordSyncFailed, file_name=record.file_name) from e

    async def recombine(self, group: CombinationGroup) -> GroupOutcome:
        """Run the whole chain for one group.

        Raises:
            SynthesisFailed: A stitching pass failed or ffmpeg is missing.
            ProbeFailed: The artifact's duration could not be read, or ffprobe is missing.
            RecordSyncFailed: The completion record was not written.
        """
        log = logger.bind(combination=str(group.key))
        plan = self.plan(group)
        outcome = GroupOutcome(key=group.key)

        if not self.settings.use_ffmpeg:
            for command in plan.commands:
                log.info(f"Dry run: {command}")
            outcome.dry_run = True
            return outcome

        await self._execute(plan, group.key)
        log.info(f"Produced {plan.output_path.name}", extra={"clips": len(group.clips)})

        try:
            seconds = await self.runner.probe_duration(plan.output_path)
        except FFmpegNotFoundError as e:
            raise ProbeFailed(e.message, context={"combination": str(group.key)}) from e
        record = CompletionRecord(
            file_name=plan.artifact_stem,
            set_reference=group.set_reference,
            output_format=group.output_format,
            duration=completion_duration(
                seconds, self.settings.duration_as_minutes_with_seconds_in_decimal
            ),
        )
        await self._submit(record)
        outcome.record = record
        log.info(f"Recorded {record.file_name}", extra={"duration": record.duration})

        # Only reached once the artifact is on disk and recorded.
        outcome.marked, outcome.mark_failures = await self.completion.mark_group(group)
        return outcome

    async def run(
        self, groups: list[CombinationGroup]
    ) -> tuple[list[GroupOutcome], list[UnitFailure]]:
        """Recombine every group; failures do not touch other groups."""
        log_operation_start(logger, "recombination", groups=len(groups))
        started = time.monotonic()

        outcomes = await self.pool.map(self.recombine, groups)

        completed: list[GroupOutcome] = []
        failures: list[UnitFailure] = []
        for outcome in outcomes:
            subject = str(outcome.item.key)
            if outcome.ok:
                completed.append(outcome.result)
                continue
            error = wrap_unit_error(outcome.error, SynthesisFailed, combination=subject)
            log_operation_failed(logger, "recombine group", error, combination=subject)
            failures.append(UnitFailure(stage="recombination", subject=subject, error=error))

        log_operation_complete(
            logger,
            "recombination",
            duration=time.monotonic() - started,
            completed=len(completed),
            failed=len(failures),
        )
        return completed, failures


@dataclass
class PipelineReport:
    """Summary of one pipeline run."""

    started_at: str = ""
    completed_at: str = ""
    dry_run: bool = False
    instructions_loaded: int = 0
    extraction_counts: dict[str, int] = field(default_factory=dict)
    groups_total: int = 0
    records: list[CompletionRecord] = field(default_factory=list)
    instructions_marked: int = 0
    failures: list[UnitFailure] = field(default_factory=list)

    def __post_init__(self):
        if not self.started_at:
            self.started_at = datetime.now().isoformat()

    @property
    def succeeded(self) -> bool:
        return not self.failures

    def failures_for(self, stage: str) -> list[UnitFailure]:
        return [failure for failure in self.failures if failure.stage == stage]

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serialisable dictionary."""
        return {
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "dry_run": self.dry_run,
            "instructions_loaded": self.instructions_loaded,
            "extraction": self.extraction_counts,
            "groups_total": self.groups_total,
            "records": [record.model_dump(mode="json") for record in self.records],
            "instructions_marked": self.instructions_marked,
            "failures": [failure.to_dict() for failure in self.failures],
        }


class Pipeline:
    """Load, extract, then recombine, with a barrier between the stages."""

    def __init__(
        self,
        settings: PipelineSettings,
        instruction_store: InstructionStore,
        artifact_store: ArtifactStore,
        runner: FFmpegRunner | None = None,
    ) -> None:
        self.settings = settings
        self.instruction_store = instruction_store
        runner = runner or FFmpegRunner(settings.ffmpeg)
        self.extraction = ExtractionScheduler(settings, runner)
        self.recombination = RecombinationScheduler(
            settings,
            runner,
            artifact_store,
            CompletionSync(instruction_store, settings.completion_concurrency),
        )

    async def run(self) -> PipelineReport:
        """Run both stages over every unprocessed instruction.

        Raises:
            RecordSyncFailed: The initial query failed; nothing was done.
        """
        report = PipelineReport(dry_run=not self.settings.use_ffmpeg)

        pages = await self.instruction_store.query_unprocessed()
        instructions, load_failures = load_instructions(pages)
        report.instructions_loaded = len(instructions)
        report.failures.extend(_load_failure(failure) for failure in load_failures)

        extraction = await self.extraction.run(instructions)
        report.extraction_counts = dict(extraction.counts)
        report.failures.extend(extraction.failures)
        report.groups_total = len(extraction.groups)

        logger.info("All video clips extracted.", extra={"groups": len(extraction.groups)})

        outcomes, failures = await self.recombination.run(list(extraction.groups.values()))
        report.failures.extend(failures)
        for outcome in outcomes:
            if outcome.record is not None:
                report.records.append(outcome.record)
            report.instructions_marked += len(outcome.marked)
            report.failures.extend(outcome.mark_failures)

        report.completed_at = datetime.now().isoformat()
        return report


def _load_failure(failure: LoadFailure) -> UnitFailure:
    return UnitFailure(stage="load", subject=failure.record_id, error=failure.error)
