"""High-level orchestrator for PhotoReturns.

Coordinates scanning, date resolution, burst grouping, path planning and the
parallel write phase. Used by the CLI and by library callers.
"""

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterable, List, Optional, Tuple

from phr.core.burst import BurstGrouper
from phr.core.config import EngineConfig
from phr.core.errors import DateResolutionError, DirectoryValidationError, PhotoReturnsError
from phr.core.logger import RunLogger
from phr.core.metadata import MetadataExtractor
from phr.core.models import (
    DateSource, MediaRecord, MediaType, ProcessOptions, ProcessResult,
    ProgressCallback, RecordStatus, ROTATION_EXIF, ROTATION_NONE
)
from phr.core.naming import PathPlanner
from phr.core.processor import FileProcessor, cleanup_temp_files
from phr.core.scanner import META_DIR_NAME, MediaScanner
from phr.core.session import SessionStore
from phr.core.utils import exists, is_nested, same_path

logger = logging.getLogger(__name__)

# Statuses whose destination paths are owned and must not be reused
_SETTLED = (RecordStatus.COMPLETED, RecordStatus.NO_CHANGE)


def _adaptive_interval(total: int) -> int:
    """Calculate adaptive progress update interval based on total count.

    More frequent updates for smaller collections, less frequent for larger ones.

    Args:
        total: Total number of items to process.

    Returns:
        Update interval (report progress every N items).
    """
    if total < 50:
        return 1
    elif total < 200:
        return 10
    elif total < 1000:
        return 25
    else:
        return 50


def validate_directories(input_dir: str, output_dir: str) -> bool:
    """Check input/output directories before any work is done.

    Returns:
        True when output_dir is input_dir (in-place run).

    Raises:
        DirectoryValidationError: If input_dir is missing or not a directory,
            or output_dir lies inside input_dir.
    """
    if not exists(input_dir) or not os.path.isdir(input_dir):
        raise DirectoryValidationError("Input directory does not exist", input_dir)
    if exists(output_dir) and not os.path.isdir(output_dir):
        raise DirectoryValidationError("Output path exists and is not a directory", output_dir)
    if is_nested(output_dir, input_dir):
        raise DirectoryValidationError(
            "Output directory cannot be inside the input directory", output_dir
        )
    if same_path(input_dir, output_dir):
        logger.warning(f"Output is the input directory, files will be moved in place: {input_dir}")
        return True
    return False


class MediaOrchestrator:
    """Coordinates all PhotoReturns operations.

    Usage:
        orchestrator = MediaOrchestrator(EngineConfig())

        # Preview: scan and resolve dates without writing anything
        records = orchestrator.scan("/photos")

        # Organize into a dated tree
        options = ProcessOptions(input_dir="/photos", output_dir="/organized")
        result = orchestrator.process_records(records, options)

        # Try the failures again
        if result.failed:
            result = orchestrator.retry(result.media, options)
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.resolver = self.config.resolver()
        self.grouper = BurstGrouper(self.config.burst)

    def scan(
        self,
        input_dir: str,
        include_videos: bool = True,
        parallel: bool = True,
        on_progress: Optional[ProgressCallback] = None
    ) -> List[MediaRecord]:
        """Scan a directory and build fully resolved records.

        Enumerates media, extracts metadata, applies per-media-type defaults,
        resolves dates and assigns bursts. Writes nothing.

        Raises:
            DirectoryValidationError: If input_dir is missing.
        """
        if not exists(input_dir) or not os.path.isdir(input_dir):
            raise DirectoryValidationError("Input directory does not exist", input_dir)

        def scan_progress(current, total, message):
            if on_progress:
                on_progress(current, 0, f"[1/2] {message}")

        scanner = MediaScanner(input_dir, include_videos=include_videos)
        records = scanner.scan(on_progress=scan_progress if on_progress else None)

        def extract_progress(current, total, message):
            if on_progress:
                on_progress(current, total, f"[2/2] {message}")

        extractor = MetadataExtractor(max_workers=self.config.max_workers)
        extractor.extract_all(
            records, parallel=parallel,
            on_progress=extract_progress if on_progress else None
        )

        # Barrier: everything below needs the whole set
        for record in records:
            self._apply_defaults(record)
            self.resolver.apply(record)
            self._log_resolution(record)

        groups = self.grouper.assign(records)
        logger.info(
            f"Scan of {input_dir} complete: {len(records)} files, {len(groups)} burst groups"
        )
        return records

    def _apply_defaults(self, record: MediaRecord) -> None:
        defaults = self.config.defaults_for(record.media_type)
        record.timezone_offset = defaults.timezone_offset
        if record.media_type == MediaType.PHOTO:
            record.rotation_mode = defaults.rotation_mode

    @staticmethod
    def _log_resolution(record: MediaRecord) -> None:
        if record.date_source == DateSource.NONE:
            if record.selected_source is not None:
                record.warning(f"Selected date source {record.selected_source.value} is unavailable")
            else:
                record.warning("No date could be determined")
        else:
            record.info(
                f"Date source {record.date_source.value}: {record.date_taken.isoformat()}"
            )

    def process_records(
        self,
        records: List[MediaRecord],
        options: ProcessOptions,
        on_progress: Optional[ProgressCallback] = None
    ) -> ProcessResult:
        """Organize an already scanned (and possibly edited) record set.

        Applies the run-wide options, regroups bursts over the whole set and
        then writes every record.

        Raises:
            DirectoryValidationError: Before any work, if the directories are
                unusable.
        """
        validate_directories(options.input_dir, options.output_dir)

        for record in records:
            self._apply_options(record, options)
            # Dates may have been overridden since the scan
            self.resolver.apply(record)
        groups = self.grouper.assign(records)

        return self._run(records, records, options, on_progress, burst_groups=len(groups))

    def retry(
        self,
        records: List[MediaRecord],
        options: ProcessOptions,
        on_progress: Optional[ProgressCallback] = None
    ) -> ProcessResult:
        """Process only the records that ended in error.

        Burst numbering is kept as is. Destinations of records that already
        completed stay reserved, so retried files never take their names.

        Raises:
            DirectoryValidationError: If the directories are unusable.
        """
        validate_directories(options.input_dir, options.output_dir)

        targets = [r for r in records if r.status == RecordStatus.ERROR]
        for record in targets:
            self.resolver.apply(record)
        logger.info(f"Retrying {len(targets)} of {len(records)} records")
        return self._run(targets, records, options, on_progress, retried=len(targets))

    def _apply_options(self, record: MediaRecord, options: ProcessOptions) -> None:
        if options.timezone_offset is not None:
            record.timezone_offset = options.timezone_offset
        if (options.auto_correct_orientation and record.is_photo
                and record.rotation_mode == ROTATION_NONE):
            record.rotation_mode = ROTATION_EXIF

    def _plan(
        self,
        targets: List[MediaRecord],
        all_records: List[MediaRecord],
        output_dir: str
    ) -> List[MediaRecord]:
        """Assign destinations sequentially, in scan order.

        Returns:
            Records that got a destination. The rest are marked as errors.
        """
        target_ids = {id(r) for r in targets}
        reserved = [
            r.new_path for r in all_records
            if id(r) not in target_ids and r.status in _SETTLED and r.new_path
        ]
        planner = PathPlanner(output_dir, reserved=reserved)

        planned = []
        for record in targets:
            record.status = RecordStatus.PENDING
            record.progress = 0
            record.error_message = None
            record.rotation_applied = False
            record.clear_destination()
            try:
                planner.plan(record)
            except DateResolutionError as e:
                record.status = RecordStatus.PROCESSING
                self._fail(record, e)
                continue
            planned.append(record)
        return planned

    @staticmethod
    def _fail(record: MediaRecord, error: Exception) -> None:
        record.status = RecordStatus.ERROR
        record.progress = 100
        record.error_message = error.message if isinstance(error, PhotoReturnsError) else str(error)
        record.error(record.error_message)

    def _process_one(
        self,
        processor: FileProcessor,
        record: MediaRecord
    ) -> MediaRecord:
        """Worker task: write one record. Only touches that record."""
        record.status = RecordStatus.PROCESSING
        try:
            status = processor.process_record(record)
        except (PhotoReturnsError, OSError) as e:
            logger.warning(f"Failed to process {record.original_path}: {e}")
            self._fail(record, e)
            return record
        record.status = status
        record.progress = 100
        return record

    def _run(
        self,
        targets: List[MediaRecord],
        all_records: List[MediaRecord],
        options: ProcessOptions,
        on_progress: Optional[ProgressCallback],
        retried: int = 0,
        burst_groups: int = 0
    ) -> ProcessResult:
        start_time = time.time()
        start_date = time.strftime("%Y-%m-%d %H:%M:%S")

        planned = self._plan(targets, all_records, options.output_dir)
        total = len(planned)
        interval = _adaptive_interval(total)

        if on_progress:
            on_progress(0, total, "Processing...")

        with FileProcessor(
            options.input_dir, options.output_dir, backup_dir=options.backup_dir
        ) as processor:
            done = 0
            for record, error in self._execute(processor, planned, options.parallel):
                if error is not None:
                    # Bug guard: _process_one handles expected failures itself
                    logger.warning(f"Unexpected error processing {record.original_path}: {error}")
                    self._fail(record, error)
                done += 1
                if on_progress and (done % interval == 0 or done == total):
                    on_progress(done, total, f"Processed: {record.file_name}")

        if options.cleanup_temp:
            cleanup_temp_files(options.output_dir)

        result = ProcessResult(
            total_files=len(all_records),
            media=all_records,
            start_time=start_date,
        )
        for record in all_records:
            if record.status in _SETTLED:
                result.processed_files += 1
            elif record.status == RecordStatus.ERROR:
                result.errors.append(f"{record.original_path}: {record.error_message}")
        result.success = not result.errors

        end_time = time.time()
        result.elapsed_time = round(end_time - start_time, 3)
        result.end_time = time.strftime("%Y-%m-%d %H:%M:%S")

        meta_dir = os.path.join(options.output_dir, META_DIR_NAME)
        self._write_run_files(meta_dir, targets, options, result, retried, burst_groups)
        SessionStore(meta_dir).save(all_records, options)

        logger.info(
            f"Processed {result.processed_files}/{result.total_files} files "
            f"with {len(result.errors)} errors in {result.elapsed_time}s"
        )
        return result

    @staticmethod
    def _write_run_files(
        meta_dir: str,
        targets: List[MediaRecord],
        options: ProcessOptions,
        result: ProcessResult,
        retried: int,
        burst_groups: int
    ) -> None:
        """Write summary.txt (and verbose.txt) into meta_dir.

        A failure here is logged and leaves result.summary_file empty; the
        result itself is still returned.
        """
        try:
            with RunLogger(meta_dir, verbose=options.verbose) as run_logger:
                run_logger.log(f"Started processing: {options.input_dir}")
                for record in targets:
                    run_logger.log_record(record)
                result.summary_file = run_logger.write_summary(
                    options.input_dir, options.output_dir, result,
                    retried=retried, burst_groups=burst_groups
                )
        except OSError as e:
            logger.warning(f"Failed to write run logs to {meta_dir}: {e}")
            result.summary_file = ""

    def _execute(
        self,
        processor: FileProcessor,
        records: List[MediaRecord],
        parallel: bool
    ) -> Iterable[Tuple[MediaRecord, Optional[Exception]]]:
        """Run _process_one for every record, yielding results on this thread."""
        if not parallel:
            for record in records:
                error = None
                try:
                    self._process_one(processor, record)
                except Exception as e:
                    error = e
                yield record, error
            return

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            futures = {executor.submit(self._process_one, processor, r): r for r in records}
            for future in as_completed(futures):
                record = futures[future]
                try:
                    yield future.result(), None
                except Exception as e:
                    yield record, e


class RetryCommand:
    """A retry of the failed records of an earlier run.

    Captures the full record list of that run so completed destinations stay
    reserved.

    Usage:
        command = RetryCommand(result.media, options)
        result = command.execute()

        # From a later session
        command = RetryCommand.from_session("/organized")
        if command:
            command.execute()
    """

    def __init__(
        self,
        records: List[MediaRecord],
        options: ProcessOptions,
        config: Optional[EngineConfig] = None
    ):
        self.records = list(records)
        self.options = options
        self.config = config

    @property
    def targets(self) -> List[MediaRecord]:
        """Records that will be retried."""
        return [r for r in self.records if r.status == RecordStatus.ERROR]

    def execute(self, on_progress: Optional[ProgressCallback] = None) -> ProcessResult:
        return MediaOrchestrator(self.config).retry(self.records, self.options, on_progress)

    @classmethod
    def from_session(
        cls,
        output_dir: str,
        config: Optional[EngineConfig] = None
    ) -> Optional["RetryCommand"]:
        """Load the last run stored under output_dir, or None if there is none."""
        loaded = SessionStore(os.path.join(output_dir, META_DIR_NAME)).load()
        if loaded is None:
            return None
        records, options = loaded
        return cls(records, options, config)


def scan(
    input_dir: str,
    include_videos: bool = True,
    parallel: bool = True,
    config: Optional[EngineConfig] = None,
    on_progress: Optional[ProgressCallback] = None
) -> List[MediaRecord]:
    """Scan input_dir and return resolved records. Writes nothing."""
    return MediaOrchestrator(config).scan(
        input_dir, include_videos=include_videos, parallel=parallel, on_progress=on_progress
    )


def process(
    input_dir: str,
    output_dir: str,
    backup_dir: Optional[str] = None,
    include_videos: bool = True,
    parallel: bool = True,
    timezone_offset: Optional[str] = None,
    cleanup_temp: bool = False,
    auto_correct_orientation: bool = False,
    config: Optional[EngineConfig] = None,
    verbose: bool = False,
    on_progress: Optional[ProgressCallback] = None
) -> ProcessResult:
    """Scan input_dir and organize it into output_dir.

    Raises:
        DirectoryValidationError: Before any work, if the directories are
            unusable.
        ValueError: If timezone_offset is not a valid mode or offset.
    """
    options = ProcessOptions(
        input_dir=input_dir,
        output_dir=output_dir,
        backup_dir=backup_dir,
        include_videos=include_videos,
        parallel=parallel,
        timezone_offset=timezone_offset,
        cleanup_temp=cleanup_temp,
        auto_correct_orientation=auto_correct_orientation,
        verbose=verbose,
    )
    validate_directories(input_dir, output_dir)

    orchestrator = MediaOrchestrator(config)
    records = orchestrator.scan(input_dir, include_videos=include_videos, parallel=parallel)
    return orchestrator.process_records(records, options, on_progress=on_progress)


def retry(
    records: List[MediaRecord],
    options: ProcessOptions,
    config: Optional[EngineConfig] = None,
    on_progress: Optional[ProgressCallback] = None
) -> ProcessResult:
    """Retry the failed records of an earlier run."""
    return RetryCommand(records, options, config).execute(on_progress)
