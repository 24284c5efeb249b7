"""Command-line interface for PhotoReturns."""

import argparse
import dataclasses
import shutil
import sys
from typing import List, Optional

from tqdm import tqdm

from phr import __version__
from phr.core.config import BurstConfig, EngineConfig, Settings
from phr.core.dates import validate_timezone_offset
from phr.core.errors import DateResolutionError, DirectoryValidationError
from phr.core.models import ProcessResult
from phr.core.naming import build_name
from phr.core.orchestrator import MediaOrchestrator, RetryCommand, process
from phr.core.utils import exists, normalize_path


# Program description
DESCRIPTION = """PhotoReturns

Organizes photos and videos into a dated folder tree:

    <destination>/YYYY/YYYY-MM/YYYY-MM-DD/YYYY-MM-DD_HH-MM-SS[-mmm][_NN].ext

The date comes from EXIF, the filename or the file system, whichever is
available first. Rapid sequences (bursts) get a _01, _02, ... index.
Originals are never modified unless the destination is the input folder.

Run logs and the retry session are kept in <destination>/_phr/.
"""


def create_progress_callback(desc: str = "Processing"):
    """Create a tqdm-based progress callback.

    Args:
        desc: Description for progress bar.

    Returns:
        Tuple of (callback function, tqdm instance).
    """
    pbar = tqdm(total=100, desc=desc)

    # Calculate safe message width based on terminal size
    terminal_width = shutil.get_terminal_size().columns
    # Leave room for progress bar elements (percentage, bar, counts)
    max_desc_width = max(20, min(80, terminal_width - 40))

    def callback(current: int, total: int, message: str):
        pbar.total = total
        pbar.n = current
        # Truncate message to fit terminal
        if len(message) > max_desc_width:
            message = message[:max_desc_width - 3] + "..."
        pbar.set_description(message)
        pbar.refresh()

    return callback, pbar


def prompt_for_path(last_path: str = "") -> Optional[str]:
    """Ask for the folder to organize when --path is missing.

    Args:
        last_path: Folder used last time, offered as the default.

    Returns:
        Path entered by user, or None if cancelled.
    """
    print("\nNo input folder given, switching to interactive setup")
    hint = f" [{last_path}]" if last_path else ""

    try:
        path = input(f"Enter path to the folder with your photos{hint}: ").strip()
    except (KeyboardInterrupt, EOFError):
        print("\nCancelled.")
        return None
    return path or last_path or None


def build_config(
    settings: Settings,
    burst_interval: Optional[float] = None,
    burst_min: Optional[int] = None
) -> EngineConfig:
    """Engine config from saved settings, with command-line overrides.

    Raises:
        ValueError: If an override is out of range.
    """
    config = settings.to_engine_config()
    if burst_interval is None and burst_min is None:
        return config

    burst = BurstConfig(
        max_interval_seconds=(
            burst_interval if burst_interval is not None
            else config.burst.max_interval_seconds
        ),
        min_count=burst_min if burst_min is not None else config.burst.min_count,
    )
    return dataclasses.replace(config, burst=burst)


def run_scan_only(
    path: str,
    config: EngineConfig,
    include_videos: bool,
    parallel: bool
) -> int:
    """Show how files would be named without writing anything.

    Returns:
        Exit code (0 for success).
    """
    print("\n=== SCAN ONLY ===")
    print("No files will be copied or modified.\n")

    callback, pbar = create_progress_callback("Scanning")
    try:
        records = MediaOrchestrator(config).scan(
            path, include_videos=include_videos, parallel=parallel, on_progress=callback
        )
    finally:
        pbar.close()

    unknown = 0
    for record in records:
        try:
            name = build_name(record)
        except DateResolutionError:
            name = record.new_name
            unknown += 1
        burst = f"  [burst {record.burst_group_id}]" if record.in_burst else ""
        print(f"  {record.file_name} -> {name}  ({record.date_source.value}){burst}")

    photos = sum(1 for r in records if r.is_photo)
    print(f"\nFound {photos} photos and {len(records) - photos} videos")
    if unknown:
        print(f"  {unknown} files have no usable date and will be reported as errors")

    print("\n=== END SCAN ===")
    return 0


def print_result(result: ProcessResult) -> int:
    """Print a run summary.

    Returns:
        Exit code (0 if every file succeeded, 2 otherwise).
    """
    if result.errors:
        print("\nErrors:")
        for error in result.errors[:10]:  # Show first 10
            print(f"  {error}")
        if len(result.errors) > 10:
            print(f"  ... and {len(result.errors) - 10} more")

    print("\nFinished!")
    print(f"Processed: {result.processed_files} of {result.total_files} files")
    if result.errors:
        print(f"Failed: {len(result.errors)} (retry with --retry)")
    print(f"Time used: {result.elapsed_time} seconds")
    if result.summary_file:
        print(f"\nSummary:\n  {result.summary_file}")

    return 2 if result.errors else 0


def run_process(
    path: str,
    destination: str,
    config: EngineConfig,
    backup: Optional[str] = None,
    include_videos: bool = True,
    parallel: bool = True,
    timezone: Optional[str] = None,
    auto_rotate: bool = False,
    cleanup_temp: bool = False,
    verbose: bool = False
) -> int:
    """Run main processing.

    Returns:
        Exit code (0 for success).
    """
    print("\nProcess started...")
    print(f"Input:  {path}")
    print(f"Output: {destination}")

    callback, pbar = create_progress_callback("Processing")
    try:
        result = process(
            path,
            destination,
            backup_dir=backup,
            include_videos=include_videos,
            parallel=parallel,
            timezone_offset=timezone,
            cleanup_temp=cleanup_temp,
            auto_correct_orientation=auto_rotate,
            config=config,
            verbose=verbose,
            on_progress=callback,
        )
    finally:
        pbar.close()

    return print_result(result)


def run_retry(destination: str, config: EngineConfig) -> int:
    """Retry the failed files of the last run into destination.

    Returns:
        Exit code (0 for success).
    """
    command = RetryCommand.from_session(destination, config)
    if command is None:
        print(f"Error: No previous run found in {destination}")
        return 1

    targets = command.targets
    if not targets:
        print("Nothing to retry: the last run had no errors.")
        return 0

    print(f"\nRetrying {len(targets)} failed files...")
    callback, pbar = create_progress_callback("Retrying")
    try:
        result = command.execute(on_progress=callback)
    finally:
        pbar.close()

    return print_result(result)


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        args: Arguments to parse (default: sys.argv[1:]).

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        prog="phr",
        description=DESCRIPTION,
        formatter_class=argparse.RawTextHelpFormatter
    )

    parser.add_argument(
        "-V", "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    parser.add_argument(
        "-p", "--path",
        help="The directory containing the photos and videos to organize",
        type=str,
        default=None
    )

    parser.add_argument(
        "-d", "--destination",
        help="Where the dated folder tree is created (default: <path>_organized).\n"
             "Use the input directory itself to reorganize in place.",
        type=str,
        default=None
    )

    parser.add_argument(
        "-b", "--backup",
        help="Copy every original here before writing it",
        type=str,
        default=None
    )

    parser.add_argument(
        "--no-videos",
        help="Only process photos",
        action="store_true"
    )

    parser.add_argument(
        "--sequential",
        help="Process one file at a time instead of in parallel",
        action="store_true"
    )

    parser.add_argument(
        "--timezone",
        help='Timezone correction for every file: "none", "exif" or an offset like +09:00',
        type=str,
        default=None
    )

    parser.add_argument(
        "--auto-rotate",
        help="Rotate photos upright according to their EXIF orientation",
        action="store_true"
    )

    parser.add_argument(
        "--cleanup-temp",
        help="Remove temp files left by interrupted runs from the destination",
        action="store_true"
    )

    parser.add_argument(
        "--scan-only",
        help="Show how files would be named without making changes",
        action="store_true"
    )

    parser.add_argument(
        "--retry",
        help="Retry the files that failed in the last run into --destination",
        action="store_true"
    )

    parser.add_argument(
        "--burst-interval",
        help="Maximum seconds between photos of a burst",
        type=float,
        default=None
    )

    parser.add_argument(
        "--burst-min",
        help="Minimum number of photos that make a burst",
        type=int,
        default=None
    )

    parser.add_argument(
        "--config",
        help="Settings file to use instead of the per-user one",
        type=str,
        default=None
    )

    parser.add_argument(
        "-v", "--verbose",
        help="Write every file's processing trail to _phr/verbose.txt",
        action="store_true"
    )

    return parser.parse_args(args)


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point for CLI.

    Args:
        args: Command-line arguments (default: sys.argv[1:]).

    Returns:
        Exit code: 0 success, 1 invalid arguments or directories,
        2 finished with per-file errors, 130 interrupted.
    """
    parsed = parse_args(args)

    settings = Settings(parsed.config)
    try:
        config = build_config(settings, parsed.burst_interval, parsed.burst_min)
        timezone = (
            validate_timezone_offset(parsed.timezone) if parsed.timezone is not None else None
        )
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    try:
        if parsed.retry:
            if not parsed.destination:
                print("Error: --retry needs --destination")
                return 1
            return run_retry(normalize_path(parsed.destination), config)

        path = parsed.path
        if not path:
            path = prompt_for_path(settings.get("last_source_path", ""))
            if not path:
                return 1

        path = normalize_path(path)
        if not exists(path):
            print(f"Error: Path does not exist: {path}")
            return 1

        if parsed.scan_only:
            return run_scan_only(
                path, config,
                include_videos=not parsed.no_videos,
                parallel=not parsed.sequential
            )

        destination = (
            normalize_path(parsed.destination) if parsed.destination
            else f"{path}_organized"
        )
        backup = normalize_path(parsed.backup) if parsed.backup else None

        settings.set("last_source_path", path)
        settings.set("last_dest_path", destination)
        settings.save()

        return run_process(
            path, destination, config,
            backup=backup,
            include_videos=not parsed.no_videos,
            parallel=not parsed.sequential,
            timezone=timezone,
            auto_rotate=parsed.auto_rotate,
            cleanup_temp=parsed.cleanup_temp,
            verbose=parsed.verbose
        )
    except DirectoryValidationError as e:
        print(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        print("\n\nInterrupted! Files already written are kept.")
        return 130  # Standard exit code for SIGINT


if __name__ == "__main__":
    sys.exit(main())
