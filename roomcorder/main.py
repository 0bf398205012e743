"""Main application entry point for roomcorder."""

import sys
import asyncio
import argparse
import logging
from pathlib import Path

from rich.console import Console
from rich.table import Table

from .config import RoomcorderConfig
from .errors import RoomcorderError, user_friendly_message
from .models.results import RecordingOutcome
from .models.session import Participant
from .services.recording_service import RecordingService
from .simulation import VirtualClock, play_script, round_robin_script
from .storage.file_manager import FileManager
from .transport.loopback import LoopbackTransport

logger = logging.getLogger(__name__)

console = Console()


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    # Get log file path from config
    log_file_path = config.get('logging.file_path', 'logs/roomcorder.log')
    console_output = config.get('logging.console_output', True)

    # Create logs directory if it doesn't exist
    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    # Set up handlers
    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console handler - only if enabled in config
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)  # Only show warnings and above on console
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("roomcorder starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def _format_size(size: int) -> str:
    return f"{size / (1024 * 1024):.2f} MB"


def print_outcome(outcome: RecordingOutcome) -> None:
    """Render a processed recording as a rich summary."""
    result = outcome.stop_result
    table = Table(title=f"Recording for room {result.room_id}")
    table.add_column("Speaker")
    table.add_column("Start", justify="right")
    table.add_column("End", justify="right")
    table.add_column("Duration", justify="right")
    for segment in result.segments:
        table.add_row(segment.display_name,
                      f"{segment.relative_start / 1000:.1f}s",
                      f"{segment.relative_end / 1000:.1f}s",
                      f"{segment.duration / 1000:.1f}s")
    console.print(table)

    console.print(f"Duration: {result.duration / 1000:.1f}s, "
                  f"{len(result.participant_files)} participant files")
    if outcome.mixdown:
        console.print(f"Mixdown: {outcome.mixdown.output_file} "
                      f"({_format_size(outcome.mixdown.file_size)}, {outcome.mixdown.path} path)", style="green")
    if outcome.timeline:
        console.print(f"Timeline: {outcome.timeline.output_file} "
                      f"({outcome.timeline.segment_count} segments)", style="green")
    if outcome.segments_file:
        console.print(f"Segments: {outcome.segments_file}")
    for error in outcome.errors:
        console.print(f"Warning: {error}", style="yellow")
    for participant_id, error in result.capture_errors.items():
        console.print(f"Capture error for {participant_id}: {error}", style="yellow")


def _offline_service(config: RoomcorderConfig) -> RecordingService:
    # Post-processing only; no room is ever joined through this transport
    return RecordingService(config, LoopbackTransport())


def cmd_mix(config: RoomcorderConfig, args) -> int:
    service = _offline_service(config)
    result = asyncio.run(service.process_directory(args.scratch_dir, args.output))
    console.print(f"Mixed {result.input_count} files into {result.output_file} "
                  f"({_format_size(result.file_size)}) in {result.processing_time:.1f}s", style="green")
    return 0


def cmd_timeline(config: RoomcorderConfig, args) -> int:
    service = _offline_service(config)
    result = asyncio.run(service.rebuild_timeline(args.segments_file, args.output))
    console.print(f"Timeline written to {result.output_file}: {result.segment_count} segments, "
                  f"{result.total_duration / 1000:.1f}s", style="green")
    return 0


def cmd_list(config: RoomcorderConfig, args) -> int:
    file_manager = FileManager(config.get_recordings_directory(), config.get_temp_directory())
    recordings = file_manager.list_recordings()
    if not recordings:
        console.print("No recordings found.", style="yellow")
        return 0

    table = Table(title="Recordings")
    table.add_column("Recording")
    table.add_column("Created")
    table.add_column("Size", justify="right")
    for info in recordings[:args.limit]:
        table.add_row(info.recording_id, info.created.strftime("%Y-%m-%d %H:%M:%S"), _format_size(info.size))
    console.print(table)

    usage = file_manager.get_disk_usage()
    console.print(f"{usage['file_count']} recordings, {usage['total_size_mb']} MB total")
    return 0


def cmd_cleanup(config: RoomcorderConfig, args) -> int:
    file_manager = FileManager(config.get_recordings_directory(), config.get_temp_directory())
    max_age = args.max_age_hours if args.max_age_hours is not None else config.get('storage.max_age_hours', 24)
    deleted = file_manager.cleanup_old_files(max_age)
    console.print(f"Deleted {deleted} files older than {max_age} hours")
    return 0


async def simulate(config: RoomcorderConfig, participants: int, turns: int, turn_ms: int,
                   gap_ms: int, timeline: bool) -> RecordingOutcome:
    """Record a scripted loopback session end to end."""
    clock = VirtualClock()
    transport = LoopbackTransport()
    service = RecordingService(config, transport, clock=clock)

    room_id = "simulated-room"
    members = [Participant(f"user{i + 1}", f"Speaker {i + 1}", f"speaker{i + 1}") for i in range(participants)]
    members.append(Participant("bot", "Recorder Bot", "recorder", bot=True))

    await service.start_session(room_id, members)
    connection = transport.connection_for(room_id)
    script = round_robin_script([m.id for m in members if not m.bot], turns, turn_ms, gap_ms)
    await play_script(connection, clock, script)
    return await service.stop_and_process(room_id, timeline=timeline)


def cmd_simulate(config: RoomcorderConfig, args) -> int:
    outcome = asyncio.run(simulate(config, args.participants, args.turns, args.turn_ms,
                                   args.gap_ms, args.timeline))
    print_outcome(outcome)
    return 1 if outcome.mixdown is None else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="roomcorder - multi-participant voice room recorder"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: built-in defaults)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: from config)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="roomcorder v0.1.0"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    mix = subparsers.add_parser("mix", help="Mix down the PCM files left in a session scratch directory")
    mix.add_argument("scratch_dir", help="Directory holding participant .pcm files")
    mix.add_argument("-o", "--output", required=True, help="Output MP3 path")
    mix.set_defaults(handler=cmd_mix)

    timeline = subparsers.add_parser("timeline", help="Rebuild a timeline track from saved segment metadata")
    timeline.add_argument("segments_file", help="Path to a *_segments.json file")
    timeline.add_argument("-o", "--output", required=True, help="Output MP3 path")
    timeline.set_defaults(handler=cmd_timeline)

    listing = subparsers.add_parser("list", help="List finished recordings")
    listing.add_argument("--limit", type=int, default=20, help="Maximum recordings to show (default: 20)")
    listing.set_defaults(handler=cmd_list)

    cleanup = subparsers.add_parser("cleanup", help="Delete old recordings and temp files")
    cleanup.add_argument("--max-age-hours", type=float, help="Override storage.max_age_hours")
    cleanup.set_defaults(handler=cmd_cleanup)

    sim = subparsers.add_parser("simulate", help="Record a scripted loopback session end to end")
    sim.add_argument("--participants", type=int, default=2, help="Number of speakers (default: 2)")
    sim.add_argument("--turns", type=int, default=4, help="Number of speech turns (default: 4)")
    sim.add_argument("--turn-ms", type=int, default=2000, help="Length of each turn in ms (default: 2000)")
    sim.add_argument("--gap-ms", type=int, default=500, help="Silence between turns in ms (default: 500)")
    sim.add_argument("--timeline", action="store_true", help="Also build the timeline track")
    sim.set_defaults(handler=cmd_simulate)

    return parser


def main() -> None:
    """Main entry point for roomcorder."""
    parser = build_parser()
    args = parser.parse_args()

    try:
        config = RoomcorderConfig(args.config)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"Configuration error: {e}", style="red")
        sys.exit(2)

    setup_logging(config, args.log_level or config.get('logging.level', 'INFO'))

    try:
        sys.exit(args.handler(config, args))
    except KeyboardInterrupt:
        console.print("\nInterrupted")
        sys.exit(130)
    except RoomcorderError as e:
        logger.error(f"Command {args.command} failed: {e}")
        console.print(user_friendly_message(e), style="red")
        sys.exit(1)
    except Exception as e:
        console.print(f"Error: {e}", style="red")
        logging.error(f"Application error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
