"""
Mood Journal: record mood entries and follow the live journal views.

Commands:
- submit: Validate, classify, recommend and persist one entry
- watch: Subscribe to a user's entries and print chart/calendar on every change
- stats: Print the current chart and calendar once

Execution modes:
- Normal: MongoDB repository, S3 (or local) media store, Hugging Face sentiment
- Dry run: In-memory repository and local media store, nothing leaves the machine
- No AI: Skip sentiment classification (feedback is 'unavailable')
"""

import argparse
import logging
import mimetypes
import os
import sys
import threading
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from mood_journal.adapters.clients.sentiment import HuggingFaceSentimentClient, SentimentClassifier
from mood_journal.adapters.repositories.base import EntryRepository
from mood_journal.adapters.repositories.memory import InMemoryEntryRepository
from mood_journal.adapters.repositories.mongo import connect_repository
from mood_journal.adapters.storage.media import LocalMediaStore, MediaStore, S3MediaStore
from mood_journal.core.errors import JournalError, SyncError, ValidationError
from mood_journal.core.feedback import feedback_message
from mood_journal.core.models import Mood, MoodEntry
from mood_journal.core.pipeline import ImageAttachment, SubmissionPipeline
from mood_journal.core.projections import calendar_events, chart_series
from mood_journal.core.session import JournalSession
from mood_journal.utils.logger import setup_logger

logger = logging.getLogger(__name__)

# Constants
DEFAULT_MEDIA_ROOT = "media"
DRY_RUN_MEDIA_ROOT = ".dry_run_media"
EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID_INPUT = 2


# ============================================================================
# ARGUMENT PARSING
# ============================================================================

def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parses and validates command-line arguments.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        description="Mood Journal: record moods and follow your journal in real time",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run.py submit --user alice --mood happy --text "Had a great day"
  python run.py submit --user alice --mood sad --image photo.jpg --dry-run
  python run.py watch --user alice
  python run.py stats --user alice
        """
    )
    parser.add_argument("--dry-run", action="store_true",
                        help="Use an in-memory repository and local media store")
    parser.add_argument("--no-ai", action="store_true",
                        help="Skip sentiment analysis, feedback is 'unavailable'")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    submit = subparsers.add_parser("submit", help="Record one mood entry")
    submit.add_argument("--user", required=True, help="Owner of the entry")
    submit.add_argument("--mood", choices=[mood.value for mood in Mood],
                        help="Declared mood")
    submit.add_argument("--text", default="", help="Journal text")
    submit.add_argument("--image", help="Path of a photo to attach")

    watch = subparsers.add_parser("watch", help="Follow a user's entries live")
    watch.add_argument("--user", required=True)
    watch.add_argument("--duration", type=float, default=None,
                       help="Stop after this many seconds (default: until Ctrl+C)")

    stats = subparsers.add_parser("stats", help="Print chart and calendar once")
    stats.add_argument("--user", required=True)

    return parser.parse_args(argv)


# ============================================================================
# WIRING
# ============================================================================

def build_repository(dry_run: bool) -> EntryRepository:
    if dry_run:
        logger.info("Dry run: using in-memory entry repository")
        return InMemoryEntryRepository()
    return connect_repository()


def build_media_store(dry_run: bool) -> MediaStore:
    if dry_run:
        return LocalMediaStore(DRY_RUN_MEDIA_ROOT)
    if os.environ.get("S3_BUCKET"):
        return S3MediaStore()
    return LocalMediaStore(os.environ.get("MEDIA_ROOT", DEFAULT_MEDIA_ROOT))


def build_classifier(no_ai: bool) -> Optional[SentimentClassifier]:
    if no_ai:
        logger.info("Skipping sentiment analysis (--no-ai)")
        return None
    return HuggingFaceSentimentClient()


def build_pipeline(args: argparse.Namespace) -> SubmissionPipeline:
    return SubmissionPipeline(
        repository=build_repository(args.dry_run),
        classifier=build_classifier(args.no_ai),
        media_store=build_media_store(args.dry_run),
    )


def load_image(path: str) -> ImageAttachment:
    """
    Reads an image file from disk.

    Raises:
        ValidationError: If the file cannot be read.
    """
    content_type, _ = mimetypes.guess_type(path)
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise ValidationError(f"image not readable: {e}") from e
    return ImageAttachment(data=data, content_type=content_type or "application/octet-stream")


# ============================================================================
# RENDERING
# ============================================================================

def render_entry(entry: MoodEntry) -> str:
    lines = [
        f"[{entry.date}] {entry.mood.upper()} (id: {entry.id})",
        f"  {entry.text}" if entry.text else "  (no text)",
        f"  {feedback_message(entry.sentiment_feedback)}",
    ]
    if entry.has_image:
        lines.append(f"  Photo: {entry.image_url}")
    if entry.recommendations:
        lines.append("  Suggested activities:")
        lines.extend(f"    - {item}" for item in entry.recommendations)
    return "\n".join(lines)


def render_views(entries: List[MoodEntry]) -> str:
    if not entries:
        return "No entries to display. Start journaling to see your mood distribution."

    series = chart_series(entries)
    lines = [f"Mood distribution ({series.total} entries):"]
    for label, count in zip(series.labels, series.counts):
        lines.append(f"  {label:<8} {'#' * count} {count}")

    lines.append("Calendar:")
    for event in calendar_events(entries):
        lines.append(f"  {event.day.isoformat()}  {event.title}")
    return "\n".join(lines)


# ============================================================================
# COMMANDS
# ============================================================================

def cmd_submit(args: argparse.Namespace) -> int:
    image = load_image(args.image) if args.image else None
    pipeline = build_pipeline(args)

    entry = pipeline.submit(args.user, args.mood, args.text, image)
    print(render_entry(entry))

    if args.dry_run:
        print(render_views(pipeline.repository.snapshot(args.user)))
    return EXIT_OK


def cmd_watch(args: argparse.Namespace) -> int:
    pipeline = build_pipeline(args)
    stop = threading.Event()

    def on_snapshot(entries: List[MoodEntry]) -> None:
        print(render_views(entries))
        print("-" * 40)

    def on_sync_error(error: SyncError) -> None:
        print(f"(sync degraded: {error})")
        if not error.recoverable:
            stop.set()

    session = JournalSession(args.user, pipeline)
    session.open(on_snapshot=on_snapshot, on_sync_error=on_sync_error)
    try:
        stop.wait(args.duration)
    except KeyboardInterrupt:
        logger.info("Watch interrupted")
    finally:
        session.close()

    if session.sync_error is not None and not session.sync_error.recoverable:
        return EXIT_FAILURE
    return EXIT_OK


def cmd_stats(args: argparse.Namespace) -> int:
    repository = build_repository(args.dry_run)
    print(render_views(repository.snapshot(args.user)))
    return EXIT_OK


COMMANDS = {
    "submit": cmd_submit,
    "watch": cmd_watch,
    "stats": cmd_stats,
}


# ============================================================================
# MAIN EXECUTION
# ============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    """
    Entry point: loads environment, configures logging, runs one command.

    Returns:
        Process exit code (0 ok, 1 failure, 2 invalid input).
    """
    load_dotenv()
    args = parse_arguments(argv)
    setup_logger("mood_journal", level=logging.DEBUG if args.verbose else logging.INFO)

    if args.dry_run:
        logger.info("--- DRY RUN MODE ACTIVATED ---")

    try:
        return COMMANDS[args.command](args)
    except ValidationError as e:
        logger.error(f"Invalid input: {e}")
        return EXIT_INVALID_INPUT
    except JournalError as e:
        logger.error(f"{args.command} failed: {e}")
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
