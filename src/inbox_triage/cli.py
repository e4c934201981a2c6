"""Command-line interface (CLI) entrypoint.

Objective:
    Provide a human-friendly CLI wrapper around
    :class:`src.inbox_triage.inbox.InboxSession`.

Responsibilities:
    - Parse arguments (user id, batch size, category filter, verbosity).
    - Configure logging (including quieting urllib3 connection logs).
    - Load and classify the inbox, then print a readable summary.

High-level call tree:
    - :func:`main`
        - :func:`setup_logging`
        - instantiate :class:`InboxSession`
        - :meth:`InboxSession.load_inbox` (with :func:`print_progress`)
        - :func:`print_results`

Operational notes:
    - This module supports being run both as a package module
      (``python -m src.inbox_triage.cli``) and as a script
      (``python src/inbox_triage/cli.py``). The import fallback handles
      the script case.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

try:
    from .config import category_metadata, get_settings, normalize_category
    from .inbox import InboxSession
    from .models import PipelineRun
except ImportError:  # pragma: no cover
    src_root = Path(__file__).resolve().parents[1]
    if str(src_root) not in sys.path:
        sys.path.insert(0, str(src_root))

    from inbox_triage.config import category_metadata, get_settings, normalize_category
    from inbox_triage.inbox import InboxSession
    from inbox_triage.models import PipelineRun


def setup_logging(level: str = "INFO") -> None:
    """
    Configure logging for the application.

    urllib3 logs one line per connection; those are kept only in DEBUG mode.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    numeric_level = getattr(logging, level.upper())
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    if numeric_level > logging.DEBUG:
        logging.getLogger("urllib3").setLevel(logging.WARNING)


def print_progress(run: PipelineRun) -> None:
    """Print one progress line per classification batch."""
    print(f"  Classified {run.completed}/{run.total}")


def print_results(session: InboxSession, verbose: bool = False) -> None:
    """
    Print the classified inbox to the console.

    Output format:
        - Messages grouped by category, biggest category first.
        - Unclassified messages listed last.
        - Optionally the snippet of each message when ``verbose=True``.

    Args:
        session: Inbox session after :meth:`InboxSession.load_inbox`.
        verbose: If True, print detailed information.
    """
    messages = session.filtered_messages()
    if not messages:
        print("\nNo emails found.")
        return

    print(f"\n{'='*60}")
    print(f"INBOX: {len(messages)} emails")
    print(f"{'='*60}")

    summary = session.category_summary()
    classified = [m for m in messages if session.category_of(m.id) is not None]

    for entry in summary:
        items = [m for m in classified if normalize_category(session.category_of(m.id)) == entry.category]
        if not items:
            continue

        meta = category_metadata(entry.category)
        print(f"\n[{meta.icon}] {meta.label} ({len(items)} emails)")
        print("-" * 40)
        for item in items:
            subject = item.subject[:50] + "..." if len(item.subject) > 50 else item.subject
            print(f"  {item.sender} {subject}")
            if verbose and item.snippet:
                print(f"      {item.snippet[:80]}")

    unclassified = [m for m in messages if session.category_of(m.id) is None]
    if unclassified:
        print(f"\n[ ] Unclassified ({len(unclassified)} emails)")
        print("-" * 40)
        for item in unclassified:
            print(f"  {item.sender} {item.subject[:50]}")

    print(f"\n{'='*60}")
    counts = ", ".join(f"{c.category.value}: {c.count}" for c in summary) or "none"
    print(f"CATEGORIES: {counts}")
    print(f"{'='*60}\n")


async def _run(session: InboxSession, category: Optional[str]) -> None:
    await session.load_inbox()
    if category and not session.redirect and not session.error:
        session.category_filter.select_category(category, session.messages, session.pipeline.index)


def main(args: Optional[list[str]] = None) -> int:
    """
    Main CLI entry point.

    This function is structured to be testable: pass an explicit ``args`` list
    instead of relying on ``sys.argv``.

    Args:
        args: Command line arguments (uses sys.argv if None).

    Returns:
        int: Exit code (0 for success, 1 for error).
    """
    parser = argparse.ArgumentParser(
        description="Inbox Triage - classify your inbox by business category",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --user-id 1234             Classify the inbox of user 1234
  %(prog)s --batch-size 10            Classify 10 emails at a time
  %(prog)s --category Invoice         Only show invoices
        """,
    )

    parser.add_argument(
        "--user-id",
        "-u",
        type=str,
        default=None,
        help="Backend user id (overrides the stored session)",
    )

    parser.add_argument(
        "--batch-size",
        "-b",
        type=int,
        default=None,
        help="Emails classified concurrently per batch",
    )

    parser.add_argument(
        "--category",
        "-c",
        type=str,
        default=None,
        help="Only show emails in this category",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )

    parsed_args = parser.parse_args(args)

    # Setup logging
    log_level = "DEBUG" if parsed_args.verbose else parsed_args.log_level
    setup_logging(log_level)

    logger = logging.getLogger(__name__)

    try:
        settings = get_settings()
        if parsed_args.batch_size:
            settings.classification_batch_size = parsed_args.batch_size

        session = InboxSession(settings=settings, on_progress=print_progress)
        if parsed_args.user_id:
            session.login_callback(parsed_args.user_id)

        print("\nLoading inbox...\n")
        asyncio.run(_run(session, parsed_args.category))

        if session.redirect:
            print(f"\nNot signed in (redirect: {session.redirect})\n")
            return 1
        if session.error:
            print(f"\nError: {session.error}\n")
            return 1

        print_results(session, verbose=parsed_args.verbose)
        return 0

    except Exception as e:
        logger.exception("Fatal error")
        print(f"\nError: {e}\n")
        return 1


if __name__ == "__main__":
    sys.exit(main())
