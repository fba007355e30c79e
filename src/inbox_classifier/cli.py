"""Command-line interface (CLI) entrypoint.

Objective:
    Provide a human-friendly CLI wrapper around
    :class:`inbox_classifier.orchestrator.PipelineOrchestrator`.

Responsibilities:
    - Parse arguments (provider, limit, input file, deadline, verbosity).
    - Configure logging (including suppressing noisy HTTP request logs).
    - Resolve the API key from the local store or the environment.
    - Invoke the orchestrator and print results grouped by category.
    - Persist the classified batch unless ``--no-save`` is given.
    - Manage the local store: save or remove an API key, show the last saved
      batch and clear saved results.

High-level call tree:
    - :func:`main`
        - :func:`setup_logging`
            - installs :class:`_HttpxRequestInfoToDebugFilter`
        - instantiate :class:`PipelineOrchestrator`
        - :meth:`PipelineOrchestrator.run`
        - :func:`print_results`
        - :meth:`ResultStore.save_classified`
        - :func:`run_store_command` (store options, no classification)
            - :func:`show_last_results`

Operational notes:
    - Gmail is read with ``GMAIL_ACCESS_TOKEN``. Obtaining that token is out
      of scope; ``--input`` reads raw Gmail message resources from a JSON file
      instead.
"""

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from .config import AIProvider, get_settings
from .models import PipelineResult
from .orchestrator import PipelineOrchestrator
from .sanitizer import truncate
from .storage import JsonFileStore, ResultStore

# Placeholder token for file-backed runs; the file mailbox ignores it.
LOCAL_FILE_TOKEN = "local-file"


class _HttpxRequestInfoToDebugFilter(logging.Filter):
    """Filter to suppress noisy httpx "HTTP Request:" INFO logs.

    The OpenAI and Groq SDKs log each HTTP request at INFO level through
    httpx. This filter hides those messages unless the root logger is in
    DEBUG mode.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Determine whether a log record should be emitted.

        Args:
            record: Log record emitted by the logging framework.

        Returns:
            bool: True to allow emission, False to suppress.
        """
        msg = record.getMessage()
        if record.name.startswith("httpx") and msg.startswith("HTTP Request:"):
            return logging.getLogger().isEnabledFor(logging.DEBUG)
        return True


class FileMailbox:
    """Mailbox reading raw Gmail message resources from a JSON file.

    The file holds either a list of message resources or an object with a
    ``messages`` list.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def fetch_recent(self, access_token: str, limit: int) -> list[dict[str, Any]]:
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if isinstance(data, dict):
            data = data.get("messages") or []
        if not isinstance(data, list):
            raise ValueError(f"{self.path} does not contain a list of messages")
        return [item for item in data if isinstance(item, dict)][:limit]


def setup_logging(level: str = "INFO") -> None:
    """
    Configure logging for the application.

    This sets the root logger level and installs the
    :class:`_HttpxRequestInfoToDebugFilter` on all root handlers.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    root_logger = logging.getLogger()
    downgrade_filter = _HttpxRequestInfoToDebugFilter()
    for handler in root_logger.handlers:
        handler.addFilter(downgrade_filter)


def print_results(result: PipelineResult, verbose: bool = False) -> None:
    """
    Print classification results to console.

    Output format:
        - Group messages by category, in taxonomy order.
        - Display short sent date and sender.
        - Optionally print message previews when ``verbose=True``.

    Args:
        result: Pipeline result.
        verbose: If True, print detailed information.
    """
    if not result.success:
        print(f"\n❌ Error ({result.status_code}): {result.error}\n")
        return

    if not result.classified:
        print("\nNo emails to classify.")
        return

    print(f"\n{'='*60}")
    print(f"CLASSIFICATION RESULTS: {len(result.classified)} emails")
    print(f"{'='*60}\n")

    for category, items in result.grouped().items():
        if not items:
            continue

        print(f"\n📁 {category.value} ({len(items)} emails)")
        print("-" * 40)

        for item in items:
            short_date = item.sent_at.strftime("%m-%d")
            subject = truncate(item.subject, 50)
            print(f"  [{short_date}] {item.sender} {subject}")

            if verbose and item.preview:
                print(f"      {truncate(item.preview, 100)}")

    print(f"\n{'='*60}")
    print(
        f"SUMMARY: {len(result.classified)} classified, "
        f"⚠️ {result.partial_failure_count} fell back to General after errors"
    )
    print(f"{'='*60}\n")


def _positive_int(value: str) -> int:
    """argparse type accepting integers greater than zero."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def show_last_results(results_store: ResultStore, verbose: bool = False) -> None:
    """
    Print the last saved batch and when it was fetched.

    Args:
        results_store: Local result store.
        verbose: If True, print message previews.
    """
    classified = results_store.get_classified()
    if classified is None:
        print("\nNo saved results.\n")
        return

    last_fetch = results_store.get_last_fetch_time()
    if last_fetch is not None:
        print(f"\nLast fetch: {last_fetch.strftime('%Y-%m-%d %H:%M %Z')}")

    print_results(PipelineResult(classified=classified), verbose=verbose)


def run_store_command(
    parsed_args: argparse.Namespace,
    results_store: ResultStore,
    provider: AIProvider,
) -> Optional[int]:
    """
    Handle the options that only touch the local store.

    Args:
        parsed_args: Parsed CLI arguments.
        results_store: Local result store.
        provider: Provider the key options apply to.

    Returns:
        Optional[int]: Exit code, or None when no store option was given.
    """
    if parsed_args.save_key is not None:
        if not parsed_args.save_key.strip():
            print(f"\n❌ Error: {provider.display_name} API key is empty\n")
            return 1
        if not results_store.save_api_key(provider, parsed_args.save_key.strip()):
            print(f"\n❌ Error: could not save {provider.display_name} API key\n")
            return 1
        print(f"\n✅ Saved {provider.display_name} API key\n")
        return 0

    if parsed_args.remove_key:
        results_store.remove_api_key(provider)
        print(f"\n✅ Removed stored {provider.display_name} API key\n")
        return 0

    if parsed_args.show_last:
        show_last_results(results_store, verbose=parsed_args.verbose)
        return 0

    if parsed_args.clear:
        # Keys and the provider preference survive a clear.
        cleared = results_store.remove_classified() and results_store.remove_last_fetch_time()
        if not cleared:
            print("\n❌ Error: could not clear saved results\n")
            return 1
        print("\n✅ Cleared saved results\n")
        return 0

    if parsed_args.clear_all:
        cleared = results_store.clear_all()
        if not cleared:
            print("\n❌ Error: could not clear stored data\n")
            return 1
        print("\n✅ Cleared all stored data, including API keys\n")
        return 0

    return None


def main(args: Optional[list[str]] = None) -> int:
    """
    Main CLI entry point.

    This function is structured to be testable: pass an explicit ``args`` list
    instead of relying on ``sys.argv``.

    It delegates all business logic to the orchestrator.

    Args:
        args: Command line arguments (uses sys.argv if None).

    Returns:
        int: Exit code (0 for success, 1 for error).
    """
    parser = argparse.ArgumentParser(
        description="Inbox Classifier - AI-powered email triage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                          Classify the 15 most recent Gmail messages
  %(prog)s --provider gemini        Classify with Gemini
  %(prog)s --input inbox.json       Classify messages from a JSON file
  %(prog)s --limit 5 --no-save      Classify 5 messages without saving
  %(prog)s -p groq --save-key KEY   Store a Groq API key for later runs
  %(prog)s --show-last              Print the last saved results
        """,
    )

    parser.add_argument(
        "--provider",
        "-p",
        type=str,
        default=None,
        choices=[p.value for p in AIProvider],
        help="LLM provider (defaults to the saved or configured provider)",
    )

    parser.add_argument(
        "--limit",
        "-l",
        type=_positive_int,
        default=None,
        help="Maximum number of emails to classify",
    )

    parser.add_argument(
        "--input",
        "-i",
        type=Path,
        default=None,
        help="Read raw Gmail message resources from a JSON file",
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Deadline in seconds for the classification batch",
    )

    parser.add_argument(
        "--no-save",
        action="store_true",
        help="Do not save results to the local store",
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
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (defaults to LOG_LEVEL or INFO)",
    )

    store_group = parser.add_mutually_exclusive_group()
    store_group.add_argument(
        "--save-key",
        metavar="KEY",
        default=None,
        help="Save an API key for the selected provider and exit",
    )
    store_group.add_argument(
        "--remove-key",
        action="store_true",
        help="Remove the stored API key of the selected provider and exit",
    )
    store_group.add_argument(
        "--show-last",
        action="store_true",
        help="Print the last saved results and exit",
    )
    store_group.add_argument(
        "--clear",
        action="store_true",
        help="Remove saved results, keeping API keys, and exit",
    )
    store_group.add_argument(
        "--clear-all",
        action="store_true",
        help="Remove everything in the local store, API keys included, and exit",
    )

    parsed_args = parser.parse_args(args)
    settings = get_settings()

    log_level = "DEBUG" if parsed_args.verbose else (parsed_args.log_level or settings.log_level)
    setup_logging(log_level)

    logger = logging.getLogger(__name__)

    try:
        results_store = ResultStore(JsonFileStore(settings.store_path))

        provider = AIProvider(
            parsed_args.provider
            or results_store.get_provider()
            or settings.default_provider
        )

        exit_code = run_store_command(parsed_args, results_store, provider)
        if exit_code is not None:
            return exit_code

        print("\n🚀 Starting Inbox Classifier...\n")

        api_key = results_store.get_api_key(provider) or settings.api_key_for(provider)

        if parsed_args.input is not None:
            orchestrator = PipelineOrchestrator(
                settings=settings, mailbox=FileMailbox(parsed_args.input)
            )
            access_token = LOCAL_FILE_TOKEN
        else:
            orchestrator = PipelineOrchestrator(settings=settings)
            access_token = settings.gmail_access_token

        result = orchestrator.run(
            access_token,
            provider,
            api_key,
            limit=parsed_args.limit,
            timeout=parsed_args.timeout,
        )

        print_results(result, verbose=parsed_args.verbose)

        if not result.success:
            return 1

        if not parsed_args.no_save:
            results_store.save_classified(result.classified)
            results_store.save_last_fetch_time(datetime.now(timezone.utc))
            results_store.save_provider(provider)

        return 0

    except Exception as e:
        logger.exception("Fatal error")
        print(f"\n❌ Error: {e}\n")
        return 1


if __name__ == "__main__":
    sys.exit(main())
