#!/usr/bin/env python3
"""Main entry point for the Mindclone News Curator.

Runs one curation pass locally, the same work the hourly scheduler triggers
over HTTP.

Usage:
    python main.py              # Run one curation pass
    python main.py preview      # Show the next batch without processing it
    python main.py --help       # Show help
"""

import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv

# Load environment variables before importing config
load_dotenv()

from mindclone_news.curator import CurationRunError, create_curator

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
    ],
)
logger = logging.getLogger(__name__)


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Mindclone News Curator - Personalised news delivered into the chat"
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="run",
        choices=["run", "preview"],
        help="Command to run (default: run one curation pass)",
    )
    parser.add_argument(
        "--batch-size",
        "-b",
        type=int,
        default=None,
        help="Users to process (default: BATCH_SIZE setting)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    curator = create_curator()

    if args.command == "preview":
        batch = curator.select_batch(args.batch_size)
        print(f"\nNext batch ({len(batch)} users):")
        for user_id in batch:
            print(f"  {user_id}")
        return

    try:
        summary = await curator.run_batch(args.batch_size)
    except CurationRunError as e:
        logger.error(f"Curation failed: {e}")
        sys.exit(1)

    print(f"\nRun status: {summary.status.value}")
    print(f"  Users processed: {summary.users_processed}")
    print(f"  Success / skipped / errors: "
          f"{summary.success_count} / {summary.skipped_count} / {summary.error_count}")
    print(f"  Articles sent: {summary.articles_sent}")
    for result in summary.results:
        detail = result.reason.value if result.reason else (result.error or "")
        print(f"  {result.user_id}: {result.status.value} {detail}")


if __name__ == "__main__":
    asyncio.run(main())
