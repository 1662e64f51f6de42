#!/usr/bin/env python3
"""
SeuCantto Reviews - Main Entry Point

Builds the published review feed and serves the storefront's login and
review endpoints.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict

# Add src directory to Python path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from seucantto_reviews import ReviewBuilder
from seucantto_reviews.build import validate_sources
from seucantto_reviews.config import create_sample_config, load_config
from seucantto_reviews.exceptions import FatalValidationError
from seucantto_reviews.feed import FeedClient, feed_statistics, load_feed_file
from seucantto_reviews.web import create_app

logger = logging.getLogger(__name__)


def setup_logging(config: Dict[str, Any], verbose: bool = False):
    """Configure root logging from the ``logging`` config section."""
    log_config = config.get("logging", {})
    handlers = [logging.StreamHandler()]

    log_file = log_config.get("file")
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=logging.DEBUG if verbose else log_config.get("level", "INFO"),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def run_build(config: Dict[str, Any]) -> int:
    """Build the review feed. Returns the process exit code."""
    builder = ReviewBuilder.from_config(config)

    try:
        stats = builder.build()
    except FatalValidationError as e:
        logger.error(f"Build aborted, previous feed restored: {e}")
        return 1
    except OSError as e:
        logger.error(f"Build failed on file I/O, previous feed restored: {e}")
        return 1

    print("\n=== Review Build ===")
    print(f"Processed: {stats.processed}")
    print(f"Errors: {stats.errors}")
    print(f"Warnings: {stats.warnings}")
    print(f"Total published: {stats.total}")
    if stats.total:
        print(f"Average rating: {stats.average_rating}/5")
    return 0


def run_validate(config: Dict[str, Any]) -> int:
    """Validate review sources against the strict schema."""
    report = validate_sources(config["paths"]["reviews_dir"])

    for filename in report.valid:
        print(f"{filename}: valid")
    for filename, error in report.invalid.items():
        print(f"{filename}: {error}")

    if not report.ok:
        print(f"\n{len(report.invalid)} file(s) with errors")
        return 1

    print(f"\nAll {report.total} files are valid")
    return 0


def show_stats(config: Dict[str, Any], remote: bool = False):
    """Show statistics for the published feed."""
    if remote:
        feed = asyncio.run(FeedClient.from_config(config).fetch())
    else:
        feed = load_feed_file(config["paths"]["output_file"])

    stats = feed_statistics(feed)

    print("\n=== SeuCantto Review Statistics ===")
    print(f"Total Reviews: {stats['total_reviews']}")
    print(f"Average Rating: {stats['average_rating']}")
    print(f"Verified Share: {stats['verified_share']:.0%}")

    print("\nBy Rating:")
    for rating, count in sorted(stats["by_rating"].items()):
        print(f"  {rating} stars: {count}")

    if stats["by_product"]:
        print("\nBy Product:")
        for product_id, product in stats["by_product"].items():
            print(f"  {product_id}: {product['count']} reviews, {product['average_rating']} avg")


def run_server(config: Dict[str, Any], host: str = "0.0.0.0", port: int = 5000):
    """Run the storefront API."""
    logger.info("Starting SeuCantto storefront API")

    app = create_app(config)
    app.run(host=host, port=port, debug=config.get("flask", {}).get("DEBUG", False))


def main():
    """Main CLI interface."""
    parser = argparse.ArgumentParser(
        description="SeuCantto Reviews",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Build public/reviews.json from reviews/*.md
  python3 main.py build

  # Check review front-matter before merging
  python3 main.py validate

  # Start the login and review API
  python3 main.py serve --port 5000

  # Show feed statistics
  python3 main.py stats

  # Create sample configuration
  python3 main.py init-config
        """,
    )

    parser.add_argument(
        "--config",
        default="config/config.json",
        help="Path to configuration file (default: config/config.json)",
    )

    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("build", help="Build the published review feed")
    subparsers.add_parser("validate", help="Validate review source files")

    serve_parser = subparsers.add_parser("serve", help="Start the storefront API")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=5000, help="Port to bind to")

    stats_parser = subparsers.add_parser("stats", help="Show feed statistics")
    stats_parser.add_argument(
        "--remote", action="store_true", help="Fetch the feed from the configured URL"
    )

    subparsers.add_parser("init-config", help="Create sample configuration file")

    args = parser.parse_args()

    config = load_config(args.config)
    setup_logging(config, args.verbose)

    try:
        if args.command == "build":
            sys.exit(run_build(config))

        elif args.command == "validate":
            sys.exit(run_validate(config))

        elif args.command == "serve":
            run_server(config, args.host, args.port)

        elif args.command == "stats":
            show_stats(config, remote=args.remote)

        elif args.command == "init-config":
            config_file = create_sample_config(args.config)
            print(f"Sample configuration created at {config_file}")
            print(json.dumps(load_config(str(config_file))["paths"], indent=2))

        else:
            parser.print_help()

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
