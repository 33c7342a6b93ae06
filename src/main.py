"""Main entry point with CLI."""
import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config import config, Config
from src.logging_conf import setup_logging
from src.parse.models import AuthenticatedUser, SearchRequest

import logging

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Coupon search service")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=config.API_HOST, help=f"Bind address (default: {config.API_HOST})")
    serve.add_argument("--port", type=int, default=config.API_PORT, help=f"Port (default: {config.API_PORT})")

    search = subparsers.add_parser("search", help="Run one coupon search and print the result")
    search.add_argument("--domain", required=True, help="Website domain, e.g. acme.com")
    search.add_argument("--name", default=None, help="Website display name")
    search.add_argument("--user", required=True, help="User id charged for the search")
    search.add_argument(
        "--from-cache",
        action="store_true",
        help="Only read cached coupons, never call the provider",
    )
    search.add_argument(
        "--provider",
        choices=["mistral", "perplexity"],
        default=None,
        help=f"Search provider (default: {config.SEARCH_PROVIDER})",
    )

    parser.add_argument("--log-level", default=None, help=f"Log level (default: {config.LOG_LEVEL})")
    return parser.parse_args(argv)


async def run_search(args: argparse.Namespace) -> dict:
    """Run one search outside the HTTP layer (side effects run inline)."""
    from src.api.dependencies import build_services

    services = build_services()
    try:
        result = await services.orchestrator.search(
            AuthenticatedUser(id=args.user),
            SearchRequest(
                website_domain=args.domain,
                website_name=args.name,
                from_cache=args.from_cache,
            ),
        )
        return result.model_dump(mode="json")
    finally:
        await services.aclose()


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    if args.command == "search" and args.provider:
        Config.SEARCH_PROVIDER = args.provider

    try:
        Config.validate()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    if args.command == "serve":
        import uvicorn
        logger.info(f"Starting API on {args.host}:{args.port} (provider={config.SEARCH_PROVIDER})")
        uvicorn.run("src.api.main:app", host=args.host, port=args.port)
        return

    try:
        result = asyncio.run(run_search(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Search failed: {e}")
        sys.exit(1)
    print(json.dumps(result, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
