"""
Command line admin client.

Usage:
    charmshop-admin status                   # analytics status (cached)
    charmshop-admin refresh                  # recompute all analytics
    charmshop-admin refresh --metric net_revenue
    charmshop-admin widgets [--fresh]        # dashboard widgets
    charmshop-admin widgets --refresh        # force server-side recompute
    charmshop-admin report --period "This Year"
    charmshop-admin cache-status ANALYTICS_DATA
    charmshop-admin invalidate order         # apply the invalidation fan-out
    charmshop-admin clear [KEY]

Add --hard-reload to drop the persistent cache before running a command.
"""
import argparse
import asyncio
import json
import sys
from typing import Any, List, Optional

import structlog

from charmshop.client.api import AdminApiClient, AdminApiError
from charmshop.client.cache import CacheKey, CacheService, ChangeType, NavigationType
from charmshop.client.storage import FileStorage
from charmshop.config import settings
from charmshop.middleware.logging import setup_logging

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="charmshop-admin", description="Charmshop admin analytics client")
    parser.add_argument("--base-url", default=None, help="Admin API base URL")
    parser.add_argument("--token", default=None, help="Bearer token (defaults to API_TOKEN)")
    parser.add_argument("--cache-dir", default=None, help="Persistent cache directory")
    parser.add_argument(
        "--hard-reload",
        action="store_true",
        help="Treat this run as a hard reload and drop persisted cache entries first",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Analytics refresh status")

    refresh = sub.add_parser("refresh", help="Recompute analytics on the server")
    refresh.add_argument("--metric", default=None, help="Refresh a single metric type")

    widgets = sub.add_parser("widgets", help="Dashboard widgets")
    widgets.add_argument("--fresh", action="store_true", help="Skip the client cache")
    widgets.add_argument("--refresh", action="store_true", help="Recompute widgets on the server")

    report = sub.add_parser("report", help="Period analytics report")
    report.add_argument("--period", default="This Month")

    cache_status = sub.add_parser("cache-status", help="Show a cache entry's age and source")
    cache_status.add_argument("key", choices=[key.value for key in CacheKey])

    invalidate = sub.add_parser("invalidate", help="Invalidate cached reads for a change type")
    invalidate.add_argument("change_type", choices=[change.value for change in ChangeType])

    clear = sub.add_parser("clear", help="Clear one cache key or everything")
    clear.add_argument("key", nargs="?", choices=[key.value for key in CacheKey])

    return parser


def build_cache(args: argparse.Namespace) -> CacheService:
    storage = FileStorage(args.cache_dir or settings.client_cache_dir, quota_bytes=settings.client_cache_quota_bytes)
    navigation = NavigationType.RELOAD if args.hard_reload else NavigationType.NAVIGATE
    return CacheService(storage=storage, navigation=lambda: navigation)


def _print(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str, ensure_ascii=False))


async def run(args: argparse.Namespace, cache: CacheService, client: Optional[AdminApiClient] = None) -> int:
    """Execute one command. Returns the process exit code."""
    cache.clear_on_hard_reload()

    if args.command == "cache-status":
        _print(cache.get_cache_status(args.key))
        return 0
    if args.command == "invalidate":
        _print({"cleared": cache.invalidate_on_data_change(args.change_type)})
        return 0
    if args.command == "clear":
        cache.clear(args.key)
        _print({"cleared": args.key or "all"})
        return 0

    owns_client = client is None
    if client is None:
        client = AdminApiClient(cache=cache, base_url=args.base_url, token=args.token)

    try:
        if args.command == "status":
            _print(await client.get_analytics_status())
        elif args.command == "refresh":
            result = await client.refresh_analytics(args.metric)
            _print(result)
            if not result.get("success", False):
                return 2
        elif args.command == "widgets":
            if args.refresh:
                _print(await client.refresh_dashboard_widgets())
            else:
                _print(await client.get_dashboard_widgets(use_cache=not args.fresh))
        elif args.command == "report":
            _print(await client.get_period_analytics(args.period))
    except AdminApiError as e:
        logger.error("admin_command_failed", command=args.command, status_code=e.status_code, error=e.message)
        return 1
    finally:
        if owns_client:
            await client.aclose()

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    setup_logging()
    args = build_parser().parse_args(argv)
    return asyncio.run(run(args, build_cache(args)))


if __name__ == "__main__":
    sys.exit(main())
