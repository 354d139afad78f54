import argparse

from loguru import logger

from src.config import get_settings
from src.crawlers.base import FetchInProgressError
from src.db.database import get_sync_session, init_db_sync
from src.services.listings import list_listings, trigger_fetch_now

settings = get_settings()


def init_database():
    """初始化資料庫"""
    init_db_sync()


def run_fetch():
    """立即抓取一次 deal 列表"""
    with get_sync_session() as session:
        try:
            new_listings = trigger_fetch_now(session)
        except FetchInProgressError as e:
            logger.error(str(e))
            return
        logger.info(f"Inserted {len(new_listings)} new listings")
        for listing in new_listings:
            logger.info(f"  + {listing.title} ({listing.url})")


def show_listings(category: str = None, search: str = None, sort: str = "created", limit: int = 20):
    with get_sync_session() as session:
        listings = list_listings(session, category=category, search=search, sort=sort, limit=limit)
        for listing in listings:
            print(
                f"[{listing.category}] {listing.title} "
                f"(+{listing.votes}, {listing.views} views, {listing.comment_count} comments) "
                f"{listing.url}"
            )


def main():
    parser = argparse.ArgumentParser(description="Deal Watch CLI")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # init command
    subparsers.add_parser("init", help="Initialize database")

    # fetch command
    subparsers.add_parser("fetch", help="Fetch listings from the source now")

    # listings command
    listings_parser = subparsers.add_parser("listings", help="Show stored listings")
    listings_parser.add_argument("--category", "-c", help="Category label")
    listings_parser.add_argument("--search", "-s", help="Text to look for")
    listings_parser.add_argument(
        "--sort",
        default="created",
        choices=["created", "votes", "views", "comments", "last_activity"],
    )
    listings_parser.add_argument("--limit", "-n", type=int, default=20)

    # serve command
    subparsers.add_parser("serve", help="Start API server and scheduler")

    args = parser.parse_args()

    if args.command == "init":
        init_database()
    elif args.command == "fetch":
        init_database()
        run_fetch()
    elif args.command == "listings":
        show_listings(args.category, args.search, args.sort, args.limit)
    elif args.command == "serve":
        import uvicorn

        uvicorn.run(
            "src.main:app",
            host=settings.api_host,
            port=settings.api_port,
            reload=settings.debug,
        )
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
