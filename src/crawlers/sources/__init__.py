from src.crawlers.sources.redflagdeals import RedFlagDealsCrawler

__all__ = [
    "RedFlagDealsCrawler",
]
