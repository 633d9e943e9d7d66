"""Reading-room scraper: crawl a paginated document collection and ingest it."""

__version__ = "0.1.0"
