"""Category crawling, stock enrichment and catalog reconciliation for store sites."""

from .schema import CatalogRecord, CrawlJob, EnrichedProduct, JobSummary, RawTile, StockStatus
from .scrape import run_job, run_jobs

__all__ = [
    "CatalogRecord",
    "CrawlJob",
    "EnrichedProduct",
    "JobSummary",
    "RawTile",
    "StockStatus",
    "run_job",
    "run_jobs",
]
