import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

import orjson

from .adapters import SiteAdapter, get_adapter, pick_adapter
from .config import Settings, get_settings
from .enrichment import EnrichmentPool, enrich_tile, fetch_details
from .export import export_products
from .fetcher import open_renderer
from .robots import allowed
from .schema import CrawlJob, JobSummary
from .traversal import traverse
from .upsert_product import (
    CatalogStore,
    InMemoryCatalogStore,
    ReconcileTally,
    Reconciler,
    SupabaseCatalogStore,
)
from .validator import validate_tiles

logger = logging.getLogger(__name__)

DEFAULT_JOBS = [
    CrawlJob(url="https://www.jarir.com/kw-en/2-in-1-laptops.html", category="laptops"),
    CrawlJob(url="https://best.com.kw/en/c/tablets-nn", category="tablets"),
    CrawlJob(url="https://best.com.kw/en/c/mobiles-nn", category="mobilephones"),
    CrawlJob(url="https://best.com.kw/en/c/wired-nn", category="headphones"),
]


def load_jobs(path: str) -> List[CrawlJob]:
    """Jobs file: a JSON list of {url, category[, store]} or {"jobs": [...]}."""
    data = orjson.loads(Path(path).read_bytes())
    if isinstance(data, dict):
        data = data.get("jobs", [])
    return [CrawlJob.model_validate(item) for item in data]


def resolve_adapter(job: CrawlJob) -> SiteAdapter:
    if job.store:
        return get_adapter(job.store)
    adapter = pick_adapter(job.url)
    if adapter is None:
        raise LookupError(f"no adapter for {job.url}")
    return adapter


async def run_job(renderer, job: CrawlJob, reconciler: Reconciler, export_dir: Optional[str] = None) -> JobSummary:
    """Traverse, validate, enrich and reconcile one category listing."""
    adapter = resolve_adapter(job)
    logger.info("--- %s / %s: %s", adapter.store_name, job.category, job.url)

    tiles = await traverse(renderer, adapter, job.url, job.category)
    valid, skipped = validate_tiles(tiles)
    summary = JobSummary(category=job.category).merge(total_found=len(tiles), skipped=skipped)
    logger.info("[%s] checking stock for %d valid products", adapter.store_name, len(valid))

    pool = EnrichmentPool(
        adapter.batch_size,
        lambda tile: enrich_tile(renderer, adapter, tile),
        label=f"[{adapter.store_name}]",
    )
    tally = ReconcileTally()
    async for settled in pool.batches(valid):
        tally = tally + await asyncio.to_thread(reconciler.reconcile, settled)
        if export_dir:
            export_batch(export_dir, adapter.store_name, job.category, settled)

    summary = summary.merge(created=tally.created, updated=tally.updated, errors=tally.errors)
    log_summary(summary)
    return summary


def export_batch(export_dir: str, store_name: str, category: str, settled) -> None:
    # The catalog already holds this batch; a broken export must not change the job's outcome.
    try:
        export_products(export_dir, store_name, category, [s.value for s in settled if s.ok])
    except OSError:
        logger.exception("[%s] JSONL export to %s failed", store_name, export_dir)


def log_summary(summary: JobSummary):
    logger.info(
        "=== JOB SUMMARY: %s === found=%d created=%d updated=%d skipped=%d errors=%d",
        summary.category.upper(),
        summary.total_found,
        summary.created,
        summary.updated,
        summary.skipped,
        summary.errors,
    )


async def run_jobs(
    jobs: Sequence[CrawlJob],
    store: CatalogStore,
    settings: Settings,
    renderer_factory=open_renderer,
) -> List[JobSummary]:
    """Run jobs one after another on a single browser session.

    A failing job is logged and reported with one error; the rest still run.
    Only a browser that cannot be launched aborts the run.
    """
    reconciler = Reconciler(store)
    summaries: List[JobSummary] = []
    logger.info("Starting scrape run (%d jobs)", len(jobs))

    async with renderer_factory(headless=settings.headless, user_agent=settings.user_agent) as renderer:
        for job in jobs:
            if settings.respect_robots and not allowed(job.url):
                logger.warning("[SKIP robots] %s", job.url)
                summaries.append(JobSummary(category=job.category))
                continue
            try:
                summary = await run_job(renderer, job, reconciler, settings.export_dir)
            except Exception:
                logger.exception("Job %s (%s) failed", job.category, job.url)
                summary = JobSummary(category=job.category, errors=1)
            summaries.append(summary)

    logger.info("All scraping jobs completed.")
    return summaries


async def check_product(url: str, store: Optional[str], settings: Settings, renderer_factory=open_renderer):
    adapter = resolve_adapter(CrawlJob(url=url, category="", store=store))
    async with renderer_factory(headless=settings.headless, user_agent=settings.user_agent) as renderer:
        return await fetch_details(renderer, adapter, url)


def _print_summaries(summaries: Sequence[JobSummary]):
    print(f"{'category':<20}{'found':>7}{'created':>9}{'updated':>9}{'skipped':>9}{'errors':>8}")
    for s in summaries:
        print(f"{s.category:<20}{s.total_found:>7}{s.created:>9}{s.updated:>9}{s.skipped:>9}{s.errors:>8}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Crawl store catalogs and sync them into the product catalog")
    sub = parser.add_subparsers(dest="cmd", required=True)

    run = sub.add_parser("run", help="Run category crawl jobs")
    run.add_argument("--jobs", help="JSON file with [{url, category, store?}, ...]; defaults to the built-in list")
    run.add_argument("--dry-run", action="store_true", help="Reconcile into memory instead of Supabase")
    run.add_argument("--respect-robots", action="store_true", help="Skip jobs disallowed by robots.txt")
    run.add_argument("--export-dir", help="Also append enriched products to JSONL files here")

    check = sub.add_parser("check", help="Fetch stock and description for one product page")
    check.add_argument("url")
    check.add_argument("--store", help="Adapter key (best, jarir, xcite); inferred from the URL by default")

    cats = sub.add_parser("categories", help="Product counts per category for a store")
    cats.add_argument("store", help="Store name, matched case-insensitively")

    purge = sub.add_parser("purge", help="Delete every catalog row of a store")
    purge.add_argument("store", help="Store name, matched case-insensitively")
    purge.add_argument("--yes", action="store_true", help="Confirm the deletion")
    return parser


def cli(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.cmd == "run":
        overrides = {}
        if args.respect_robots:
            overrides["respect_robots"] = True
        if args.export_dir:
            overrides["export_dir"] = args.export_dir
        settings = settings.model_copy(update=overrides)
        jobs = load_jobs(args.jobs) if args.jobs else DEFAULT_JOBS
        store = InMemoryCatalogStore() if args.dry_run else SupabaseCatalogStore(table=settings.catalog_table)
        try:
            summaries = asyncio.run(run_jobs(jobs, store, settings))
        except Exception:
            logger.exception("Scrape run could not start")
            return 1
        _print_summaries(summaries)
        return 0

    if args.cmd == "check":
        result = asyncio.run(check_product(args.url, args.store, settings))
        print(orjson.dumps(result.model_dump(mode="json"), option=orjson.OPT_INDENT_2).decode())
        return 0

    if args.cmd == "purge" and not args.yes:
        print(f"Refusing to delete {args.store!r} products without --yes.", file=sys.stderr)
        return 1

    store = SupabaseCatalogStore(table=settings.catalog_table)
    if args.cmd == "categories":
        counts = store.category_counts(args.store)
        if not counts:
            print(f"No categories found for {args.store!r}.")
            return 0
        print(f"{len(counts)} categories for {args.store}:")
        for category, n in counts:
            print(f"  {category or '(none)':<30}{n:>6}")
        return 0

    if args.cmd == "purge":
        deleted = store.delete_store(args.store)
        print(f"Deleted {deleted} {args.store} products.")
        return 0

    return 2


if __name__ == "__main__":
    #   python -m catalog_scrape.scrape run --dry-run
    #   python -m catalog_scrape.scrape check https://www.jarir.com/kw-en/...html
    raise SystemExit(cli())
