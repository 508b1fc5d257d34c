"""CLI entry point for the undervalued listings finder."""

import argparse
import asyncio
import json
import logging
import os
import sys

from dotenv import load_dotenv
from pydantic import ValidationError

from src.core.config import Settings
from src.core.schemas import AMENITY_FLAGS, SearchCriteria
from src.jobs.engine import build_engine, generate_job_id
from src.listings.streeteasy.params import build_endpoint, build_search_params
from src.pipeline.neighborhoods import NeighborhoodTable
from src.pipeline.relaxation import round_half_up
from src.pipeline.threshold_search import threshold_ladder

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Undervalued listings finder - cache-first search with fallbacks",
    )
    subparsers = parser.add_subparsers(dest="command")

    # --- serve subcommand (default) ---
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port (default: $PORT or 3000)",
    )

    # --- search subcommand ---
    search_parser = subparsers.add_parser("search", help="Run one search inline and print the result")
    search_parser.add_argument("--area", required=True, help="Neighborhood, e.g. 'park slope'")
    search_parser.add_argument("--category", choices=["rental", "sale"], default="rental")
    search_parser.add_argument("--bedrooms", type=int, default=None)
    search_parser.add_argument("--bathrooms", type=float, default=None)
    search_parser.add_argument("--min-price", type=int, default=None)
    search_parser.add_argument("--max-price", type=int, default=None)
    search_parser.add_argument("--threshold", type=int, default=None, help="Minimum %% below market")
    search_parser.add_argument("--max-results", type=int, default=1)
    search_parser.add_argument("--no-fee", action="store_true", help="Only no-fee rentals")
    search_parser.add_argument(
        "--amenity",
        action="append",
        choices=list(AMENITY_FLAGS),
        default=[],
        help="Required amenity (repeatable)",
    )
    search_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the search plan without calling the provider or the LLM",
    )

    # SUPPRESS keeps a top-level value when the subcommand does not repeat it.
    for sub in (serve_parser, search_parser):
        sub.add_argument(
            "--config",
            default=argparse.SUPPRESS,
            help="Path to settings YAML file (default: config/settings.yaml)",
        )
        sub.add_argument(
            "--verbose", "-v",
            action="store_true",
            default=argparse.SUPPRESS,
            help="Enable verbose (DEBUG) logging",
        )

    # --- top-level copies, accepted before the subcommand ---
    parser.add_argument("--config", default="config/settings.yaml", help=argparse.SUPPRESS)
    parser.add_argument("--verbose", "-v", action="store_true", help=argparse.SUPPRESS)

    args = parser.parse_args(argv)

    if args.command is None:
        args.command = "serve"
        args.host = "0.0.0.0"
        args.port = None

    return args


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def load_settings(path: str) -> Settings:
    """Settings from YAML, or defaults when the file does not exist."""
    if not os.path.exists(path):
        logger.info("No config at %s, using defaults", path)
        return Settings()
    return Settings.from_yaml(path)


def criteria_from_args(args: argparse.Namespace, settings: Settings) -> SearchCriteria:
    return SearchCriteria(
        area=args.area,
        category=args.category,
        bedrooms=args.bedrooms,
        bathrooms=args.bathrooms,
        min_price=args.min_price,
        max_price=args.max_price,
        no_fee=args.no_fee,
        amenities=frozenset(args.amenity),
        desired_count=min(args.max_results, settings.search.max_results_cap),
        threshold=args.threshold or settings.search.default_threshold,
    )


def dry_run(settings: Settings, criteria: SearchCriteria) -> None:
    """Print the search plan without touching the network."""
    tuning = settings.search
    neighborhoods = NeighborhoodTable.from_yaml(settings.neighborhoods_path)

    print(f"[DRY RUN] {criteria.category} search in '{criteria.area}' "
          f"for {criteria.desired_count} listing(s)")
    print(f"  Endpoint: {build_endpoint(criteria, settings.provider)}")
    print(f"  Params: {build_search_params(criteria, settings.provider)}")
    print(f"  Threshold ladder: {threshold_ladder(criteria.threshold, tuning.threshold_steps)}")

    print(f"[DRY RUN] Relaxation plan (threshold {tuning.relaxed_threshold}):")
    if criteria.max_price is not None:
        budgets = [round_half_up(criteria.max_price * m) for m in tuning.budget_multipliers]
        print(f"  progressive_budget_increase: {budgets}")
    if criteria.bedrooms is not None:
        print("  bedroom_flexibility: any bedrooms, budget x2")
    print(f"  similar_neighborhood: {neighborhoods.similar_to(criteria.area)}")
    print(f"  last_resort: {neighborhoods.last_resort} ({neighborhoods.last_resort_region})")


async def run_search(settings: Settings, criteria: SearchCriteria) -> int:
    """Run one job to completion and print its result. Returns an exit code."""
    engine = build_engine(settings)
    job = await engine.run(generate_job_id(), criteria)

    if job.status == "failed":
        print(f"Search failed: {job.error}", file=sys.stderr)
        return 1

    result = engine.store.get_result(job.job_id)
    print(job.message)
    if result is not None:
        print(json.dumps(result.model_dump(mode="json", by_alias=True), indent=2))
    return 0


def serve(settings: Settings, host: str, port: int | None) -> None:
    import uvicorn

    from src.api.app import create_app

    port = port or int(os.environ.get("PORT", "3000"))
    uvicorn.run(create_app(settings), host=host, port=port)


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = load_settings(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    if args.command == "search":
        try:
            criteria = criteria_from_args(args, settings)
        except ValidationError as e:
            print(f"Invalid search: {e}", file=sys.stderr)
            sys.exit(2)

        if args.dry_run:
            dry_run(settings, criteria)
        else:
            sys.exit(asyncio.run(run_search(settings, criteria)))
    else:
        serve(settings, args.host, args.port)


if __name__ == "__main__":
    main()
