"""CLI entrypoint."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from date_dice import config
from date_dice.catalog import categories_for_tier
from date_dice.http import HttpClient, RequestBudget, RequestMetrics
from date_dice.location import ManualLocationProvider
from date_dice.models import AuthorizationStatus, Coordinate
from date_dice.orchestrator import OrchestratorSnapshot, SearchOrchestrator
from date_dice.places_client import PlacesClient
from date_dice.providers import PlaceSearchProvider
from date_dice.randomizer import ActivityRandomizer


def _repo_root() -> Path:
    return Path(__file__).resolve().parent


def load_env(path: str = ".env", root_dir: Optional[Path] = None) -> None:
    """Optionally load a repo-root .env file without overriding real env vars."""
    root = Path(root_dir) if root_dir else _repo_root()
    env_path = (root / path).resolve()
    if not env_path.exists():
        return
    load_dotenv(dotenv_path=env_path, override=False)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Roll a random activity near you")
    parser.add_argument("--preflight", action="store_true", help="Run offline checks only")
    parser.add_argument("--lat", type=float, default=None, help="Current latitude")
    parser.add_argument("--lon", type=float, default=None, help="Current longitude")
    parser.add_argument(
        "--radius",
        type=int,
        choices=list(config.SEARCH_RADII_M),
        default=None,
        help="Search radius in meters (default: from config)",
    )
    parser.add_argument("--rolls", type=int, default=1, help="Number of rerolls (default: 1)")
    parser.add_argument(
        "--tier",
        choices=list(config.FEATURE_TIERS),
        default=None,
        help="Category catalog tier (default: from config)",
    )
    parser.add_argument(
        "--single-query",
        action="store_true",
        help="Issue only the category query (the text query when no category was rolled)",
    )
    parser.add_argument(
        "--deny",
        action="store_true",
        help="Simulate a denied location permission prompt",
    )
    parser.add_argument("--config", type=str, default=None, help="Path to roulette_config.json")
    parser.add_argument("--max-requests", type=int, default=None)
    return parser.parse_args(argv)


def run_preflight(api_key: Optional[str]) -> int:
    ok = True
    if api_key:
        print("API key: OK")
    else:
        print("API key: MISSING")
        ok = False

    terms = config.search_terms()
    categories = categories_for_tier()
    print(f"Search terms: {len(terms)} in {len(config.SEARCH_TERM_GROUPS)} groups")
    print(f"Categories ({config.FEATURE_TIER} tier): {len(categories)}")
    if len(terms) < 2:
        print("Search terms: FAIL (need at least 2 to avoid repeats)")
        ok = False
    try:
        config.validate_radius(config.DEFAULT_RADIUS_M)
        print(f"Default radius: {config.DEFAULT_RADIUS_M} m")
    except ValueError as exc:
        print(f"Default radius: FAIL ({exc})")
        ok = False
    print(f"Request cap: max_places={config.MAX_PLACES_REQUESTS_PER_SESSION}")

    print("Preflight: PASS" if ok else "Preflight: FAIL")
    return 0 if ok else 1


def render_snapshot(snap: OrchestratorSnapshot) -> List[str]:
    lines = [f"== {snap.title} ({snap.radius_m} m) [{snap.state.value}]"]
    if snap.label is not None and snap.label.category is not None:
        lines.append(f"   category: {snap.label.category.label}")
    if snap.show_empty_indicator:
        lines.append("   No places found nearby.")
    if snap.show_results_list:
        for idx, place in enumerate(snap.results, start=1):
            where = f"{place.coordinate.lat:.5f},{place.coordinate.lon:.5f}"
            address = f" - {place.address}" if place.address else ""
            lines.append(f"   {idx:>2}. {place.name or '(unnamed)'} @ {where}{address}")
    return lines


async def roll_session(
    provider: PlaceSearchProvider,
    location: ManualLocationProvider,
    randomizer: ActivityRandomizer,
    rolls: int,
    radius_m: Optional[int] = None,
    dual_query: Optional[bool] = None,
) -> List[OrchestratorSnapshot]:
    orchestrator = SearchOrchestrator(
        provider,
        location,
        randomizer,
        radius_m=radius_m,
        dual_query=dual_query,
    )
    orchestrator.start()
    snapshots: List[OrchestratorSnapshot] = []
    for _ in range(max(0, rolls)):
        if not await orchestrator.change_activity():
            break
        snapshots.append(orchestrator.snapshot())
    await orchestrator.wait_idle()
    if not snapshots:
        snapshots.append(orchestrator.snapshot())
    return snapshots


def main(argv: Optional[List[str]] = None) -> int:
    load_env()
    args = parse_args(argv)
    config.load_roulette_config(args.config)
    if args.tier:
        config.FEATURE_TIER = args.tier
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    api_key = (os.environ.get("GOOGLE_MAPS_API_KEY") or "").strip()
    if args.preflight:
        return run_preflight(api_key)

    if not api_key:
        print("Missing GOOGLE_MAPS_API_KEY in environment", file=sys.stderr)
        return 1
    if args.lat is None or args.lon is None:
        print("--lat and --lon are required", file=sys.stderr)
        return 1

    try:
        coordinate = Coordinate(args.lat, args.lon)
    except ValueError as exc:
        print(f"Invalid location: {exc}", file=sys.stderr)
        return 1

    metrics = RequestMetrics()
    max_requests = (
        args.max_requests if args.max_requests is not None else config.MAX_PLACES_REQUESTS_PER_SESSION
    )
    http_client = HttpClient(
        api_key,
        timeout=config.HTTP_TIMEOUT_SECONDS,
        retry_max=config.HTTP_RETRY_MAX,
        backoff_base=config.HTTP_BACKOFF_BASE,
        backoff_max=config.HTTP_BACKOFF_MAX,
        metrics=metrics,
    )
    places_client = PlacesClient(http_client, RequestBudget(max_requests))
    location = ManualLocationProvider(
        coordinate,
        AuthorizationStatus.NOT_DETERMINED,
        grant_on_prompt=not args.deny,
    )

    try:
        randomizer = ActivityRandomizer(config.search_terms(), categories_for_tier())
        snapshots = asyncio.run(
            roll_session(
                places_client,
                location,
                randomizer,
                rolls=args.rolls,
                radius_m=args.radius,
                dual_query=False if args.single_query else None,
            )
        )
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    for snap in snapshots:
        for line in render_snapshot(snap):
            print(line)
    print(
        "Requests: network={network}, retries={retries}, failed={failed}".format(
            network=metrics.network_requests,
            retries=metrics.retries,
            failed=metrics.failed_requests,
        )
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
