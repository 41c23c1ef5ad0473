#!/usr/bin/env python3
"""Replay a recorded GPS trace through the claiming engine.

Useful for tuning thresholds against real walks: every fix is fed to a claim
session exactly as the device would, and the outcome of each fix plus the
final claim result is printed.
"""

import argparse
import asyncio
import logging
import sys
from collections import Counter
from dataclasses import dataclass, field

from landclaim.config import ClaimConfig
from landclaim.engine import ClaimResult, ClaimSession, IngestResult, TrackerState
from landclaim.errors import StorageError
from landclaim.models import Fix
from landclaim.stores import InMemoryTerritoryStore, JsonFileTerritoryStore, TerritoryStore
from landclaim.utils.serialization import load_fix_trace


@dataclass
class ReplayReport:
    """What happened to one trace."""

    results: list[IngestResult] = field(default_factory=list)
    final_state: TrackerState = TrackerState.IDLE
    point_count: int = 0
    area_square_meters: float = 0.0
    distance_m: float = 0.0
    claim: ClaimResult | None = None

    @property
    def dispositions(self) -> Counter:
        return Counter(r.disposition.value for r in self.results)


async def replay(
    fixes: list[Fix],
    store: TerritoryStore,
    owner_id: str,
    config: ClaimConfig | None = None,
    commit: bool = True,
) -> ReplayReport:
    """Feed fixes to a fresh claim session and optionally commit the loop.

    Args:
        fixes: Recorded fixes in device order
        store: Territory store to validate against (and commit into)
        owner_id: Player the claim is made for
        config: Engine thresholds (default: ClaimConfig())
        commit: Commit the loop if it closes

    Returns:
        ReplayReport with per-fix outcomes and the claim result
    """
    session = ClaimSession(owner_id, store, config)
    await session.start()

    async def source():
        for fix in fixes:
            yield fix

    report = ReplayReport(results=await session.consume(source()))
    status = session.status()
    report.point_count = status.path_point_count
    report.area_square_meters = status.live_area_estimate
    report.distance_m = status.total_distance_m

    if commit and session.tracking_state == TrackerState.CLOSED:
        report.claim = await session.commit()

    report.final_state = session.tracking_state
    return report


def _print_report(report: ReplayReport) -> None:
    print(f"\nFixes consumed: {len(report.results)}")
    for disposition, count in sorted(report.dispositions.items()):
        print(f"  {disposition:<20} {count}")
    print(f"Final state:    {report.final_state.value}")
    print(f"Path points:    {report.point_count}")
    print(f"Enclosed area:  {report.area_square_meters:.0f} m²")
    print(f"Distance:       {report.distance_m:.0f} m")

    if report.claim is None:
        return
    if report.claim.accepted:
        territory = report.claim.territory
        print(f"Claimed:        territory {territory.id} ({territory.area_square_meters:.0f} m²)")
    else:
        print(f"Rejected:       {report.claim.reason.value} - {report.claim.message}")
        for overlap in report.claim.overlaps:
            print(
                f"  overlaps {overlap.territory_id} (owner {overlap.owner_id}): "
                f"{overlap.area_square_meters:.1f} m²"
            )


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Replay a recorded GPS trace through the claiming engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s walk.json                              # Replay and validate against an empty map
  %(prog)s walk.json --territories land.json      # Validate against (and save into) a territory file
  %(prog)s walk.json --no-commit                  # Only check tracking and closure
  LANDCLAIM_CLOSURE_RADIUS_M=20 %(prog)s walk.json  # Try a different threshold
        """,
    )
    parser.add_argument("trace", metavar="TRACE", help="JSON list of recorded fixes")
    parser.add_argument(
        "--territories",
        type=str,
        metavar="FILE",
        help="Territory JSON file to validate against; a successful claim is saved into it",
    )
    parser.add_argument(
        "--owner",
        type=str,
        default="replay",
        help="Owner ID for the claim (default: replay)",
    )
    parser.add_argument(
        "--no-commit",
        action="store_true",
        help="Stop after tracking; do not validate or store the loop",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    log_level = logging.DEBUG if args.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="[%(levelname)s] %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    try:
        config = ClaimConfig.from_env()
        fixes = load_fix_trace(args.trace)
    except FileNotFoundError:
        print(f"Error: File {args.trace} not found.")
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    try:
        store = (
            JsonFileTerritoryStore(args.territories)
            if args.territories
            else InMemoryTerritoryStore()
        )
    except StorageError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"Replaying {len(fixes)} fixes from {args.trace}...")
    report = asyncio.run(replay(fixes, store, args.owner, config, commit=not args.no_commit))
    _print_report(report)

    if report.claim is not None and not report.claim.accepted:
        sys.exit(2)


if __name__ == "__main__":
    main()
