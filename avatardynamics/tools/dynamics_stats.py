"""
Print Avatar Dynamics performance stats for a scene snapshot.

Usage:
    python -m avatardynamics.tools.dynamics_stats avatar.json --breakdown
"""
import argparse
import json
import sys
from dataclasses import asdict

from avatardynamics.utils.constants import LOG_PREFIX
from avatardynamics.utils.data_types import InvalidReferenceError
from avatardynamics.utils.performance_stats import PerformanceStatsCalculator
from avatardynamics.utils.snapshot_io import SnapshotFormatError, load_snapshot


def format_breakdown(costs) -> str:
    lines = [f"{'Bone':<32} {'Transforms':>10} {'Colliders':>9} {'Checks':>8}"]
    for cost in costs:
        lines.append(
            f"{cost.name[:32]:<32} {cost.affected_transforms:>10} {cost.colliders:>9} {cost.collision_checks:>8}"
        )
    return "\n".join(lines)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Calculate Avatar Dynamics performance stats")
    parser.add_argument("snapshot", help="Scene snapshot (.json)")
    parser.add_argument("--root", "-r", default=None, help="Override the avatar root node id")
    parser.add_argument("--breakdown", "-b", action="store_true", help="Also list per-bone costs")
    parser.add_argument("--json", dest="as_json", action="store_true", help="Print stats as JSON")
    args = parser.parse_args(argv)

    try:
        snapshot = load_snapshot(args.snapshot)
        root = snapshot.root
        if args.root is not None:
            if args.root not in snapshot.graph.names:
                raise InvalidReferenceError(f"Root node '{args.root}' not found in {args.snapshot}")
            root = snapshot.graph.names.index(args.root)

        calculator = PerformanceStatsCalculator(snapshot.graph)
        stats = calculator.calculate(root, snapshot.bones, snapshot.colliders, snapshot.contacts)
        costs = calculator.bone_costs(root, snapshot.bones, snapshot.colliders) if args.breakdown else []
    except (OSError, json.JSONDecodeError, SnapshotFormatError, InvalidReferenceError) as e:
        print(f"{LOG_PREFIX} ERROR: {e}", file=sys.stderr)
        return 1

    if args.as_json:
        out = stats.as_dict()
        if args.breakdown:
            out["bones"] = [asdict(c) for c in costs]
        print(json.dumps(out, indent=2))
        return 0

    print(f"{LOG_PREFIX} {snapshot.name} (root: {snapshot.graph.name(root)})")
    print(stats.summary())
    if args.breakdown:
        print()
        print(format_breakdown(costs))
    return 0


if __name__ == "__main__":
    sys.exit(main())
