# Command line entry point: assign gates for one day of CSV exports
from __future__ import annotations

import argparse
import logging
import sys

from agap_config import AdaptiveWindowPolicy, AssignmentConfig, FixedWindowPolicy
from agap_data import load_day
from agap_errors import AgapError, BackendError, InfeasibleWindowError
from agap_horizon import assign_day
from agap_output import window_report_frame, write_assignments

logger = logging.getLogger("agap")


def get_parser():
    parser = argparse.ArgumentParser(description="Rolling-horizon airport gate assignment")

    # data
    parser.add_argument("--flights", required=True, help="flight table CSV (TailNumber, IsDeparting, ...)")
    parser.add_argument("--walking", required=True, help="TSA_to_Gate / Gate_to_Bag distances CSV")
    parser.add_argument("--gate-to-gate", required=True, help="GxG gate-to-gate walking distance CSV")
    parser.add_argument("--connections", default=None, help="FxF transfer passenger matrix CSV")
    parser.add_argument("--tiers", default=None, help="FxF connection tier matrix CSV (1 = short layover)")
    parser.add_argument("--output", default="Optimized_Gate_Assignments.csv", help="assignment CSV to write")
    parser.add_argument("--report", default=None, help="optional per-window report CSV")

    # horizon
    parser.add_argument("--start", type=int, default=0, help="first flight (0-based, time-sorted)")
    parser.add_argument("--end", type=int, default=None, help="one past the last flight")

    # objective
    parser.add_argument("--no-departing", dest="departing", action="store_false", help="ignore departing pax")
    parser.add_argument("--no-arriving", dest="arriving", action="store_false", help="ignore arriving pax")
    parser.add_argument("--no-connecting", dest="connecting", action="store_false", help="ignore connecting pax")
    parser.add_argument("--buffer-time", type=int, default=0, help="minutes added to every gate exit")
    parser.add_argument("--same-gate-threshold", type=int, default=120,
                        help="max minutes between arrival exit and departure entry of one tail")
    parser.add_argument("--locked-connection-weight", type=float, default=3.0,
                        help="multiple of the connection weight for flights locked in earlier windows")

    # windows
    parser.add_argument("--policy", choices=["fixed", "adaptive"], default="fixed", help="window policy")
    parser.add_argument("--flights-per-save", type=int, default=30, help="fixed policy: flights locked per window")
    parser.add_argument("--lookahead", type=int, default=30, help="fixed policy: extra flights solved but not locked")
    parser.add_argument("--target-connections", type=int, default=8, help="adaptive policy: tier-1 pairs per window")
    parser.add_argument("--min-remainder", type=int, default=70, help="adaptive policy: solve the rest at once below this")

    # backend
    parser.add_argument("--time-limit", type=float, default=None, help="seconds per window")
    parser.add_argument("--mip-gap", type=float, default=None, help="relative MIP gap per window")
    parser.add_argument("--gurobi-output", action="store_true", help="show Gurobi solver output")
    parser.add_argument("--gurobi-log", default=None, help="Gurobi log file")
    parser.add_argument("--model-dir", default=None, help="write every window model (.lp) and IIS (.ilp) here")
    parser.add_argument("--on-infeasible", choices=["fail", "skip"], default="fail",
                        help="stop at the first infeasible window, or skip it and leave its flights unassigned")

    parser.add_argument("--log-level", default="INFO", help="logging level")
    return parser


def config_from_args(args):
    if args.policy == "adaptive":
        policy = AdaptiveWindowPolicy(target_connections=args.target_connections, min_remainder=args.min_remainder)
    else:
        policy = FixedWindowPolicy(flights_per_save=args.flights_per_save, lookahead=args.lookahead)
    return AssignmentConfig(
        departing=args.departing,
        arriving=args.arriving,
        connecting=args.connecting,
        buffer_time=args.buffer_time,
        same_gate_threshold=args.same_gate_threshold,
        locked_connection_weight=args.locked_connection_weight,
        window_policy=policy,
        time_limit=args.time_limit,
        mip_gap=args.mip_gap,
        output_flag=1 if args.gurobi_output else 0,
        log_file=args.gurobi_log,
        model_dir=args.model_dir,
        on_infeasible=args.on_infeasible,
    )


def main(argv=None):
    args = get_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = config_from_args(args)
        day = load_day(args.flights, args.walking, args.gate_to_gate, args.connections, args.tiers)
        result = assign_day(day, config, start=args.start, end=args.end)
    except InfeasibleWindowError as e:
        logger.error("%s", e)
        return 2
    except BackendError as e:
        logger.error("%s (%d flights were locked before the failure)", e, len(e.locks))
        return 3
    except AgapError as e:
        logger.error("%s", e)
        return 1

    write_assignments(args.output, day.frame, day.flights, result)
    if args.report:
        window_report_frame(result).to_csv(args.report, index=False)

    if not result.complete:
        logger.warning("%d flights have no gate (infeasible windows: %s)",
                       len(result.unassigned), ", ".join(str(w) for w in result.infeasible_windows))
        return 4
    return 0


if __name__ == "__main__":
    sys.exit(main())
