"""
Generate Mock Medical Bills

Runs the bill simulation pipeline for one or more catalog scenarios, audits
each generated bill and saves the results as JSON.

Usage:
    python generate_mock_bills.py                         # every scenario once
    python generate_mock_bills.py -s duplicate-er-labs -n 3 --seed 42
    python generate_mock_bills.py --offline --list

Author: Shubham Singh
Date: January 2026
"""

import argparse
import sys
from typing import Dict, List, Optional

from loguru import logger

from billing_simulation import BillSimulationPipeline, PipelineConfiguration
from billing_simulation.core.exceptions import BillSimulationError
from billing_simulation.observability import configure_logging


def parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate and audit mock medical bills.")
    parser.add_argument("-s", "--scenario", action="append", help="Scenario id (repeatable); default: all")
    parser.add_argument("-n", "--count", type=int, default=1, help="Bills per scenario")
    parser.add_argument("--seed", type=int, default=None, help="Base seed; bill k uses seed + k")
    parser.add_argument("--review", action="store_true", help="Run the optional review phase")
    parser.add_argument("--offline", action="store_true", help="No LLM: every phase uses its stub")
    parser.add_argument("--env-file", default=None, help="Path to a .env file")
    parser.add_argument("--log-file", default=None, help="Also write JSON-lines logs here")
    parser.add_argument("--no-save", action="store_true", help="Do not write results to disk")
    parser.add_argument("--list", action="store_true", help="List scenario ids and exit")
    return parser.parse_args(argv)


def build_pipeline(args: argparse.Namespace) -> BillSimulationPipeline:
    if args.offline:
        config = PipelineConfiguration.from_environment(args.env_file, validate_on_load=False)
        return BillSimulationPipeline(config)
    return BillSimulationPipeline.from_environment(args.env_file)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging("INFO", args.log_file)

    print("\n" + "=" * 80)
    print("MOCK MEDICAL BILL GENERATION")
    print("=" * 80 + "\n")

    # =========================================================================
    # STAGE 1: INITIALIZE PIPELINE
    # =========================================================================
    try:
        pipeline = build_pipeline(args)
    except BillSimulationError as e:
        print(f"[FAIL] Failed to initialize pipeline: {e}")
        return 1

    configure_logging(pipeline.config.log_level, args.log_file)
    print(f"[OK] Pipeline initialized | Provider: {pipeline.config.llm_provider} | Oracle: {pipeline.oracle.available}")

    scenario_ids = args.scenario or pipeline.scenarios.list_ids()
    if args.list:
        for scenario_id in pipeline.scenarios.list_ids():
            print(f"  - {scenario_id}")
        return 0

    # =========================================================================
    # STAGE 2: GENERATE AND AUDIT
    # =========================================================================
    stats: Dict[str, Dict[str, int]] = {}
    failures = 0

    for idx, scenario_id in enumerate(scenario_ids, 1):
        print(f"\n[{idx}/{len(scenario_ids)}] {scenario_id}")
        print("-" * 80)
        stats[scenario_id] = {"generated": 0, "met": 0}

        for k in range(args.count):
            seed = None if args.seed is None else args.seed + k
            try:
                result = pipeline.generate(scenario_id, seed=seed, review=args.review)
            except BillSimulationError as e:
                print(f"[FAIL] {e}")
                logger.exception(f"Generation failed for {scenario_id}")
                failures += 1
                break

            quality = result.audit.quality_report
            stats[scenario_id]["generated"] += 1
            stats[scenario_id]["met"] += int(quality.injection_met)
            print(
                f"[OK] {result.document['bill_name']} | Sentinel: {result.sentinel_outcome.state.value} | "
                f"Health {result.audit.health_score} | {quality.verdict.value} ({quality.fidelity_score})"
            )

            if not args.no_save:
                path = pipeline.save(result)
                print(f"  Saved: {path}")

    # =========================================================================
    # STAGE 3: SUMMARY
    # =========================================================================
    print("\n" + "=" * 80)
    print(f"{'Scenario':<35} {'Generated':<12} {'Injection met':<15}")
    print("-" * 80)
    for scenario_id, row in stats.items():
        print(f"{scenario_id:<35} {row['generated']:<12} {row['met']:<15}")
    print("=" * 80 + "\n")

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
