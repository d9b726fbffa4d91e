"""Redemption CLI — payout previews, scenario simulation, config checks.

Usage:
    python -m redemption.cli quote --funding 10 --commitments 8 --tokens 1
    python -m redemption.cli simulate scenario.json
    python -m redemption.cli check-config
    python -m redemption.cli --config path/to/params.json --log-level DEBUG simulate scenario.json

A scenario file drives a contract with in-memory collaborators and a
manual clock:

    {
      "duration": 3600,
      "governance_cap": 1000,
      "deactivated": [150],
      "beneficiary": "dao",
      "holdings": {"alice": [101, 102]},
      "steps": [
        {"op": "receive", "sender": "treasury", "amount": "10"},
        {"op": "commit", "caller": "alice", "ids": [101, 102]},
        {"op": "advance", "seconds": 3600},
        {"op": "redeem", "caller": "alice", "ids": [101]},
        {"op": "draw"}
      ]
    }
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List

from dotenv import load_dotenv

from redemption.adapters.memory import (
    InMemoryAssetContract,
    InMemoryBeneficiary,
    InMemoryValueRail,
    ManualClock,
)
from redemption.config import ENV_FILE, RedemptionConfig
from redemption.contract import RedemptionContract
from redemption.errors import RedemptionError
from redemption.ledger.finalizer import leftover_amount
from redemption.ledger.payout import per_unit_rate, redeem_amount
from redemption.models.redemption import from_base_units, to_base_units

_log = logging.getLogger(__name__)


def _load_config(args: argparse.Namespace) -> RedemptionConfig:
    if args.config is not None:
        return RedemptionConfig.from_file(args.config)
    return RedemptionConfig.from_env()


def cmd_quote(args: argparse.Namespace) -> int:
    """Preview rate, payout and leftover for given totals."""
    try:
        config = _load_config(args)
    except (OSError, ValueError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    decimals = config.unit_decimals
    try:
        funding = to_base_units(Decimal(args.funding), decimals)
    except (InvalidOperation, ValueError) as e:
        print(f"Failed: invalid funding amount {args.funding!r}: {e}", file=sys.stderr)
        return 1
    try:
        rate = per_unit_rate(funding, args.commitments, config.unit)
        amount = redeem_amount(args.tokens, funding, args.commitments, config.unit)
    except RedemptionError as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    leftover = leftover_amount(funding, args.commitments, config.unit)
    print(json.dumps(
        {
            "funding": str(from_base_units(funding, decimals)),
            "commitments": args.commitments,
            "tokens": args.tokens,
            "rate": str(from_base_units(rate, decimals)),
            "amount": str(from_base_units(amount, decimals)),
            "leftover": str(from_base_units(leftover, decimals)),
        },
        indent=2,
    ))
    return 0


def run_scenario(scenario: Dict[str, Any], config: RedemptionConfig) -> Dict[str, Any]:
    """Run a scenario against in-memory collaborators and report the outcome."""
    clock = ManualClock()
    asset = InMemoryAssetContract(
        governance_cap=scenario.get("governance_cap", 1000),
        deactivated_ids=scenario.get("deactivated", []),
    )
    beneficiary = InMemoryBeneficiary(scenario.get("beneficiary", "beneficiary"), asset)
    rail = InMemoryValueRail()
    contract = RedemptionContract(
        scenario.get("duration", config.default_duration_seconds),
        asset,
        beneficiary,
        rail,
        config=config,
        clock=clock,
    )
    for holder, token_ids in scenario.get("holdings", {}).items():
        asset.mint(holder, token_ids)
        asset.set_approval_for_all(holder, contract.address, True)

    decimals = config.unit_decimals
    results: List[Dict[str, Any]] = []
    for index, step in enumerate(scenario.get("steps", [])):
        op = step.get("op")
        outcome: Dict[str, Any] = {"step": index, "op": op}
        try:
            if op == "receive":
                contract.receive(step["sender"], to_base_units(Decimal(step["amount"]), decimals))
            elif op == "commit":
                outcome["committed"] = contract.commit(step["caller"], step["ids"])
            elif op == "revoke":
                outcome["revoked"] = contract.revoke(step["caller"], step["ids"])
            elif op == "redeem":
                quote = contract.redeem(step["caller"], step["ids"])
                outcome["amount"] = str(from_base_units(quote.amount, decimals))
            elif op == "draw":
                outcome["amount"] = str(from_base_units(contract.draw(), decimals))
            elif op == "reclaim":
                outcome["reclaimed"] = contract.reclaim(step["ids"])
            elif op == "advance":
                clock.advance(step["seconds"])
            else:
                raise ValueError(f"Unknown scenario op: {op}")
            outcome["ok"] = True
        except (RedemptionError, ValueError, KeyError, InvalidOperation) as e:
            _log.warning("Scenario step %d (%s) failed: %s", index, op, e)
            outcome["ok"] = False
            outcome["error"] = f"{type(e).__name__}: {e}"
        results.append(outcome)

    addresses = set(scenario.get("holdings", {})) | {beneficiary.address}
    return {
        "steps": results,
        "status": contract.status(),
        "payouts": {
            address: str(from_base_units(rail.balance_of(address), decimals))
            for address in sorted(addresses)
        },
    }


def cmd_simulate(args: argparse.Namespace) -> int:
    """Run a scenario file and print the step log and final status."""
    try:
        config = _load_config(args)
        with args.scenario.open("r", encoding="utf-8") as handle:
            scenario = json.load(handle)
    except (OSError, ValueError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    try:
        report = run_scenario(scenario, config)
    except RedemptionError as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    print(json.dumps(report, indent=2, default=str))
    return 0 if all(step["ok"] for step in report["steps"]) else 1


def cmd_check_config(args: argparse.Namespace) -> int:
    """Validate the parameter file."""
    try:
        config = _load_config(args)
    except (OSError, ValueError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    print(json.dumps(config.to_dict(), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="redemption",
        description="Escrow and pro-rata payout ledger CLI",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to parameter file (default: $REDEMPTION_CONFIG, else config/redemption_params.json)",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("REDEMPTION_LOG_LEVEL", "WARNING"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    sub = parser.add_subparsers(dest="command")

    # quote
    p_quote = sub.add_parser("quote", help="Preview a redemption payout")
    p_quote.add_argument("--funding", required=True, help="Total funding (Decimal units)")
    p_quote.add_argument("--commitments", required=True, type=int, help="Total commitments")
    p_quote.add_argument("--tokens", type=int, default=1, help="Tokens redeemed (default: 1)")

    # simulate
    p_sim = sub.add_parser("simulate", help="Run a scenario file")
    p_sim.add_argument("scenario", type=Path, help="Scenario JSON file")

    # check-config
    sub.add_parser("check-config", help="Validate the parameter file")

    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv(ENV_FILE)
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level))

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "quote": cmd_quote,
        "simulate": cmd_simulate,
        "check-config": cmd_check_config,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
