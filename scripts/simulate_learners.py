"""Simulate personas through the emotion curriculum and report their progression."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from engines.simulation import LearningSimulation  # noqa: E402
from env_validation import get_env_int  # noqa: E402

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--rounds",
        type=int,
        default=8,
        help="Rounds per simulated session (default: 8)",
    )
    parser.add_argument(
        "--sessions",
        type=int,
        default=12,
        help="Sessions per persona (default: 12)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed (default: CURRICULUM_RANDOM_SEED, else unseeded)",
    )
    parser.add_argument(
        "--persona",
        type=str,
        default=None,
        help="Only simulate the named persona",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Optional path to write the JSON report",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.rounds <= 0 or args.sessions <= 0:
        print("--rounds and --sessions must be positive", file=sys.stderr)
        return 2

    seed = args.seed if args.seed is not None else get_env_int("CURRICULUM_RANDOM_SEED")
    simulation = LearningSimulation(random_seed=seed)

    if args.persona:
        try:
            persona = simulation.persona_by_name(args.persona)
        except ValueError as exc:
            known = ", ".join(p.name for p in simulation.personas)
            print(f"{exc}. Known personas: {known}", file=sys.stderr)
            return 2
        progress, traces = simulation.run_persona(
            persona.name, sessions=args.sessions, rounds=args.rounds
        )
        metrics = [simulation.summarise(persona.name, progress, traces)]
    else:
        metrics = simulation.run(sessions=args.sessions, rounds=args.rounds)

    report = {
        "seed": seed,
        "sessions": args.sessions,
        "rounds": args.rounds,
        "personas": [row.to_dict() for row in metrics],
    }
    payload = json.dumps(report, indent=2, ensure_ascii=False)
    if args.output:
        Path(args.output).write_text(payload + "\n", encoding="utf-8")
        logger.info("Wrote simulation report to %s", args.output)
    print(payload)
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    raise SystemExit(main())
