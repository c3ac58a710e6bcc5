#!/usr/bin/env python3
"""
Run SLA Sweep
=============

One-shot sweep over every running SLA clock, for deployments that run the
sweep from cron instead of the in-process scheduler
(SLA_SWEEP_INTERVAL_SECONDS=0).

Usage:
    python scripts/run_sweep.py [--config sla_config.yaml]
"""

import argparse
import asyncio
import json
from dataclasses import asdict
from pathlib import Path

from ticket_sla.config import settings
from ticket_sla.infrastructure.database import close_database, get_session_maker, init_database
from ticket_sla.shared.infrastructure.logging import setup_logging
from ticket_sla.sla.application import SLAEngine
from ticket_sla.sla.infrastructure import HttpEventPublisher, SLAConfigManager, SQLAlchemyUnitOfWork


async def main(config_path: Path) -> int:
    """Run one sweep; exit code 1 when any clock failed to evaluate."""
    setup_logging(settings.log_level, settings.environment)

    config_manager = SLAConfigManager()
    config_manager.load(config_path)

    init_database()
    session_maker = get_session_maker()
    publisher = HttpEventPublisher()

    engine = SLAEngine(
        uow_factory=lambda: SQLAlchemyUnitOfWork(session_maker),
        config_provider=config_manager,
        publisher=publisher,
        max_retries=settings.sla_max_evaluation_retries,
        sweep_concurrency=settings.sla_sweep_concurrency,
        sweep_batch_size=settings.sla_sweep_batch_size,
    )

    try:
        result = await engine.sweep()
    finally:
        await publisher.close()
        await close_database()

    print(json.dumps(asdict(result), default=str, indent=2))
    return 1 if result.failed else 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Evaluate every running SLA clock once")
    parser.add_argument("--config", type=Path, default=settings.sla_config_path,
                        help="Path to the SLA rules YAML file")
    args = parser.parse_args()
    raise SystemExit(asyncio.run(main(args.config)))
