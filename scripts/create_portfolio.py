import argparse
import asyncio
import json
import sys

from src.api.bootstrap import build_runtime, run_startup_reconciliation
from src.api.config import ConfigurationError, load_settings
from src.api.observability import configure_logging
from src.core.reconciliation import ReconciliationError


async def _reconcile(*, dry_run: bool) -> int:
    settings = load_settings()
    runtime = build_runtime(settings)
    try:
        desired = runtime.reconciler.desired_spec(settings.portfolio)
        if dry_run:
            print(json.dumps(desired.to_create_query(), indent=2))
            return 0
        portfolio = await run_startup_reconciliation(runtime)
        print(json.dumps(portfolio.model_dump(mode="json", by_alias=True), indent=2))
        return 0
    finally:
        await runtime.aclose()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Create (if missing) and activate the configured risk-service portfolio"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the create parameters, including the derived wallet address, and exit",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    try:
        return asyncio.run(_reconcile(dry_run=args.dry_run))
    except ConfigurationError as exc:
        print(f"configuration error: {exc}", file=sys.stderr)
        return 2
    except ReconciliationError as exc:
        print(f"reconciliation failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
