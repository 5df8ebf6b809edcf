"""Operate the Gmail token vault from the command line.

Usage (from backend/ directory):
    python scripts/manage_token_keys.py generate-key
    python scripts/manage_token_keys.py inventory
    python scripts/manage_token_keys.py migrate --batch-limit 200
    python scripts/manage_token_keys.py rotate --strict

Key rotation procedure:
  1. generate-key, then configure it as the next version
     (GMAIL_TOKEN_ENCRYPTION_KEY_V2, or GMAIL_TOKEN_ENCRYPTION_KEYS for v3+).
     New writes use it immediately; older versions stay readable.
  2. rotate (repeat until inventory shows no records on older versions).
  3. Only then remove the old key entry.

With --strict the command exits non-zero when any record failed.
"""
import argparse
import asyncio
import json
import sys
from pathlib import Path

# Windows: asyncpg requires SelectorEventLoop
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.ext.asyncio import AsyncSession

from token_vault.config import settings
from token_vault.database import create_engine, create_session_factory
from token_vault.logging_config import configure_logging
from token_vault.exceptions import ConfigurationError, PartialBatchFailure
from token_vault.services.key_service import build_inventory
from token_vault.services.migration_service import MigrationJob
from token_vault.services.rotation_service import RotationJob
from token_vault.utils.encryption import DualTokenCodec
from token_vault.utils.keys import KeyProvider, KeyringConfig, generate_key_hex

_JOBS = {"migrate": MigrationJob, "rotate": RotationJob}


async def run_command(session: AsyncSession, args: argparse.Namespace) -> int:
    provider = KeyProvider(KeyringConfig.from_settings(settings))

    if args.command == "inventory":
        inventory = await build_inventory(session, provider)
        print(json.dumps(inventory.model_dump(mode="json"), indent=2))
        return 0

    job = _JOBS[args.command](session, DualTokenCodec(provider))
    try:
        summary = await job.run(args.batch_limit)
    except ConfigurationError as exc:
        print(f"ERROR: {exc}")
        return 2

    print(json.dumps(summary.model_dump(), indent=2))
    if args.strict:
        try:
            summary.raise_for_errors(args.command)
        except PartialBatchFailure as exc:
            print(f"ERROR: {exc}")
            return 1
    return 0


async def main() -> int:
    parser = argparse.ArgumentParser(description="Gmail token vault maintenance.")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("generate-key", help="Print a new 64-hex-character key entry")
    sub.add_parser("inventory", help="Show key versions and record counts")
    for name in _JOBS:
        job_parser = sub.add_parser(name, help=f"Run the {name} batch job")
        job_parser.add_argument("--batch-limit", type=int, default=settings.VAULT_JOB_BATCH_LIMIT)
        job_parser.add_argument("--strict", action="store_true", help="Exit 1 if any record failed")
    args = parser.parse_args()
    configure_logging()

    if args.command == "generate-key":
        print(generate_key_hex())
        return 0

    engine = create_engine(pool_size=1, max_overflow=0)
    async_session = create_session_factory(engine)
    try:
        async with async_session() as session:
            return await run_command(session, args)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
