"""
Maintenance commands run outside the API process.

    python -m app.manage backup [--dir DIR]
    python -m app.manage restore [TIMESTAMP] [--dir DIR]

Restore without a timestamp lists the available backups.
"""
import argparse
import asyncio
import sys

from app.core.config import settings
from app.core.database import ResilientPool
from app.services.backup import BackupError, BackupService
from app.utils.logger import setup_logger

logger = setup_logger("maintenance", "maintenance.log")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="python -m app.manage", description="Database maintenance commands")
    commands = parser.add_subparsers(dest="command", required=True)

    backup = commands.add_parser("backup", help="Dump content tables to timestamped JSON files")
    backup.add_argument("--dir", default=settings.BACKUP_DIR, help="Backup directory")

    restore = commands.add_parser("restore", help="Replace content tables with a backup")
    restore.add_argument("timestamp", nargs="?", help="Backup timestamp, omit to list backups")
    restore.add_argument("--dir", default=settings.BACKUP_DIR, help="Backup directory")
    return parser


async def run(args: argparse.Namespace) -> int:
    service = BackupService(backup_dir=args.dir)

    if args.command == "restore" and not args.timestamp:
        backups = service.list_backups()
        if not backups:
            logger.info(f"No backups found in {args.dir}")
        for backup in backups:
            logger.info(f"  {backup['timestamp']} - {backup['total_records']} total records")
        return 0

    pool = ResilientPool(
        settings.DATABASE_URL,
        max_connections=2,
        ssl=settings.DATABASE_SSL,
        max_retries=settings.DATABASE_CONNECT_RETRIES,
        base_delay=settings.DATABASE_RETRY_BASE_DELAY,
    )
    try:
        if args.command == "backup":
            summary = await service.backup(pool, database_url=settings.DATABASE_URL)
            logger.info(f"Backup {summary['timestamp']} written to {args.dir}")
        else:
            await service.restore(pool, timestamp=args.timestamp)
        return 0
    except BackupError as e:
        logger.error(str(e))
        return 1
    except Exception as e:
        logger.error(f"{args.command.capitalize()} failed: {e}", exc_info=True)
        return 1
    finally:
        await pool.dispose()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.warning("Cancelled")
        return 130


if __name__ == "__main__":
    sys.exit(main())
