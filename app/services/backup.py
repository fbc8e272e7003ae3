import asyncio
import json
import logging
import os
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import DateTime, Table, delete, func, insert, select, text

from app.core.database import ResilientPool
from app.models.image import Image, QuestionImage
from app.models.image_description import ImageDescription
from app.models.question import Question
from app.models.upload_batch import UploadBatch
from app.models.user import User

logger = logging.getLogger(__name__)

USER_BACKUP_COLUMNS = (
    "id", "username", "email", "first_name", "last_name",
    "is_admin", "is_reviewer", "is_image_contributor", "is_active", "created_at",
)

# insertion order; clearing runs in reverse
CONTENT_TABLES: Dict[str, Table] = {
    "upload_batches": UploadBatch.__table__,
    "questions": Question.__table__,
    "images": Image.__table__,
    "question_images": QuestionImage.__table__,
    "image_descriptions": ImageDescription.__table__,
}

BACKUP_FILES = ("questions", "users", "images", "question_images", "image_descriptions", "upload_batches")

DATABASE_PASSWORD = re.compile(r":[^:@/]+@")


class BackupError(Exception):
    pass


def backup_timestamp(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond // 1000:03d}Z"


def mask_database_url(url: Optional[str]) -> Optional[str]:
    return DATABASE_PASSWORD.sub(":****@", url) if url else url


def _backup_path(backup_dir: str, name: str, timestamp: str) -> str:
    return os.path.join(backup_dir, f"{name}_{timestamp}.json")


def _write_json(path: str, payload: Any) -> None:
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, default=str)


def _read_json(path: str) -> Any:
    with open(path, encoding="utf-8") as handle:
        return json.load(handle)


def _restorable(table: Table, row: Dict[str, Any]) -> Dict[str, Any]:
    """Keep known columns and turn ISO strings back into datetimes."""
    values = {}
    for column in table.c:
        if column.name not in row:
            continue
        value = row[column.name]
        if isinstance(column.type, DateTime) and isinstance(value, str):
            value = datetime.fromisoformat(value)
        values[column.name] = value
    return values


class BackupService:
    def __init__(self, backup_dir: str = "backups", confirm_delay: float = 5.0):
        self.backup_dir = backup_dir
        self.confirm_delay = confirm_delay

    async def _dump(self, pool: ResilientPool) -> Dict[str, List[Dict[str, Any]]]:
        users = User.__table__
        dump = {
            name: (await pool.query(select(table).order_by(table.c.id))).rows
            for name, table in CONTENT_TABLES.items()
        }
        user_columns = [users.c[name] for name in USER_BACKUP_COLUMNS]
        dump["users"] = (await pool.query(select(*user_columns).order_by(users.c.id))).rows
        return dump

    async def backup(self, pool: ResilientPool, *, database_url: Optional[str] = None) -> Dict[str, Any]:
        os.makedirs(self.backup_dir, exist_ok=True)
        timestamp = backup_timestamp()
        logger.info("Starting database backup")

        dump = await self._dump(pool)
        for name in BACKUP_FILES:
            path = _backup_path(self.backup_dir, name, timestamp)
            _write_json(path, dump[name])
            logger.info(f"{name} backed up: {len(dump[name])} records -> {path}")

        summary = {
            "timestamp": timestamp,
            "backup_date": datetime.now(timezone.utc).isoformat(),
            "database_url": mask_database_url(database_url),
            "tables": {name: len(dump[name]) for name in BACKUP_FILES},
        }
        _write_json(os.path.join(self.backup_dir, f"backup_summary_{timestamp}.json"), summary)
        logger.info(f"Backup completed in {os.path.abspath(self.backup_dir)}: {summary['tables']}")
        return summary

    def list_backups(self) -> List[Dict[str, Any]]:
        if not os.path.isdir(self.backup_dir):
            return []
        backups = []
        for name in sorted(os.listdir(self.backup_dir)):
            if not (name.startswith("backup_summary_") and name.endswith(".json")):
                continue
            summary = _read_json(os.path.join(self.backup_dir, name))
            backups.append({
                "timestamp": name[len("backup_summary_"):-len(".json")],
                "total_records": sum(summary.get("tables", {}).values()),
                "tables": summary.get("tables", {}),
            })
        return backups

    def _load(self, timestamp: str) -> Dict[str, List[Dict[str, Any]]]:
        loaded = {}
        for name in CONTENT_TABLES:
            path = _backup_path(self.backup_dir, name, timestamp)
            if not os.path.exists(path):
                # batches were not part of older backups
                if name == "upload_batches":
                    loaded[name] = []
                    continue
                raise BackupError(f"Backup file not found: {path}")
            loaded[name] = _read_json(path)
        return loaded

    async def _reset_sequences(self, pool: ResilientPool) -> None:
        if pool.dialect_name != "postgresql":
            return
        for name, table in CONTENT_TABLES.items():
            max_id = (await pool.query(select(func.max(table.c.id)))).scalar()
            if max_id:
                await pool.query(text(f"SELECT setval('{name}_id_seq', :value)"), {"value": max_id})

    async def restore(self, pool: ResilientPool, *, timestamp: str) -> Dict[str, int]:
        """Replace all content tables with the rows of one backup. Users are left untouched."""
        backup = self._load(timestamp)

        logger.warning("Restore will DELETE ALL current questions, images and descriptions")
        if self.confirm_delay:
            logger.warning(f"Press Ctrl+C to cancel, continuing in {self.confirm_delay:g} seconds...")
            await asyncio.sleep(self.confirm_delay)

        for table in reversed(list(CONTENT_TABLES.values())):
            await pool.query(delete(table))
        logger.info("Cleared existing data")

        restored = {}
        for name, table in CONTENT_TABLES.items():
            for row in backup[name]:
                await pool.query(insert(table).values(**_restorable(table, row)))
            restored[name] = len(backup[name])
            logger.info(f"Restored {restored[name]} {name}")

        await self._reset_sequences(pool)
        logger.info(f"Database restored from backup {timestamp}")
        return restored
