"""
PostgreSQL persistence layer for the Template Registry.

Templates are stored as JSONB documents keyed by id, with the unique
template name mirrored in its own column.
"""

import json
import uuid
from typing import Dict, Any, Optional, List

import asyncpg

from shared.logging import get_logger
from shared.errors import RegistryException, ConflictError
from ..models import TemplateStatus

NPM_PACKAGE_URL = "https://www.npmjs.com/package/{name}"


async def _init_connection(conn: asyncpg.Connection):
    await conn.set_type_codec(
        "jsonb",
        encoder=json.dumps,
        decoder=json.loads,
        schema="pg_catalog"
    )


def _affected_rows(status: str) -> int:
    """Row count from a command status such as `UPDATE 1`."""
    try:
        return int(status.split()[-1])
    except (ValueError, IndexError):
        return 0


def new_template_document(data: Dict[str, Any]) -> Dict[str, Any]:
    """Document for a new template: fresh id and creation defaults."""
    document = dict(data)
    document.pop("_links", None)
    document["id"] = str(uuid.uuid4())
    document.setdefault("status", TemplateStatus.IN_VERIFICATION.value)
    document.setdefault("adobeRecommended", False)

    links = dict(document.get("links") or {})
    if links.get("github") and not links.get("consoleProject"):
        links.setdefault("npm", NPM_PACKAGE_URL.format(name=document["name"]))
        document["links"] = links
    return document


class TemplateStore:
    """PostgreSQL persistence layer for templates."""

    def __init__(self, dsn: str):
        self.dsn = dsn
        self.logger = get_logger("templates.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=2,
                max_size=10,
                command_timeout=30,
                init=_init_connection
            )

            await self._create_tables()

            self.logger.info("PostgreSQL persistence started")

        except Exception as e:
            self.logger.error("Failed to start PostgreSQL persistence", error=str(e))
            raise RegistryException("POSTGRES_START_FAILED", str(e), status_code=500)

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL persistence stopped")

    async def _create_tables(self):
        """Create database tables."""
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS templates (
                    seq BIGSERIAL,
                    id VARCHAR(64) PRIMARY KEY,
                    name VARCHAR(512) NOT NULL UNIQUE,
                    document JSONB NOT NULL,
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
                    updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                );
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_templates_seq ON templates(seq);
            """)

    async def get_templates(self) -> List[Dict[str, Any]]:
        """All templates in insertion order."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch("SELECT document FROM templates ORDER BY seq")
        return [row["document"] for row in rows]

    async def find_template_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        """Template with the given name, if any."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("SELECT document FROM templates WHERE name = $1", name)
        return row["document"] if row else None

    async def find_template_by_id(self, template_id: str) -> Optional[Dict[str, Any]]:
        """Template with the given id, if any."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("SELECT document FROM templates WHERE id = $1", template_id)
        return row["document"] if row else None

    async def add_template(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a new template and return the stored document."""
        document = new_template_document(data)
        try:
            async with self.pool.acquire() as conn:
                await conn.execute(
                    "INSERT INTO templates (id, name, document) VALUES ($1, $2, $3)",
                    document["id"], document["name"], document
                )
        except asyncpg.UniqueViolationError:
            raise ConflictError(
                f"Template with name {document['name']} already exists.",
                details={"name": document["name"]}
            )

        self.logger.info("Template added", template_id=document["id"], name=document["name"])
        return document

    async def update_template(self, template_id: str, data: Dict[str, Any]) -> int:
        """Merge top-level fields into a template. Returns the number of matched templates."""
        changes = {key: value for key, value in data.items() if key not in ("id", "_links")}
        try:
            async with self.pool.acquire() as conn:
                status = await conn.execute("""
                    UPDATE templates
                    SET document = document || $2::jsonb,
                        name = COALESCE($2::jsonb->>'name', name),
                        updated_at = NOW()
                    WHERE id = $1
                """, template_id, changes)
        except asyncpg.UniqueViolationError:
            raise ConflictError(
                f"Template with name {changes.get('name')} already exists.",
                details={"name": changes.get("name")}
            )

        matched = _affected_rows(status)
        self.logger.info("Template updated", template_id=template_id, matched=matched)
        return matched

    async def remove_template_by_name(self, name: str) -> int:
        """Delete a template by name. Returns the number of deleted templates."""
        async with self.pool.acquire() as conn:
            status = await conn.execute("DELETE FROM templates WHERE name = $1", name)
        deleted = _affected_rows(status)
        self.logger.info("Template removed", name=name, deleted=deleted)
        return deleted

    async def remove_template_by_id(self, template_id: str) -> int:
        """Delete a template by id. Returns the number of deleted templates."""
        async with self.pool.acquire() as conn:
            status = await conn.execute("DELETE FROM templates WHERE id = $1", template_id)
        deleted = _affected_rows(status)
        self.logger.info("Template removed", template_id=template_id, deleted=deleted)
        return deleted

    async def health_check(self) -> bool:
        """Check database health."""
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except Exception as e:
            self.logger.error("Database health check failed", error=str(e))
            return False
