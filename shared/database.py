# shared/database.py
import logging
import ssl
from contextlib import asynccontextmanager
from typing import Any, Optional

import asyncpg
from fastapi import Request

from shared.config import Settings

logger = logging.getLogger(__name__)


class Database:
    """Database wrapper for asyncpg with connection pooling"""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def fetch_one(self, query: str, *args) -> Optional[dict[str, Any]]:
        """Fetch a single row"""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(query, *args)
            return dict(row) if row else None

    async def fetch_all(self, query: str, *args) -> list[dict[str, Any]]:
        """Fetch multiple rows"""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query, *args)
            return [dict(row) for row in rows]

    async def fetch_val(self, query: str, *args) -> Any:
        """Fetch the first column of the first row"""
        async with self.pool.acquire() as conn:
            return await conn.fetchval(query, *args)

    async def execute(self, query: str, *args) -> str:
        """Execute a query without returning results"""
        async with self.pool.acquire() as conn:
            return await conn.execute(query, *args)

    @asynccontextmanager
    async def transaction(self):
        """Context manager for database transactions"""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def close(self) -> None:
        await self.pool.close()


async def init_db(settings: Settings) -> Database:
    """Create the connection pool and, unless disabled, the schema"""
    logger.info("Starting database initialization...")

    # Hosted Postgres requires TLS without a verifiable chain
    ssl_context = None
    if settings.is_production:
        ssl_context = ssl.create_default_context()
        ssl_context.check_hostname = False
        ssl_context.verify_mode = ssl.CERT_NONE

    logger.info(
        f"Creating database connection pool (min: {settings.db_pool_min_size}, "
        f"max: {settings.db_pool_max_size})..."
    )
    pool = await asyncpg.create_pool(
        settings.database_url,
        ssl=ssl_context,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        command_timeout=30,
        max_inactive_connection_lifetime=300,
    )
    db = Database(pool)
    logger.info("Database connection pool created successfully")

    try:
        if settings.skip_schema_init:
            logger.info("Skipping schema initialization (SKIP_SCHEMA_INIT=true)")
        else:
            await create_tables(db)
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        await pool.close()
        raise

    return db


async def get_db(request: Request) -> Database:
    """Dependency to get the database created during startup"""
    return request.app.state.db


async def create_tables(db: Database) -> None:
    """Create database tables if they don't exist"""
    logger.info("Starting database schema creation/update...")

    await db.execute(
        """
        CREATE TABLE IF NOT EXISTS apps (
            app_id VARCHAR(5) PRIMARY KEY CHECK (app_id ~ '^[0-9]{5}$'),
            app_name VARCHAR(255) NOT NULL,
            app_logo_url TEXT NOT NULL,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
        );
        """
    )

    await db.execute(
        """
        CREATE TABLE IF NOT EXISTS users (
            id UUID PRIMARY KEY,
            username VARCHAR(100) UNIQUE NOT NULL,
            email VARCHAR(255) UNIQUE NOT NULL,
            password_hash VARCHAR(255) NOT NULL,
            role VARCHAR(20) NOT NULL DEFAULT 'child_admin'
                CHECK (role IN ('admin', 'child_admin')),
            is_active BOOLEAN DEFAULT TRUE,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
        );
        """
    )

    await db.execute(
        """
        CREATE TABLE IF NOT EXISTS user_app_access (
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            app_id VARCHAR(5) NOT NULL REFERENCES apps(app_id) ON DELETE CASCADE,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY (user_id, app_id)
        );
        """
    )

    await db.execute(
        """
        CREATE TABLE IF NOT EXISTS collections (
            id UUID PRIMARY KEY,
            app_id VARCHAR(5) NOT NULL,
            collection_id VARCHAR(255) NOT NULL,
            tag VARCHAR(20) NOT NULL DEFAULT 'primary'
                CHECK (tag IN ('primary', 'retry', 'backup', 'custom')),
            created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (app_id, collection_id)
        );

        CREATE INDEX IF NOT EXISTS idx_collections_app_tag ON collections(app_id, tag);
        """
    )

    await db.execute(
        """
        CREATE TABLE IF NOT EXISTS payments (
            id UUID PRIMARY KEY,
            uuid VARCHAR(255) UNIQUE NOT NULL,
            app_id VARCHAR(5) NOT NULL,
            pt_status VARCHAR(20) NOT NULL CHECK (pt_status IN ('success', 'failed', 'retry')),
            collection_id VARCHAR(255) NOT NULL,
            ant VARCHAR(64),
            amount NUMERIC(14, 2) NOT NULL DEFAULT 0,
            transaction_date TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
        );

        CREATE INDEX IF NOT EXISTS idx_payments_app_date ON payments(app_id, transaction_date DESC);
        CREATE INDEX IF NOT EXISTS idx_payments_status ON payments(pt_status);
        """
    )

    await db.execute(
        """
        CREATE TABLE IF NOT EXISTS spends (
            id UUID PRIMARY KEY,
            app_id VARCHAR(5) NOT NULL,
            date DATE NOT NULL,
            spend_amount NUMERIC(14, 2) NOT NULL DEFAULT 0,
            settlement VARCHAR(3) NOT NULL DEFAULT 'no' CHECK (settlement IN ('yes', 'no')),
            created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (app_id, date)
        );
        """
    )

    logger.info("Schema creation/update completed")
