import asyncio
import sys

import asyncpg

from fleettrack.config import settings
from fleettrack.infra.database import close_db, init_db


async def create_db():
    db_name = settings.database.DB_NAME

    # Connect to default postgres DB to create new DB
    sys_conn = await asyncpg.connect(
        user=settings.database.DB_USER,
        password=settings.database.DB_PASSWORD,
        host=settings.database.DB_HOST,
        port=settings.database.DB_PORT,
        database="postgres",
    )
    try:
        exists = await sys_conn.fetchval("SELECT 1 FROM pg_database WHERE datname = $1", db_name)
        if not exists:
            print(f"Creating database {db_name}...")
            await sys_conn.execute(f'CREATE DATABASE "{db_name}"')
            print("Database created.")
        else:
            print(f"Database {db_name} already exists.")
    finally:
        await sys_conn.close()

    # PostGIS extension, schema and indexes
    await init_db()
    await close_db()
    print("Schema applied.")


if __name__ == "__main__":
    try:
        asyncio.run(create_db())
    except (OSError, asyncpg.PostgresError) as e:
        print(f"Error: {e}")
        sys.exit(1)
