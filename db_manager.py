import sqlite3
import logging
from typing import Optional, List
from datetime import datetime, timezone

import config
from obfuscation import Seed

# --- Environment Setup ---

logger = logging.getLogger(__name__)

# --- Constants & Globals ---

DB_FILE = config.DB_FILE

# --- Database Connection ---

def get_db_connection():
    """Returns a connection to the SQLite database."""
    conn = sqlite3.connect(DB_FILE)
    conn.row_factory = sqlite3.Row
    return conn

def init_db():
    """Initializes the database and creates the 'seeds' table if it doesn't exist."""
    with get_db_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS seeds (
                name TEXT PRIMARY KEY,
                prime INTEGER NOT NULL,
                mod_inverse INTEGER NOT NULL,
                mask INTEGER NOT NULL,
                bits INTEGER NOT NULL,
                created_at TIMESTAMP NOT NULL
            )
        """)
        conn.commit()
    logger.info(f"Seed database ready: {DB_FILE}")

# --- Public Database Operations ---

def save_seed(name: str, seed: Seed) -> None:
    """
    Stores a seed under `name`, replacing any previous one.
    The whole triple is written in a single statement.
    """
    record = seed.as_record()
    record.update(name=name, created_at=datetime.now(timezone.utc).isoformat())
    with get_db_connection() as conn:
        conn.execute(
            """
            INSERT OR REPLACE INTO seeds (name, prime, mod_inverse, mask, bits, created_at)
            VALUES (:name, :prime, :mod_inverse, :mask, :bits, :created_at)
            """,
            record,
        )
        conn.commit()
    logger.info(f"Saved seed '{name}'")

def load_seed(name: str) -> Optional[Seed]:
    """Loads a seed by name. Stored values are re-validated."""
    with get_db_connection() as conn:
        row = conn.execute(
            "SELECT prime, mod_inverse, mask, bits FROM seeds WHERE name = ?", (name,)
        ).fetchone()
    if row is None:
        return None
    return Seed(**dict(row))

def delete_seed(name: str) -> bool:
    """Deletes a seed by name. Returns True if a row was removed."""
    with get_db_connection() as conn:
        cursor = conn.execute("DELETE FROM seeds WHERE name = ?", (name,))
        conn.commit()
        deleted = cursor.rowcount > 0
    if deleted:
        logger.info(f"Deleted seed '{name}'")
    return deleted

def list_seed_names() -> List[str]:
    with get_db_connection() as conn:
        rows = conn.execute("SELECT name FROM seeds ORDER BY name").fetchall()
    return [row["name"] for row in rows]
