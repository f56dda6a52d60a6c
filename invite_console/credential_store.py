"""Durable single-slot storage for the admin credential."""

import datetime
import json
import logging
import sqlite3
from contextlib import contextmanager
from typing import Generator, Optional

from invite_console.config import get_config_value
from invite_console.models import Credential

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS credential_slots (
    slot TEXT PRIMARY KEY,
    payload TEXT NOT NULL,
    updated_at INTEGER NOT NULL
);
"""


class CredentialStore:
    """Holds the current credential in memory and mirrors it to a sqlite slot"""

    def __init__(self, db_file_path: str, slot: Optional[str] = None):
        self.db_file = db_file_path
        self.slot = slot or get_config_value("session.credential_slot", "admin_session")
        self.logger = logging.getLogger(self.__class__.__name__)
        self._credential: Optional[Credential] = None
        self._init_db()
        self._credential = self._load()

    def _init_db(self) -> None:
        """Initialize the database with the credential table"""
        try:
            with self._get_connection() as conn:
                conn.executescript(CREATE_TABLE_SQL)
                conn.commit()
                self.logger.debug(f"Credential store initialized: {self.db_file}")
        except sqlite3.Error as e:
            self.logger.critical(
                f"Failed to initialize credential store {self.db_file}: {str(e)}"
            )
            raise

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager for database connections with proper error handling"""
        conn = None
        try:
            conn = sqlite3.connect(self.db_file)
            conn.row_factory = sqlite3.Row
            yield conn
        except sqlite3.Error as e:
            self.logger.error(f"Database error ({self.db_file}): {str(e)}")
            raise
        finally:
            if conn:
                conn.close()

    def _load(self) -> Optional[Credential]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT payload FROM credential_slots WHERE slot = ?", (self.slot,)
            ).fetchone()
        if row is None:
            self.logger.debug(f"No persisted credential in slot '{self.slot}'")
            return None
        try:
            credential = Credential.from_dict(json.loads(row["payload"]))
        except (ValueError, TypeError) as e:
            # A half-written or foreign payload is treated as no session at all
            self.logger.error(
                f"Discarding unreadable credential in slot '{self.slot}': {str(e)}"
            )
            self._delete_slot()
            return None
        self.logger.info(
            f"Restored session for {credential.admin.email} (expires {credential.expires_at.isoformat()})"
        )
        return credential

    def _delete_slot(self) -> None:
        with self._get_connection() as conn:
            with conn:
                conn.execute("DELETE FROM credential_slots WHERE slot = ?", (self.slot,))

    def get(self) -> Optional[Credential]:
        return self._credential

    def set(self, credential: Credential) -> None:
        """Persist the credential, replacing whatever the slot held."""
        now = int(datetime.datetime.now(datetime.timezone.utc).timestamp())
        payload = json.dumps(credential.to_dict())
        with self._get_connection() as conn:
            with conn:
                conn.execute(
                    """
                    INSERT INTO credential_slots (slot, payload, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(slot) DO UPDATE SET
                        payload = excluded.payload,
                        updated_at = excluded.updated_at
                    """,
                    (self.slot, payload, now),
                )
        self._credential = credential
        self.logger.debug(
            f"Stored credential for {credential.admin.email} in slot '{self.slot}'"
        )

    def clear(self) -> None:
        """Drop the credential; memory is cleared even if the slot delete fails."""
        self._credential = None
        try:
            self._delete_slot()
        except sqlite3.Error as e:
            self.logger.error(
                f"Failed to remove persisted credential slot '{self.slot}': {str(e)}"
            )
            raise
        self.logger.debug(f"Cleared credential slot '{self.slot}'")

    def is_valid(self, now: datetime.datetime) -> bool:
        return self._credential is not None and self._credential.is_valid(now)
