"""
PassVault - Vault Module

This file handles:
- SQLite database (stores encrypted data)
- Vault initialization and master password check
- Saving/retrieving/listing/searching/deleting entries
- Re-encrypting everything under a new master password

Database structure:
- metadata: key/value pairs (master password hash)
- passwords: one row per entry; password and tags are sealed envelopes,
  name/username/url/notes stay plaintext for listing and search

The master password is held by the Vault instance while unlocked and passed
explicitly to every crypto call. There is no process-wide password.
"""

import os
import json
import time
import sqlite3
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

from . import crypto

logger = logging.getLogger("passvault.vault")


# =============================================================================
# DATABASE SCHEMA
# =============================================================================

SCHEMA = """
-- Entries: sealed password + sealed tags, plaintext metadata
CREATE TABLE IF NOT EXISTS passwords (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    username TEXT,
    encrypted_password TEXT NOT NULL,   -- Envelope JSON
    url TEXT,
    notes TEXT,
    encrypted_tags TEXT NOT NULL,       -- Envelope JSON of a JSON list
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_passwords_name ON passwords(name);
CREATE INDEX IF NOT EXISTS idx_passwords_username ON passwords(username);

-- Vault settings
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

# SQLite PRAGMAs for crash safety
PRAGMAS = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=FULL;
PRAGMA secure_delete=ON;
"""

MASTER_HASH_KEY = "master_hash"

_ENTRY_COLUMNS = "id, name, username, url, notes, created_at, updated_at"


# =============================================================================
# ERRORS
# =============================================================================

class VaultError(Exception):
    """Base class for vault errors."""


class VaultLocked(VaultError):
    """Operation needs an unlocked vault."""


class WrongMasterPassword(VaultError):
    """Master password does not match the stored hash."""


class EntryNotFound(VaultError):
    """No entry with the requested name."""


# =============================================================================
# ENTRY
# =============================================================================

@dataclass
class PasswordEntry:
    """One stored password with its metadata."""
    name: str
    username: Optional[str] = None
    password: Optional[str] = None
    url: Optional[str] = None
    notes: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    id: Optional[int] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "PasswordEntry":
        """Metadata-only entry (password None, tags empty)."""
        return cls(
            name=row["name"],
            username=row["username"],
            url=row["url"],
            notes=row["notes"],
            id=row["id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


# =============================================================================
# VAULT CLASS
# =============================================================================

class Vault:
    """
    Encrypted password store backed by one SQLite file.

    Usage:
        # Create new vault
        vault = Vault("passwords.db")
        vault.initialize("master_password")

        # Later: unlock vault
        vault = Vault("passwords.db")
        vault.unlock("master_password")

        # Save and read back
        vault.save_entry(PasswordEntry(name="github", password="s3cret"))
        entry = vault.get_entry("github")

        # Lock when done
        vault.lock()
    """

    def __init__(self, db_path: Union[str, Path]):
        """
        Create a vault handle (doesn't unlock it yet).

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.conn: Optional[sqlite3.Connection] = None
        self.master_password: Optional[str] = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def exists(self) -> bool:
        """
        True if the database file exists and has been initialized.

        Raises:
            VaultError: If the file is not a readable SQLite database
        """
        if not self.db_path.exists():
            return False
        try:
            conn = sqlite3.connect(str(self.db_path))
            try:
                row = conn.execute(
                    "SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'metadata'"
                ).fetchone()
                if not row:
                    return False
                row = conn.execute(
                    "SELECT 1 FROM metadata WHERE key = ?", (MASTER_HASH_KEY,)
                ).fetchone()
                return row is not None
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise VaultError(f"cannot open vault at {self.db_path}: {e}") from e

    def initialize(self, master_password: str) -> None:
        """
        Create a new vault protected by master_password.

        This:
        1. Creates the parent directory (0700) and the database
        2. Applies PRAGMAs and schema
        3. Stores hash_password(master_password) for later unlocks

        The vault is left unlocked.

        Raises:
            VaultError: If the vault already exists or the password is empty
        """
        if not master_password:
            raise VaultError("master password cannot be empty")
        if self.exists():
            raise VaultError(f"vault already initialized at {self.db_path}")

        self.db_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        self._connect()
        self.conn.executescript(SCHEMA)

        with self.conn:
            self.conn.execute(
                "INSERT INTO metadata (key, value) VALUES (?, ?)",
                (MASTER_HASH_KEY, crypto.hash_password(master_password)),
            )

        self.master_password = master_password
        logger.info("Initialized vault at %s", self.db_path)

    def unlock(self, master_password: str) -> None:
        """
        Unlock an existing vault.

        The password is checked against the stored hash with
        crypto.verify_password (constant-time compare).

        Raises:
            VaultError: If the vault is not initialized or not a SQLite file
            WrongMasterPassword: If the password is wrong
        """
        if not self.exists():
            raise VaultError(f"vault not initialized at {self.db_path}")

        # Drop any connection left from an earlier unlock
        self.lock()
        self._connect()
        try:
            ok = crypto.verify_password(master_password, self._master_hash())
        except (crypto.CryptoError, VaultError):
            self.lock()
            raise
        if not ok:
            self.lock()
            logger.warning("Unlock rejected for %s", self.db_path)
            raise WrongMasterPassword("wrong master password")

        self.master_password = master_password
        logger.info("Unlocked vault at %s", self.db_path)

    def lock(self) -> None:
        """Forget the master password and close the database."""
        self.master_password = None
        if self.conn:
            self.conn.close()
            self.conn = None

    @property
    def unlocked(self) -> bool:
        return self.conn is not None and self.master_password is not None

    # -------------------------------------------------------------------------
    # Entries
    # -------------------------------------------------------------------------

    def save_entry(self, entry: PasswordEntry) -> int:
        """
        Insert an entry, or replace the one with the same name.

        The password and tag list are sealed with fresh envelopes every time.
        Replacing keeps the original id and created_at.

        Returns:
            Row id of the entry (also set on entry.id)
        """
        self._require_unlocked()
        if not entry.name or not entry.name.strip():
            raise VaultError("entry name is required")

        now = int(time.time())
        sealed_password = crypto.encrypt_text(entry.password or "", self.master_password)
        sealed_tags = crypto.encrypt_text(json.dumps(entry.tags or []), self.master_password)

        with self.conn:
            self.conn.execute(
                """INSERT INTO passwords (name, username, encrypted_password, url, notes,
                                         encrypted_tags, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(name) DO UPDATE SET
                       username = excluded.username,
                       encrypted_password = excluded.encrypted_password,
                       url = excluded.url,
                       notes = excluded.notes,
                       encrypted_tags = excluded.encrypted_tags,
                       updated_at = excluded.updated_at""",
                (entry.name, entry.username, sealed_password.to_json(), entry.url,
                 entry.notes, sealed_tags.to_json(), now, now)
            )

        row = self.conn.execute(
            "SELECT id, created_at, updated_at FROM passwords WHERE name = ?", (entry.name,)
        ).fetchone()
        entry.id = row["id"]
        entry.created_at = row["created_at"]
        entry.updated_at = row["updated_at"]
        logger.info("Saved entry %r", entry.name)
        return entry.id

    def get_entry(self, name: str) -> PasswordEntry:
        """
        Get an entry with its password and tags decrypted.

        Raises:
            EntryNotFound: If no entry has this name
            crypto.AuthenticationFailed: If a stored envelope was tampered with
        """
        self._require_unlocked()
        row = self.conn.execute(
            f"SELECT {_ENTRY_COLUMNS}, encrypted_password, encrypted_tags "
            "FROM passwords WHERE name = ?",
            (name,)
        ).fetchone()
        if not row:
            raise EntryNotFound(f"password not found: {name}")

        entry = PasswordEntry.from_row(row)
        entry.password = crypto.decrypt_text(
            crypto.Envelope.from_json(row["encrypted_password"]), self.master_password
        )
        tags = crypto.decrypt_text(
            crypto.Envelope.from_json(row["encrypted_tags"]), self.master_password
        )
        entry.tags = json.loads(tags) if tags else []
        return entry

    def list_entries(self) -> List[PasswordEntry]:
        """List entries (metadata only, nothing decrypted)."""
        self._require_unlocked()
        rows = self.conn.execute(
            f"SELECT {_ENTRY_COLUMNS} FROM passwords ORDER BY name"
        ).fetchall()
        return [PasswordEntry.from_row(row) for row in rows]

    def search(self, query: str) -> List[PasswordEntry]:
        """
        Substring search over name, username and url (case-insensitive).

        An empty query lists everything.
        """
        self._require_unlocked()
        if not query or not query.strip():
            return self.list_entries()

        pattern = f"%{query.lower()}%"
        rows = self.conn.execute(
            f"""SELECT {_ENTRY_COLUMNS} FROM passwords
                WHERE LOWER(name) LIKE ?
                   OR LOWER(COALESCE(username, '')) LIKE ?
                   OR LOWER(COALESCE(url, '')) LIKE ?
                ORDER BY name""",
            (pattern, pattern, pattern)
        ).fetchall()
        return [PasswordEntry.from_row(row) for row in rows]

    def delete_entry(self, name: str) -> None:
        """
        Permanently delete an entry.

        Raises:
            EntryNotFound: If no entry has this name
        """
        self._require_unlocked()
        with self.conn:
            cur = self.conn.execute("DELETE FROM passwords WHERE name = ?", (name,))
        if cur.rowcount == 0:
            raise EntryNotFound(f"password not found: {name}")
        logger.info("Deleted entry %r", name)

    def stats(self) -> Dict[str, int]:
        """Entry count, database file size and last modification time."""
        self._require_unlocked()
        count = self.conn.execute("SELECT COUNT(*) FROM passwords").fetchone()[0]
        info = os.stat(self.db_path)
        return {
            "total_passwords": count,
            "database_size": info.st_size,
            "modified_at": int(info.st_mtime),
        }

    def change_master_password(self, old_password: str, new_password: str) -> int:
        """
        Re-seal every stored envelope under a new master password.

        All rows are decrypted with the old password first; nothing is written
        unless every one of them opens. The rewrite happens in one
        transaction.

        Returns:
            Number of entries re-encrypted

        Raises:
            WrongMasterPassword: If old_password is wrong
            VaultError: If new_password is empty
            crypto.AuthenticationFailed: If any stored envelope fails to open
        """
        self._require_unlocked()
        if not new_password:
            raise VaultError("master password cannot be empty")
        if not crypto.verify_password(old_password, self._master_hash()):
            raise WrongMasterPassword("wrong master password")

        rows = self.conn.execute(
            "SELECT id, encrypted_password, encrypted_tags FROM passwords"
        ).fetchall()

        # 1. Decrypt everything with the old password
        plain = []
        for row in rows:
            password = crypto.decrypt_text(
                crypto.Envelope.from_json(row["encrypted_password"]), old_password
            )
            tags = crypto.decrypt_text(
                crypto.Envelope.from_json(row["encrypted_tags"]), old_password
            )
            plain.append((row["id"], password, tags))

        # 2. Re-seal with the new password and swap the hash
        with self.conn:
            for entry_id, password, tags in plain:
                self.conn.execute(
                    """UPDATE passwords SET encrypted_password = ?, encrypted_tags = ?
                       WHERE id = ?""",
                    (crypto.encrypt_text(password, new_password).to_json(),
                     crypto.encrypt_text(tags, new_password).to_json(),
                     entry_id)
                )
            self.conn.execute(
                "UPDATE metadata SET value = ? WHERE key = ?",
                (crypto.hash_password(new_password), MASTER_HASH_KEY)
            )

        self.master_password = new_password
        logger.info("Re-encrypted %d entries under a new master password", len(plain))
        return len(plain)

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def _connect(self) -> None:
        conn = None
        try:
            conn = sqlite3.connect(str(self.db_path))
            conn.row_factory = sqlite3.Row  # Access columns by name
            conn.executescript(PRAGMAS)
        except sqlite3.Error as e:
            if conn is not None:
                conn.close()
            raise VaultError(f"cannot open vault at {self.db_path}: {e}") from e
        self.conn = conn

    def _master_hash(self) -> str:
        row = self.conn.execute(
            "SELECT value FROM metadata WHERE key = ?", (MASTER_HASH_KEY,)
        ).fetchone()
        if not row:
            raise VaultError("vault has no master password hash")
        return row["value"]

    def _require_unlocked(self) -> None:
        """Check that vault is unlocked."""
        if not self.unlocked:
            raise VaultLocked("Vault is locked. Call unlock() first.")
