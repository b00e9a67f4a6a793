from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Iterable, Optional

from core.models import Live, Subscription

# Persistance SQLite pour abonnements et chaînes (tables simples, aucune dépendance réseau).


class Storage:
    """Wrapper léger autour de sqlite3 pour stocker abonnements et chaînes (Live)."""
    def __init__(self, db_path: str | Path = "data/m3u.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        # Écritures sérialisées : plusieurs refresh peuvent tourner en parallèle.
        self._write_lock = threading.Lock()
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        # WAL + FK pour réduire le locking et garantir l'intégrité.
        con = sqlite3.connect(self.db_path)
        con.execute("PRAGMA journal_mode=WAL;")
        con.execute("PRAGMA foreign_keys=ON;")
        return con

    def _init_db(self) -> None:
        con = self._connect()
        try:
            con.executescript(
                """
                CREATE TABLE IF NOT EXISTS subscriptions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL DEFAULT '',
                    url   TEXT NOT NULL UNIQUE,
                    created_at TEXT DEFAULT (datetime('now'))
                );

                CREATE TABLE IF NOT EXISTS lives (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    subscription_url TEXT NOT NULL REFERENCES subscriptions(url) ON DELETE CASCADE,
                    url TEXT NOT NULL,
                    title TEXT,
                    group_title TEXT,
                    cover TEXT,
                    position INTEGER NOT NULL,
                    UNIQUE(subscription_url, url)
                );

                CREATE INDEX IF NOT EXISTS idx_lives_subscription ON lives(subscription_url, position);
                """
            )
            con.commit()
        finally:
            con.close()

    # -------------------------
    # Subscriptions
    # -------------------------
    def add_subscription(self, url: str, title: str = "") -> int:
        with self._write_lock:
            con = self._connect()
            try:
                con.execute("INSERT OR IGNORE INTO subscriptions(title, url) VALUES (?,?)", (title or "", url))
                if title:
                    con.execute("UPDATE subscriptions SET title=? WHERE url=?", (title, url))
                con.commit()
                row = con.execute("SELECT id FROM subscriptions WHERE url=?", (url,)).fetchone()
                return int(row[0])
            finally:
                con.close()

    def get_subscription(self, url: str) -> Optional[Subscription]:
        con = self._connect()
        try:
            row = con.execute("SELECT id, title, url FROM subscriptions WHERE url=?", (url,)).fetchone()
            return Subscription(*row) if row else None
        finally:
            con.close()

    def list_subscriptions(self) -> list[Subscription]:
        con = self._connect()
        try:
            rows = con.execute("SELECT id, title, url FROM subscriptions ORDER BY id ASC").fetchall()
            return [Subscription(*r) for r in rows]
        finally:
            con.close()

    def delete_subscription(self, url: str) -> None:
        with self._write_lock:
            con = self._connect()
            try:
                con.execute("DELETE FROM subscriptions WHERE url=?", (url,))
                con.commit()
            finally:
                con.close()

    # -------------------------
    # Lives
    # -------------------------
    def replace_lives(self, subscription_url: str, lives: Iterable[Live]) -> int:
        """
        Remplace l'ensemble des chaînes d'un abonnement.
        Doublons d'URL : la première occurrence est gardée. Une URL déjà connue
        conserve son id d'un refresh à l'autre.
        """
        rows: list[tuple] = []
        seen: set[str] = set()
        for live in lives:
            url = (live.url or "").strip()
            if not url or url in seen:
                continue
            seen.add(url)
            rows.append((url, live.title or "", live.group or "", live.cover or "", len(rows), subscription_url))

        with self._write_lock:
            con = self._connect()
            try:
                con.execute("INSERT OR IGNORE INTO subscriptions(url) VALUES (?)", (subscription_url,))
                existing = {
                    url for (url,) in con.execute(
                        "SELECT url FROM lives WHERE subscription_url=?", (subscription_url,)
                    )
                }

                stale = existing - seen
                con.executemany(
                    "DELETE FROM lives WHERE subscription_url=? AND url=?",
                    [(subscription_url, u) for u in stale],
                )
                con.executemany(
                    """
                    UPDATE lives SET title=?, group_title=?, cover=?, position=?
                    WHERE subscription_url=? AND url=?
                    """,
                    [r[1:] + (r[0],) for r in rows if r[0] in existing],
                )
                con.executemany(
                    """
                    INSERT INTO lives(url, title, group_title, cover, position, subscription_url)
                    VALUES (?,?,?,?,?,?)
                    """,
                    [r for r in rows if r[0] not in existing],
                )
                con.commit()
            finally:
                con.close()
        return len(rows)

    def get_lives(self, subscription_url: str) -> list[Live]:
        con = self._connect()
        try:
            rows = con.execute(
                """
                SELECT id, url, title, group_title, cover, subscription_url
                FROM lives
                WHERE subscription_url=?
                ORDER BY position ASC
                """,
                (subscription_url,),
            ).fetchall()
            return [self._row_to_live(r) for r in rows]
        finally:
            con.close()

    def get_live(self, live_id: int | str) -> Optional[Live]:
        con = self._connect()
        try:
            row = con.execute(
                "SELECT id, url, title, group_title, cover, subscription_url FROM lives WHERE id=?",
                (int(live_id),),
            ).fetchone()
            return self._row_to_live(row) if row else None
        finally:
            con.close()

    def count_lives(self, subscription_url: str) -> int:
        con = self._connect()
        try:
            (n,) = con.execute("SELECT COUNT(*) FROM lives WHERE subscription_url=?", (subscription_url,)).fetchone()
            return int(n)
        finally:
            con.close()

    @staticmethod
    def _row_to_live(r) -> Live:
        live_id, url, title, group_title, cover, subscription_url = r
        return Live(
            id=str(live_id),
            url=url,
            title=title or "",
            group=group_title or "",
            cover=cover or "",
            subscription_url=subscription_url,
        )
