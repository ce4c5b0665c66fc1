"""
Merge audit trail for CustomerMerge.

Records every merge attempt, successful or not, so operators can trace
which records were folded into which primary and when.
"""

import json
import sqlite3
import logging
import threading
import pandas as pd
from datetime import datetime
from typing import Dict, List, Optional
from pathlib import Path

logger = logging.getLogger(__name__)


class MergeAuditLog:
    """
    SQLite-backed log of merge operations.

    Each call opens its own connection, so one instance can be shared by
    merges running on different threads.
    """

    def __init__(self, db_path: str = "data/merge_audit.db"):
        """
        Initialize merge audit log.

        Args:
            db_path: Path of the SQLite database file
        """
        self.db_path = db_path
        self._write_lock = threading.Lock()

        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

        logger.info(f"Initialized MergeAuditLog at {self.db_path}")

    def _init_database(self):
        """Create the merge log table if it does not exist."""
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS merge_log (
                    merge_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    group_id TEXT,
                    primary_id INTEGER NOT NULL,
                    primary_external_id TEXT,
                    absorbed_ids TEXT NOT NULL,
                    absorbed_count INTEGER NOT NULL,
                    success INTEGER NOT NULL,
                    message TEXT,
                    timestamp TEXT NOT NULL
                )
            ''')
            conn.commit()
        finally:
            conn.close()

    def record_merge(self, primary_id: int, primary_external_id: Optional[str],
                     absorbed_ids: List[str], success: bool,
                     message: Optional[str] = None,
                     group_id: Optional[str] = None) -> None:
        """
        Record one merge attempt.

        Args:
            primary_id: Internal id of the requested primary
            primary_external_id: External id of the primary, if it resolved
            absorbed_ids: External ids folded into the primary
            success: Whether the merge completed
            message: Failure message
            group_id: Caller bookkeeping id
        """
        with self._write_lock:
            conn = sqlite3.connect(self.db_path)
            try:
                conn.execute('''
                    INSERT INTO merge_log
                    (group_id, primary_id, primary_external_id, absorbed_ids,
                     absorbed_count, success, message, timestamp)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ''', [
                    group_id,
                    primary_id,
                    primary_external_id,
                    json.dumps(absorbed_ids),
                    len(absorbed_ids),
                    int(success),
                    message,
                    datetime.now().isoformat(),
                ])
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                logger.error(f"Failed to record merge for primary {primary_id}: {e}")
                raise
            finally:
                conn.close()

        logger.debug(f"Recorded merge attempt for primary {primary_id} (success={success})")

    def get_merge_history(self, primary_id: Optional[int] = None,
                          successful_only: bool = False) -> pd.DataFrame:
        """
        Get recorded merge attempts.

        Args:
            primary_id: Restrict to one primary record
            successful_only: Exclude failed attempts

        Returns:
            DataFrame of merge attempts, oldest first
        """
        query = "SELECT * FROM merge_log WHERE 1=1"
        params: List = []

        if primary_id is not None:
            query += " AND primary_id = ?"
            params.append(primary_id)

        if successful_only:
            query += " AND success = 1"

        query += " ORDER BY merge_id"

        conn = sqlite3.connect(self.db_path)
        try:
            df = pd.read_sql_query(query, conn, params=params)
        finally:
            conn.close()

        df["absorbed_ids"] = df["absorbed_ids"].apply(json.loads)
        df["success"] = df["success"].astype(bool)
        return df

    def get_audit_metrics(self) -> Dict[str, float]:
        """
        Summarize the merge log.

        Returns:
            Dictionary with attempt, success, failure and absorbed counts
        """
        df = self.get_merge_history()
        if df.empty:
            return {
                "total_attempts": 0,
                "successful_merges": 0,
                "failed_merges": 0,
                "records_absorbed": 0,
                "success_rate": 0.0
            }

        successful = int(df["success"].sum())
        return {
            "total_attempts": len(df),
            "successful_merges": successful,
            "failed_merges": len(df) - successful,
            "records_absorbed": int(df.loc[df["success"], "absorbed_count"].sum()),
            "success_rate": successful / len(df)
        }


def create_merge_audit_log(config: Dict) -> Optional[MergeAuditLog]:
    """
    Create a merge audit log from the ``audit`` configuration section.

    Args:
        config: Audit configuration

    Returns:
        MergeAuditLog instance, or None when auditing is disabled
    """
    if not config.get("enabled", False):
        return None
    return MergeAuditLog(config.get("db_path", "data/merge_audit.db"))
