"""
Pass persistence. The store is the sqlite database shared with the station's web panel:
    * decoded_passes: one row per captured pass, unique on pass_start.
    * predict_passes: scheduled passes; rows are deactivated once a decoded pass exists for them.
"""

import asyncio
import logging
import sqlite3
from contextlib import closing
from pathlib import Path

from meteor_rx.base.capture import PassRecord
from meteor_rx.base.config import PipelineConfig

logger = logging.getLogger(__name__)

DDL_DECODED_PASSES = """
CREATE TABLE IF NOT EXISTS decoded_passes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    pass_start INTEGER NOT NULL UNIQUE,
    file_path TEXT NOT NULL,
    daylight_pass INTEGER NOT NULL DEFAULT 0,
    sat_type INTEGER NOT NULL DEFAULT 0,
    has_spectrogram INTEGER NOT NULL DEFAULT 0,
    has_polar_az_el INTEGER NOT NULL DEFAULT 0,
    has_polar_direction INTEGER NOT NULL DEFAULT 0,
    gain
);
"""

DDL_PREDICT_PASSES = """
CREATE TABLE IF NOT EXISTS predict_passes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    sat_name TEXT,
    pass_start INTEGER NOT NULL,
    pass_end INTEGER,
    max_elev INTEGER,
    is_active INTEGER NOT NULL DEFAULT 1
);
"""

UPSERT_DECODED_PASS = """
INSERT OR REPLACE INTO decoded_passes
    (pass_start, file_path, daylight_pass, sat_type, has_spectrogram, has_polar_az_el, has_polar_direction, gain)
VALUES (?, ?, ?, ?, ?, ?, ?, ?);
"""

SUPERSEDE_PREDICTED_PASSES = """
UPDATE predict_passes
SET is_active = 0
WHERE predict_passes.pass_start IN (
    SELECT predict_passes.pass_start
    FROM predict_passes
    INNER JOIN decoded_passes
    ON predict_passes.pass_start = decoded_passes.pass_start
    WHERE decoded_passes.id = ?
);
"""


class PassRecorder:
    def __init__(self, config: PipelineConfig):
        self.db_path: Path = config.paths.db_file

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def init_db(self) -> None:
        """Create both tables if they do not exist yet."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with closing(self._connect()) as conn:
            conn.execute(DDL_DECODED_PASSES)
            conn.execute(DDL_PREDICT_PASSES)
            conn.commit()
        logger.info(f"Initialized pass database at {self.db_path}")

    def upsert(self, record: PassRecord) -> int:
        """Insert or replace the decoded pass keyed by pass_start. Returns the row id."""
        with closing(self._connect()) as conn:
            cursor = conn.execute(
                UPSERT_DECODED_PASS,
                (
                    record.pass_start,
                    record.file_path,
                    record.daylight_pass,
                    record.sat_type,
                    record.has_spectrogram,
                    record.has_polar_az_el,
                    record.has_polar_direction,
                    record.gain,
                ),
            )
            conn.commit()
            return cursor.lastrowid

    def supersede(self, pass_id: int) -> int:
        """Deactivate predicted passes sharing pass_start with decoded pass `pass_id`. Returns rows changed."""
        with closing(self._connect()) as conn:
            cursor = conn.execute(SUPERSEDE_PREDICTED_PASSES, (pass_id,))
            conn.commit()
            return cursor.rowcount

    async def record(self, record: PassRecord) -> int:
        """Persist `record` and retire its predictions.

        The two statements commit separately; a crash between them leaves the prediction active until the pass is
        recorded again.
        """
        pass_id = await asyncio.to_thread(self.upsert, record)
        superseded = await asyncio.to_thread(self.supersede, pass_id)
        logger.info(f"Recorded pass {record.file_path} as id {pass_id}, superseded {superseded} predicted passes")
        return pass_id
