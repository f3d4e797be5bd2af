"""
Result Sink Module

Append-only CSV store for enrichment records with batch-level atomicity.

Each batch is rendered in memory, written in one call, flushed and fsynced;
only then is the commit marker (``<csv>.progress.json``) replaced atomically
with the new byte length, row count and batch count. Anything past the last
committed length belongs to an interrupted batch and is cut off before the
next write, so the file always ends on a batch boundary.
"""
import json
import logging
import os
from typing import Any, Dict, Optional, Sequence

import pandas as pd

from config.settings import CSV_COLUMNS
from hub_pipeline.exceptions import HubPipelineError, SinkWriteError
from hub_pipeline.models import EnrichmentRecord

logger = logging.getLogger(__name__)

EMPTY_STATE = {'bytes': 0, 'rows': 0, 'batches': 0}


def _write_json_atomic(path: str, data: Any) -> None:
    tmp = f"{path}.tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, sort_keys=True)
        f.write("\n")
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp, path)


class CsvResultSink:
    """Persists enrichment records to a CSV file, one batch at a time."""

    def __init__(self, path: str, columns: Optional[Dict[str, str]] = None):
        self.path = path
        self.progress_path = f"{path}.progress.json"
        self.columns = columns or CSV_COLUMNS
        self.fieldnames = [
            self.columns['source'],
            self.columns['counterpart'],
            self.columns['balance'],
            self.columns['staking'],
        ]
        self._state: Dict[str, int] = dict(EMPTY_STATE)

    @property
    def committed_rows(self) -> int:
        return self._state['rows']

    @property
    def committed_batches(self) -> int:
        return self._state['batches']

    def reset(self) -> None:
        """
        Discard any previous output of this sink.

        Raises:
            SinkWriteError: The old output cannot be removed or the directory created
        """
        try:
            for path in (self.path, self.progress_path, f"{self.progress_path}.tmp"):
                if os.path.exists(path):
                    os.remove(path)

            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
        except OSError as e:
            raise SinkWriteError(0, 0, f"cannot reset {self.path}: {e}") from e

        self._state = dict(EMPTY_STATE)
        logger.info(f"Reset result sink {self.path}")

    def recover(self) -> int:
        """
        Load the commit marker and cut any partially written batch.

        Returns:
            int: Number of rows durably committed by earlier runs

        Raises:
            HubPipelineError: The marker is missing, corrupt or disagrees with the CSV
            SinkWriteError: The interrupted batch cannot be cut off
        """
        if not os.path.exists(self.progress_path):
            if os.path.exists(self.path) and os.path.getsize(self.path) > 0:
                raise HubPipelineError(
                    f"{self.path} has no commit marker; cannot tell which batches are complete"
                )
            self._state = dict(EMPTY_STATE)
            return 0

        try:
            with open(self.progress_path, 'r', encoding='utf-8') as f:
                state = json.load(f)
            if not isinstance(state, dict):
                raise ValueError(f"expected an object, got {type(state).__name__}")
            committed = {key: int(state.get(key, 0)) for key in EMPTY_STATE}
        except (OSError, ValueError, TypeError) as e:
            raise HubPipelineError(
                f"Commit marker {self.progress_path} is unreadable ({e}); "
                f"rerun without --resume to start over"
            ) from e
        if any(value < 0 for value in committed.values()):
            raise HubPipelineError(
                f"Commit marker {self.progress_path} holds negative counts; "
                f"rerun without --resume to start over"
            )
        self._state = committed

        size = os.path.getsize(self.path) if os.path.exists(self.path) else 0
        if size < self._state['bytes']:
            raise HubPipelineError(
                f"{self.path} is shorter ({size} bytes) than its committed length "
                f"({self._state['bytes']} bytes)"
            )
        if size > self._state['bytes']:
            logger.warning(f"Discarding {size - self._state['bytes']} bytes of an interrupted batch in {self.path}")
            try:
                with open(self.path, 'r+b') as f:
                    f.truncate(self._state['bytes'])
            except OSError as e:
                raise SinkWriteError(self._state['batches'], self._state['rows'],
                                     f"cannot cut interrupted batch from {self.path}: {e}") from e

        logger.info(f"Recovered {self._state['rows']} committed rows "
                    f"({self._state['batches']} batches) from {self.path}")
        return self._state['rows']

    def render(self, records: Sequence[EnrichmentRecord], header: bool) -> str:
        """CSV text for ``records``, with the header row when ``header`` is set."""
        df = pd.DataFrame(
            [
                [r.source_address, r.counterpart_address, r.balance, r.is_staking.value]
                for r in records
            ],
            columns=self.fieldnames,
            dtype=str,
        )
        return df.to_csv(index=False, header=header, lineterminator='\n')

    def append_batch(self, records: Sequence[EnrichmentRecord], batch_index: Optional[int] = None) -> None:
        """
        Durably append ``records`` after every previously committed batch.

        Raises:
            SinkWriteError: The batch could not be written; nothing of it is committed
        """
        if not records:
            return

        if batch_index is None:
            batch_index = self._state['batches']

        data = self.render(records, header=self._state['bytes'] == 0).encode('utf-8')
        new_state = {
            'bytes': self._state['bytes'] + len(data),
            'rows': self._state['rows'] + len(records),
            'batches': self._state['batches'] + 1,
        }

        try:
            mode = 'r+b' if os.path.exists(self.path) else 'wb'
            with open(self.path, mode) as f:
                f.seek(self._state['bytes'])
                f.truncate()
                f.write(data)
                f.flush()
                os.fsync(f.fileno())

            _write_json_atomic(self.progress_path, new_state)
        except OSError as e:
            raise SinkWriteError(batch_index, self._state['rows'], str(e)) from e

        self._state = new_state
        logger.debug(f"Committed batch {batch_index}: {len(records)} rows, "
                     f"{new_state['rows']} total")
