#!/usr/bin/env python3
"""
Test Suite for the CSV Result Sink and the pair loader

Covers batch appends, reset idempotence, recovery of an interrupted batch
and the fatal error paths.
"""

import json
import os
import sys
import tempfile
import unittest

sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from hub_pipeline.exceptions import HubPipelineError, InputSourceError, SinkWriteError
from hub_pipeline.models import EnrichmentRecord, StakingStatus
from hub_pipeline.storage.pair_source import load_address_pairs
from hub_pipeline.storage.result_sink import CsvResultSink

HEADER = "StargazeAddress,CosmosAddress,Balance,IsStaking\n"


def record(n, balance="0", staking="No"):
    return EnrichmentRecord(
        source_address=f"stars1a{n}",
        counterpart_address=f"cosmos1c{n}",
        balance=balance,
        is_staking=StakingStatus(staking),
    )


class TestCsvResultSink(unittest.TestCase):
    """Batch-atomic CSV persistence."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, "out", "hub.csv")

    def tearDown(self):
        self.tmp.cleanup()

    def _read(self, path=None):
        with open(path or self.path, "r", encoding="utf-8") as f:
            return f.read()

    def test_batches_appended_in_order(self):
        sink = CsvResultSink(self.path)
        sink.reset()
        sink.append_batch([record(1, "5"), record(2)])
        sink.append_batch([record(3, "0", "Yes")])

        self.assertEqual(self._read(), HEADER +
                         "stars1a1,cosmos1c1,5,No\n"
                         "stars1a2,cosmos1c2,0,No\n"
                         "stars1a3,cosmos1c3,0,Yes\n")
        self.assertEqual(sink.committed_rows, 3)
        self.assertEqual(sink.committed_batches, 2)

    def test_balance_kept_as_text(self):
        sink = CsvResultSink(self.path)
        sink.reset()
        sink.append_batch([record(1, "0.000001"), record(2, "1234567.5")])
        self.assertIn(",0.000001,", self._read())
        self.assertIn(",1234567.5,", self._read())

    def test_reset_is_idempotent(self):
        """Two separate runs with the same data produce identical bytes."""
        batches = [[record(1, "5"), record(2)], [record(3, "0.25", "Yes")]]

        contents = []
        for _ in range(2):
            sink = CsvResultSink(self.path)
            sink.reset()
            for batch in batches:
                sink.append_batch(batch)
            with open(self.path, "rb") as f:
                contents.append(f.read())

        self.assertEqual(contents[0], contents[1])

    def test_reset_discards_previous_output(self):
        sink = CsvResultSink(self.path)
        sink.reset()
        sink.append_batch([record(1)])
        sink.reset()

        self.assertFalse(os.path.exists(self.path))
        self.assertFalse(os.path.exists(sink.progress_path))
        self.assertEqual(sink.committed_rows, 0)

    def test_commit_marker_tracks_batches(self):
        sink = CsvResultSink(self.path)
        sink.reset()
        sink.append_batch([record(1), record(2)])

        with open(sink.progress_path, "r", encoding="utf-8") as f:
            state = json.load(f)
        self.assertEqual(state["rows"], 2)
        self.assertEqual(state["batches"], 1)
        self.assertEqual(state["bytes"], os.path.getsize(self.path))

    def test_recover_cuts_interrupted_batch(self):
        sink = CsvResultSink(self.path)
        sink.reset()
        sink.append_batch([record(1), record(2)])
        committed = self._read()

        # Simulate a crash halfway through the next batch
        with open(self.path, "a", encoding="utf-8") as f:
            f.write("stars1a3,cosmos1c3,0,N")

        resumed = CsvResultSink(self.path)
        self.assertEqual(resumed.recover(), 2)
        self.assertEqual(self._read(), committed)

        resumed.append_batch([record(3)])
        self.assertEqual(self._read(), committed + "stars1a3,cosmos1c3,0,No\n")
        self.assertEqual(resumed.committed_batches, 2)

    def test_recover_on_fresh_sink(self):
        self.assertEqual(CsvResultSink(self.path).recover(), 0)

    def test_recover_without_marker_refuses(self):
        os.makedirs(os.path.dirname(self.path))
        with open(self.path, "w", encoding="utf-8") as f:
            f.write(HEADER + "stars1a1,cosmos1c1,5,No\n")

        with self.assertRaises(HubPipelineError):
            CsvResultSink(self.path).recover()

    def test_write_failure_reports_batch(self):
        # A directory where the CSV should be makes every write fail
        os.makedirs(self.path)
        sink = CsvResultSink(self.path)

        with self.assertRaises(SinkWriteError) as ctx:
            sink.append_batch([record(1)], batch_index=4)

        self.assertEqual(ctx.exception.batch_index, 4)
        self.assertEqual(ctx.exception.committed_rows, 0)
        self.assertEqual(sink.committed_rows, 0)

    def test_reset_failure_is_sink_error(self):
        # An existing directory at the output path cannot be removed as a file
        os.makedirs(self.path)
        sink = CsvResultSink(self.path)

        with self.assertRaises(SinkWriteError) as ctx:
            sink.reset()

        self.assertEqual(ctx.exception.batch_index, 0)
        self.assertEqual(ctx.exception.committed_rows, 0)
        self.assertTrue(os.path.isdir(self.path))

    def test_recover_with_corrupt_marker_refuses(self):
        sink = CsvResultSink(self.path)
        sink.reset()
        sink.append_batch([record(1)])

        for content in ('{trunc', '[1, 2]', '{"bytes": "many", "rows": 1, "batches": 1}'):
            with open(sink.progress_path, "w", encoding="utf-8") as f:
                f.write(content)
            with self.assertRaises(HubPipelineError) as ctx:
                CsvResultSink(self.path).recover()
            self.assertNotIsInstance(ctx.exception, SinkWriteError)
            self.assertIn("without --resume", str(ctx.exception))

    def test_empty_batch_is_noop(self):
        sink = CsvResultSink(self.path)
        sink.reset()
        sink.append_batch([])
        self.assertFalse(os.path.exists(self.path))
        self.assertEqual(sink.committed_batches, 0)


class TestLoadAddressPairs(unittest.TestCase):
    """Reading the address pair input."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.tmp.cleanup()

    def _write(self, name, text):
        path = os.path.join(self.tmp.name, name)
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
        return path

    def test_pairs_in_file_order(self):
        path = self._write("pairs.csv",
                           "StargazeAddress,CosmosAddress\n"
                           "stars1b,cosmos1b\n"
                           "stars1a,cosmos1a\n")
        pairs = load_address_pairs(path)
        self.assertEqual([p.source_address for p in pairs], ["stars1b", "stars1a"])
        self.assertEqual(pairs[1].counterpart_address, "cosmos1a")

    def test_blank_rows_skipped(self):
        path = self._write("pairs.csv",
                           "StargazeAddress,CosmosAddress\n"
                           "stars1a,cosmos1a\n"
                           "stars1b,\n")
        self.assertEqual(len(load_address_pairs(path)), 1)

    def test_missing_file(self):
        with self.assertRaises(InputSourceError):
            load_address_pairs(os.path.join(self.tmp.name, "nope.csv"))

    def test_missing_column(self):
        path = self._write("pairs.csv", "Address\nstars1a\n")
        with self.assertRaises(InputSourceError):
            load_address_pairs(path)

    def test_empty_file(self):
        path = self._write("pairs.csv", "")
        self.assertEqual(load_address_pairs(path), [])


if __name__ == '__main__':
    unittest.main()
