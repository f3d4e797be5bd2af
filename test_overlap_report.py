#!/usr/bin/env python3
"""
Test Suite for the overlap statistics report
"""

import os
import sys
import tempfile
import unittest

import pandas as pd

sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from hub_pipeline.analysis.overlap_report import compute_overlap_stats, load_enriched_records, render_report
from hub_pipeline.exceptions import InputSourceError


def frame(rows):
    return pd.DataFrame(rows, columns=["StargazeAddress", "CosmosAddress", "Balance", "IsStaking"], dtype=str)


class TestComputeOverlapStats(unittest.TestCase):

    def setUp(self):
        self.records = frame([
            ["s1", "c1", "5", "No"],       # meaningful balance
            ["s2", "c2", "0.05", "No"],    # dust
            ["s3", "c3", "0.1", "Yes"],    # dust at threshold, staking
            ["s4", "c4", "0", "No"],       # nothing
            ["s5", "c5", "12.5", "Yes"],   # balance and staking
            ["s6", "c6", "0", "No"],       # nothing
            ["s7", "c7", "", "No"],        # unparseable balance counts as zero
            ["s8", "c8", "0", "No"],       # nothing
        ])

    def test_counts(self):
        stats = compute_overlap_stats(self.records, dust_threshold=0.1)

        self.assertEqual(stats.total_accounts, 8)
        self.assertEqual(stats.accounts_with_balance, 2)
        self.assertEqual(stats.accounts_with_dust, 2)
        self.assertEqual(stats.accounts_with_zero, 4)
        self.assertEqual(stats.accounts_staking, 2)
        self.assertEqual(stats.accounts_with_balance_or_staking, 3)
        self.assertEqual(stats.accounts_without_hub_activity, 5)
        self.assertEqual(stats.overlap_count, 2)
        self.assertEqual(stats.distinct_staking, 2)

    def test_percentages(self):
        stats = compute_overlap_stats(self.records, dust_threshold=0.1)

        self.assertEqual(stats.percent_with_balance, 25.0)
        self.assertEqual(stats.percent_without_hub_activity, 62.5)
        self.assertEqual(stats.percent_with_balance_or_staking, 37.5)
        self.assertEqual(stats.staking_among_holders, 100.0)
        self.assertEqual(stats.to_dict()["percent_with_dust"], 25.0)

    def test_threshold_is_configurable(self):
        stats = compute_overlap_stats(self.records, dust_threshold=0.01)
        self.assertEqual(stats.accounts_with_balance, 4)
        self.assertEqual(stats.accounts_with_dust, 0)

    def test_empty_input(self):
        stats = compute_overlap_stats(frame([]))
        self.assertEqual(stats.total_accounts, 0)
        self.assertEqual(stats.percent_with_balance, 0.0)
        self.assertEqual(stats.staking_among_holders, 0.0)

    def test_report_mentions_majority(self):
        report = render_report(compute_overlap_stats(self.records, dust_threshold=0.1))
        self.assertIn("5 Stargaze accounts (62.50%) have NO meaningful Cosmos Hub activity", report)
        self.assertIn("MAJORITY", report)

    def test_report_without_majority(self):
        records = frame([["s1", "c1", "3", "No"], ["s2", "c2", "0", "Yes"]])
        report = render_report(compute_overlap_stats(records))
        self.assertNotIn("MAJORITY", report)
        self.assertIn("Total Stargaze accounts analyzed: 2", report)


class TestLoadEnrichedRecords(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, "hub.csv")

    def tearDown(self):
        self.tmp.cleanup()

    def test_balances_kept_as_text(self):
        with open(self.path, "w", encoding="utf-8") as f:
            f.write("StargazeAddress,CosmosAddress,Balance,IsStaking\ns1,c1,0.000001,No\n")
        df = load_enriched_records(self.path)
        self.assertEqual(df.loc[0, "Balance"], "0.000001")

    def test_missing_column(self):
        with open(self.path, "w", encoding="utf-8") as f:
            f.write("StargazeAddress,Balance\ns1,1\n")
        with self.assertRaises(InputSourceError):
            load_enriched_records(self.path)

    def test_missing_file(self):
        with self.assertRaises(InputSourceError):
            load_enriched_records(self.path)


if __name__ == '__main__':
    unittest.main()
