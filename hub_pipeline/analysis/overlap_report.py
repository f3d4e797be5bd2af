"""
Overlap Report Module

Aggregate statistics over the enriched CSV: how many Stargaze accounts hold a
meaningful ATOM balance or stake on Cosmos Hub, and how many have no Hub
activity at all. Balances at or below the dust threshold count as dust, not as
meaningful holdings.
"""
import logging
import os
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

import pandas as pd

from config.settings import CSV_COLUMNS, HUB_CONFIG, REPORT_SETTINGS
from hub_pipeline.exceptions import InputSourceError
from hub_pipeline.models import StakingStatus

logger = logging.getLogger(__name__)


def _percent(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return round(part / whole * 100, 2)


@dataclass
class OverlapStats:
    """Cross-chain overlap figures for one enriched dataset."""
    dust_threshold: float
    total_accounts: int = 0
    accounts_with_balance: int = 0
    accounts_with_dust: int = 0
    accounts_with_zero: int = 0
    accounts_staking: int = 0
    accounts_with_balance_or_staking: int = 0
    accounts_without_hub_activity: int = 0
    overlap_count: int = 0
    distinct_staking: int = 0

    @property
    def percent_with_balance(self) -> float:
        return _percent(self.accounts_with_balance, self.total_accounts)

    @property
    def percent_with_dust(self) -> float:
        return _percent(self.accounts_with_dust, self.total_accounts)

    @property
    def percent_with_zero(self) -> float:
        return _percent(self.accounts_with_zero, self.total_accounts)

    @property
    def percent_staking(self) -> float:
        return _percent(self.accounts_staking, self.total_accounts)

    @property
    def percent_with_balance_or_staking(self) -> float:
        return _percent(self.accounts_with_balance_or_staking, self.total_accounts)

    @property
    def percent_without_hub_activity(self) -> float:
        return _percent(self.accounts_without_hub_activity, self.total_accounts)

    @property
    def percent_overlap(self) -> float:
        return _percent(self.overlap_count, self.total_accounts)

    @property
    def percent_distinct_staking(self) -> float:
        return _percent(self.distinct_staking, self.total_accounts)

    @property
    def staking_among_holders(self) -> float:
        """Stakers as a share of accounts with a meaningful balance."""
        return _percent(self.accounts_staking, self.accounts_with_balance)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for name in ('percent_with_balance', 'percent_with_dust', 'percent_with_zero',
                     'percent_staking', 'percent_with_balance_or_staking',
                     'percent_without_hub_activity', 'percent_overlap',
                     'percent_distinct_staking', 'staking_among_holders'):
            data[name] = getattr(self, name)
        return data


def load_enriched_records(path: str) -> pd.DataFrame:
    """Load the enriched CSV written by the enrichment run."""
    if not os.path.exists(path):
        raise InputSourceError(f"Enriched file not found: {path}")

    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError:
        return pd.DataFrame(columns=list(CSV_COLUMNS.values()))
    except (OSError, UnicodeDecodeError, pd.errors.ParserError) as e:
        raise InputSourceError(f"Cannot read {path}: {e}") from e

    missing = [c for c in CSV_COLUMNS.values() if c not in df.columns]
    if missing:
        raise InputSourceError(f"{path} is missing column(s): {', '.join(missing)}")
    return df


def compute_overlap_stats(records: pd.DataFrame,
                          dust_threshold: float = REPORT_SETTINGS["dust_threshold"]) -> OverlapStats:
    """
    Compute overlap statistics for enriched records.

    Args:
        records: DataFrame with the CSV_COLUMNS columns
        dust_threshold: Balances at or below this (and above zero) are dust

    Returns:
        OverlapStats
    """
    source = records[CSV_COLUMNS['source']]
    balances = pd.to_numeric(records[CSV_COLUMNS['balance']], errors='coerce').fillna(0.0)
    staking = records[CSV_COLUMNS['staking']] == StakingStatus.YES.value

    meaningful = balances > dust_threshold
    dust = (balances > 0) & ~meaningful

    return OverlapStats(
        dust_threshold=dust_threshold,
        total_accounts=len(records),
        accounts_with_balance=int(meaningful.sum()),
        accounts_with_dust=int(dust.sum()),
        accounts_with_zero=int((~meaningful & ~dust).sum()),
        accounts_staking=int(staking.sum()),
        accounts_with_balance_or_staking=int(source[meaningful | staking].nunique()),
        accounts_without_hub_activity=len(records) - int(source[meaningful | staking].nunique()),
        overlap_count=int(source[meaningful].nunique()),
        distinct_staking=int(source[staking].nunique()),
    )


def render_report(stats: OverlapStats, denom: Optional[str] = None) -> str:
    """Human-readable report text for ``stats``."""
    denom = denom or HUB_CONFIG["display_denom"]
    t = stats.dust_threshold
    lines = [
        "=== STARGAZE ACCOUNTS NOT REPRESENTED ON COSMOS HUB ===",
        f"🚨 SIGNIFICANT FINDING: {stats.accounts_without_hub_activity} Stargaze accounts "
        f"({stats.percent_without_hub_activity:.2f}%) have NO meaningful Cosmos Hub activity",
        f"   - These accounts have neither meaningful balance (>{t:g} {denom}) nor staking on Cosmos Hub",
        "",
        "=== Balance Analysis (Dust Filtered) ===",
        f"Dust threshold: {t:g} {denom} (balances below this are considered dust)",
        f"Total Stargaze accounts analyzed: {stats.total_accounts:,}",
        f"Accounts with meaningful Hub balance (>{t:g}): {stats.accounts_with_balance:,} "
        f"({stats.percent_with_balance:.2f}%)",
        f"Accounts with dust balance (0-{t:g}): {stats.accounts_with_dust:,} ({stats.percent_with_dust:.2f}%)",
        f"Accounts with zero balance: {stats.accounts_with_zero:,} ({stats.percent_with_zero:.2f}%)",
        f"Accounts staking {denom}: {stats.accounts_staking:,} ({stats.percent_staking:.2f}%)",
        f"Accounts with meaningful balance OR staking: {stats.accounts_with_balance_or_staking:,} "
        f"({stats.percent_with_balance_or_staking:.2f}%)",
        "",
        "=== Hub Activity Breakdown ===",
        f"✅ Stargaze accounts WITH Hub activity: {stats.accounts_with_balance_or_staking:,} "
        f"({stats.percent_with_balance_or_staking:.2f}%)",
        f"❌ Stargaze accounts WITHOUT Hub activity: {stats.accounts_without_hub_activity:,} "
        f"({stats.percent_without_hub_activity:.2f}%)",
        "",
        "=== Detailed Hub Engagement ===",
        f"Stargaze accounts with meaningful Cosmos Hub balance: {stats.overlap_count:,} "
        f"({stats.percent_overlap:.2f}%)",
        f"Stargaze accounts staking {denom}: {stats.distinct_staking:,} ({stats.percent_distinct_staking:.2f}%)",
        f"Of Stargaze accounts with meaningful Hub balance, {stats.staking_among_holders:.2f}% "
        f"are also staking {denom}",
        "",
        "=== KEY INSIGHTS (Dust Filtered) ===",
        f"📊 {stats.accounts_without_hub_activity:,} Stargaze accounts "
        f"({stats.percent_without_hub_activity:.2f}%) exist independently of Cosmos Hub",
        f"🗑️  {stats.accounts_with_dust:,} accounts ({stats.percent_with_dust:.2f}%) hold only dust amounts",
    ]

    if stats.percent_without_hub_activity > REPORT_SETTINGS["majority_threshold"]:
        lines.append("🎯 MAJORITY of Stargaze accounts are NOT meaningfully represented on Cosmos Hub")

    return "\n".join(lines)
