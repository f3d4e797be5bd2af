"""
Hub Pipeline Models

This module defines the data models for the account enrichment pipeline.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from enum import Enum


class StakingStatus(str, Enum):
    """Delegation status as persisted in the enriched CSV"""
    YES = "Yes"
    NO = "No"


class AddressPair(BaseModel):
    """A source-chain address and its derived counterpart-chain address"""
    model_config = ConfigDict(frozen=True)

    source_address: str = Field(..., min_length=1, description="Stargaze (stars...) address")
    counterpart_address: str = Field(..., min_length=1, description="Cosmos Hub (cosmos...) address")


class FetchResult(BaseModel):
    """
    Outcome of a single remote fetch.

    ``confirmed`` is False whenever ``value`` is the fallback substituted for
    a failed request, so callers can tell "confirmed empty" apart from
    "failed, assumed empty" even though the CSV does not.
    """
    model_config = ConfigDict(frozen=True)

    value: str
    confirmed: bool = True
    error: Optional[str] = Field(None, description="Failure reason when the value is a fallback")
    endpoint: Optional[str] = None


class EnrichmentRecord(BaseModel):
    """One output row: address pair plus fetched balance and staking status"""
    model_config = ConfigDict(frozen=True)

    source_address: str
    counterpart_address: str
    balance: str = Field(..., description="Balance in display units as a decimal string")
    is_staking: StakingStatus

    # Internal only, never written to the CSV
    balance_confirmed: bool = Field(True, exclude=True)
    staking_confirmed: bool = Field(True, exclude=True)

    @classmethod
    def from_results(cls, pair: AddressPair, balance: FetchResult, staking: FetchResult) -> 'EnrichmentRecord':
        """Build a record from the two fetch outcomes for ``pair``."""
        return cls(
            source_address=pair.source_address,
            counterpart_address=pair.counterpart_address,
            balance=balance.value,
            is_staking=StakingStatus(staking.value),
            balance_confirmed=balance.confirmed,
            staking_confirmed=staking.confirmed,
        )


class RunSummary(BaseModel):
    """What an enrichment run did, returned to the caller on completion"""
    total: int = 0
    processed: int = 0
    batches_written: int = 0
    defaulted_balances: int = 0
    defaulted_staking: int = 0
    resumed_from: int = 0
    stopped_early: bool = False
