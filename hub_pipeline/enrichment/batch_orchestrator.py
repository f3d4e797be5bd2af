"""
Batch Orchestrator Module

Drives the enrichment of address pairs in fixed-size batches:

1. Running  - dispatch a balance and a staking lookup for every pair of the batch
2. Draining - wait until every lookup of the batch has resolved
3. Persist  - append the batch's records to the result sink, log progress
4. Paused   - sleep between batches to throttle the aggregate request rate

Lookups never raise (see HubFetcher), so the only ways a run stops early are
an unreadable input, a sink write failure or the shutdown flag being set
between batches.
"""
import asyncio
import logging
from enum import Enum
from threading import Event
from typing import Awaitable, Callable, List, Optional, Sequence

from config.logging_config import RunLogger, get_run_logger
from config.settings import HUB_CONFIG, shutdown_flag
from hub_pipeline.exceptions import ConfigurationError, SinkWriteError
from hub_pipeline.fetching.endpoint_pool import EndpointPool
from hub_pipeline.fetching.hub_fetcher import HubFetcher
from hub_pipeline.models import AddressPair, EnrichmentRecord, RunSummary
from hub_pipeline.storage.pair_source import load_address_pairs
from hub_pipeline.storage.result_sink import CsvResultSink

logger = logging.getLogger(__name__)


class BatchState(str, Enum):
    """Orchestrator lifecycle"""
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    PAUSED = "paused"
    DONE = "done"


def split_batches(pairs: Sequence[AddressPair], batch_size: int) -> List[List[AddressPair]]:
    """Consecutive slices of ``pairs``, each at most ``batch_size`` long."""
    if batch_size < 1:
        raise ConfigurationError(f"batch size must be positive, got {batch_size}")
    return [list(pairs[i:i + batch_size]) for i in range(0, len(pairs), batch_size)]


class BatchOrchestrator:
    """
    Enriches address pairs batch by batch and appends them to a result sink.

    Batches are strictly sequential: batch i+1 is dispatched only after batch
    i has been drained and committed.
    """

    def __init__(
        self,
        fetcher: HubFetcher,
        sink: CsvResultSink,
        batch_size: int = HUB_CONFIG["batch_size"],
        batch_delay: float = HUB_CONFIG["batch_delay"],
        run_logger: Optional[RunLogger] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        stop_event: Event = shutdown_flag,
    ):
        if batch_size < 1:
            raise ConfigurationError(f"batch size must be positive, got {batch_size}")
        if batch_delay < 0:
            raise ConfigurationError(f"batch delay cannot be negative, got {batch_delay}")

        self.fetcher = fetcher
        self.sink = sink
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.run_logger = run_logger or get_run_logger()
        self._sleep = sleep
        self.stop_event = stop_event
        self.state = BatchState.IDLE

    async def process_batch(self, batch: Sequence[AddressPair]) -> List[EnrichmentRecord]:
        """
        Look up balance and staking for every pair of ``batch`` concurrently.

        Returns:
            List[EnrichmentRecord]: One record per pair, in input order
        """
        self.state = BatchState.RUNNING
        tasks = []
        for pair in batch:
            tasks.append(asyncio.ensure_future(self.fetcher.fetch_balance_result(pair.counterpart_address)))
            tasks.append(asyncio.ensure_future(self.fetcher.fetch_staking_status_result(pair.counterpart_address)))

        self.state = BatchState.DRAINING
        results = await asyncio.gather(*tasks)

        # gather keeps argument order, so results line up with the batch
        return [
            EnrichmentRecord.from_results(pair, results[2 * i], results[2 * i + 1])
            for i, pair in enumerate(batch)
        ]

    async def run(self, pairs: Sequence[AddressPair], resume: bool = False) -> RunSummary:
        """
        Enrich ``pairs`` and persist them batch by batch.

        Args:
            pairs: Address pairs in input order
            resume: Continue after the rows an interrupted run already
                committed instead of resetting the sink

        Returns:
            RunSummary: Counts for the run

        Raises:
            SinkWriteError: A batch could not be persisted
        """
        total = len(pairs)
        if resume:
            start = self.sink.recover()
            if start > total:
                raise ConfigurationError(
                    f"sink holds {start} rows but the input only has {total} pairs"
                )
        else:
            self.sink.reset()
            start = 0

        first_batch_index = self.sink.committed_batches
        batches = split_batches(pairs[start:], self.batch_size)
        summary = RunSummary(total=total, processed=start, resumed_from=start)

        self.run_logger.info(
            f"Processing {total} addresses in {len(batches)} batches",
            total=total, batch_size=self.batch_size, resumed_from=start,
        )

        for n, batch in enumerate(batches):
            if self.stop_event.is_set():
                self.run_logger.warning("Shutdown requested, stopping before next batch",
                                        processed=summary.processed)
                summary.stopped_early = True
                break

            batch_index = first_batch_index + n
            self.run_logger.batch_index = batch_index

            records = await self.process_batch(batch)

            try:
                self.sink.append_batch(records, batch_index)
            except SinkWriteError as e:
                self.run_logger.batch_failed(str(e), e.committed_rows)
                raise

            defaulted_balances = sum(1 for r in records if not r.balance_confirmed)
            defaulted_staking = sum(1 for r in records if not r.staking_confirmed)
            summary.processed += len(records)
            summary.batches_written += 1
            summary.defaulted_balances += defaulted_balances
            summary.defaulted_staking += defaulted_staking
            self.run_logger.batch_written(summary.processed, total, defaulted_balances + defaulted_staking)

            if n < len(batches) - 1:
                self.state = BatchState.PAUSED
                self.run_logger.debug(f"Waiting {self.batch_delay:g} seconds before processing next batch...")
                await self._sleep(self.batch_delay)

        self.state = BatchState.DONE
        self.run_logger.batch_index = None
        self.run_logger.info(
            f"Completed processing {summary.processed} addresses",
            processed=summary.processed,
            defaulted_balances=summary.defaulted_balances,
            defaulted_staking=summary.defaulted_staking,
        )
        return summary


async def run_enrichment(
    input_path: str,
    output_path: str,
    endpoints: Optional[Sequence[str]] = None,
    batch_size: int = HUB_CONFIG["batch_size"],
    batch_delay: float = HUB_CONFIG["batch_delay"],
    timeout: float = HUB_CONFIG["request_timeout"],
    resume: bool = False,
) -> RunSummary:
    """
    Load the pair file, enrich it and write the result CSV.

    The input is read in full before the output is touched, so an unreadable
    input leaves any previous output in place.
    """
    pairs = load_address_pairs(input_path)

    pool = EndpointPool(endpoints or HUB_CONFIG["endpoints"])
    sink = CsvResultSink(output_path)

    async with HubFetcher(pool, timeout=timeout) as fetcher:
        orchestrator = BatchOrchestrator(fetcher, sink, batch_size=batch_size, batch_delay=batch_delay)
        summary = await orchestrator.run(pairs, resume=resume)

    logger.info(f"All results written to {output_path}")
    return summary
