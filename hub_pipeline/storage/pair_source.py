"""
Address pair input loading.

The whole pair file is read into memory before any batch starts, so a missing
or malformed input fails the run up front.
"""
import logging
import os
from typing import Dict, List, Optional

import pandas as pd

from config.settings import CSV_COLUMNS
from hub_pipeline.exceptions import InputSourceError
from hub_pipeline.models import AddressPair

logger = logging.getLogger(__name__)


def load_address_pairs(path: str, columns: Optional[Dict[str, str]] = None) -> List[AddressPair]:
    """
    Load address pairs from a CSV file

    Args:
        path: CSV with a source and a counterpart address column
        columns: Column titles, defaults to CSV_COLUMNS

    Returns:
        List[AddressPair]: Pairs in file order

    Raises:
        InputSourceError: The file is missing, unreadable or lacks a required column
    """
    columns = columns or CSV_COLUMNS
    source_col, counterpart_col = columns['source'], columns['counterpart']

    if not os.path.exists(path):
        raise InputSourceError(f"Input file not found: {path}")

    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    except (OSError, UnicodeDecodeError, pd.errors.ParserError) as e:
        raise InputSourceError(f"Cannot read {path}: {e}") from e
    except pd.errors.EmptyDataError:
        logger.warning(f"Input file {path} is empty")
        return []

    missing = [c for c in (source_col, counterpart_col) if c not in df.columns]
    if missing:
        raise InputSourceError(f"{path} is missing column(s): {', '.join(missing)}")

    # Short rows come back as NaN even with keep_default_na off
    df = df.fillna('')

    pairs = []
    skipped = 0
    for source, counterpart in zip(df[source_col], df[counterpart_col]):
        source, counterpart = source.strip(), counterpart.strip()
        if not source or not counterpart:
            skipped += 1
            continue
        pairs.append(AddressPair(source_address=source, counterpart_address=counterpart))

    if skipped:
        logger.warning(f"Skipped {skipped} rows with a blank address in {path}")

    logger.info(f"Loaded {len(pairs)} address pairs from {path}")
    return pairs
