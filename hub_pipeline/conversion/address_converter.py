"""
Address Conversion Module

Derives Cosmos Hub addresses from Stargaze addresses. Both chains use bech32
over the same key hash, so the conversion is a decode, prefix check and
re-encode with the other human-readable prefix.
"""
import logging
import os
from typing import Optional

import pandas as pd
from bech32 import bech32_decode, bech32_encode

from config.settings import ADDRESS_PREFIXES, CSV_COLUMNS
from hub_pipeline.exceptions import InputSourceError

logger = logging.getLogger(__name__)


def convert_address_prefix(address: str, from_prefix: str, to_prefix: str) -> Optional[str]:
    """
    Re-encode a bech32 address under another prefix.

    Args:
        address: Source address, e.g. stars1...
        from_prefix: Expected prefix of ``address``
        to_prefix: Prefix of the returned address

    Returns:
        Optional[str]: The converted address, or None if ``address`` is not a
        valid bech32 address with ``from_prefix``
    """
    prefix, words = bech32_decode(address.strip())
    if prefix is None:
        logger.error(f"Error converting address {address}: invalid bech32 string")
        return None

    if prefix != from_prefix:
        logger.error(f"Error converting address {address}: "
                     f"invalid prefix: expected {from_prefix} but got {prefix}")
        return None

    return bech32_encode(to_prefix, words)


def convert_wallets_file(
    input_path: str,
    output_path: str,
    from_prefix: str = ADDRESS_PREFIXES["source"],
    to_prefix: str = ADDRESS_PREFIXES["counterpart"],
) -> int:
    """
    Convert every address in the first column of ``input_path``.

    Rows that do not convert are logged and left out. The output has the
    source and counterpart address columns expected by the enrichment run.

    Returns:
        int: Number of converted addresses written
    """
    if not os.path.exists(input_path):
        raise InputSourceError(f"Wallet file not found: {input_path}")

    try:
        wallets = pd.read_csv(input_path, dtype=str, keep_default_na=False)
    except (OSError, UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise InputSourceError(f"Cannot read {input_path}: {e}") from e

    if wallets.columns.empty:
        raise InputSourceError(f"{input_path} has no columns")

    rows = []
    for source_address in wallets.iloc[:, 0]:
        counterpart = convert_address_prefix(source_address, from_prefix, to_prefix)
        if counterpart:
            rows.append({
                CSV_COLUMNS['source']: source_address.strip(),
                CSV_COLUMNS['counterpart']: counterpart,
            })

    df = pd.DataFrame(rows, columns=[CSV_COLUMNS['source'], CSV_COLUMNS['counterpart']])

    directory = os.path.dirname(output_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    df.to_csv(output_path, index=False, lineterminator='\n')

    logger.info(f"Converted {len(rows)} addresses successfully, output written to {output_path}")
    return len(rows)
