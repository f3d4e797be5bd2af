# utils/base_helpers.py
"""Base helper functions to avoid circular imports"""
from collections import Counter

from config.settings import print_lock, RUNTIME_ERRORS

GENERAL_SOURCE = 'pipeline'


def safe_print(*args, **kwargs):
    """Thread-safe print function"""
    with print_lock:
        print(*args, **kwargs)


def log_error(error_message: str, source: str = GENERAL_SOURCE):
    """
    Record a runtime error against the endpoint (or stage) that produced it.

    Identical messages from the same source are counted rather than repeated,
    and long messages are truncated to keep the summary readable.
    """
    if len(error_message) > 250:
        error_message = error_message[:250] + "..."
    with print_lock:
        RUNTIME_ERRORS.setdefault(source, Counter())[error_message] += 1


def clear_errors():
    """Forget errors from a previous run."""
    RUNTIME_ERRORS.clear()


def error_counts_by_source() -> dict:
    """Total number of recorded failures per source."""
    return {source: sum(counts.values()) for source, counts in RUNTIME_ERRORS.items()}


def print_error_summary():
    """
    Prints the runtime errors of the run grouped by source, busiest source
    first, so a failing endpoint stands out from occasional noise.
    """
    if not RUNTIME_ERRORS:
        safe_print("✅ No runtime errors detected!")
        return

    totals = error_counts_by_source()
    unique = sum(len(counts) for counts in RUNTIME_ERRORS.values())

    safe_print(f"\n{'='*60}")
    safe_print(f"🚨 RUNTIME ERROR SUMMARY ({sum(totals.values())} failures, "
               f"{unique} unique, {len(totals)} sources)")
    safe_print(f"{'='*60}")

    for source in sorted(totals, key=lambda s: (-totals[s], s)):
        safe_print(f"{source}: {totals[source]} failures")
        for error, count in sorted(RUNTIME_ERRORS[source].items(), key=lambda item: (-item[1], item[0])):
            safe_print(f"   {count:4d} x {error}")

    safe_print(f"{'='*60}\n")
