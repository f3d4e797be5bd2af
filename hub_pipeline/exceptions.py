"""Exceptions raised by the enrichment pipeline."""


class HubPipelineError(Exception):
    """Base exception for pipeline errors."""
    pass


class ConfigurationError(HubPipelineError):
    """Configuration related error."""
    pass


class InputSourceError(HubPipelineError):
    """The address pair input could not be read. Raised before any batch starts."""
    pass


class SinkWriteError(HubPipelineError):
    """A batch could not be persisted; the run was aborted at ``batch_index``."""

    def __init__(self, batch_index: int, committed_rows: int, message: str):
        super().__init__(f"Failed to write batch {batch_index} "
                         f"({committed_rows} rows committed): {message}")
        self.batch_index = batch_index
        self.committed_rows = committed_rows
