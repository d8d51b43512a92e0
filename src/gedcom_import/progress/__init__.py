from .error_log import (
    CSV_HEADER,
    ErrorLog,
    error_log_csv,
    error_log_filename,
    write_error_log,
)
from .reporter import (
    PHASE_BANDS,
    PHASE_COMMIT,
    PHASE_MATCHING,
    PHASE_PARSING,
    ProgressReporter,
    progress_snapshot,
)

__all__ = [
    "CSV_HEADER",
    "ErrorLog",
    "PHASE_BANDS",
    "PHASE_COMMIT",
    "PHASE_MATCHING",
    "PHASE_PARSING",
    "ProgressReporter",
    "error_log_csv",
    "error_log_filename",
    "progress_snapshot",
    "write_error_log",
]
