# Error codes returned to API clients
ERR_LOAD = "LOAD_FAILED"
ERR_PERSIST = "PERSIST_FAILED"
ERR_UNKNOWN_LABEL = "UNKNOWN_LABEL"
ERR_NOT_RUNNING = "NOT_RUNNING"
ERR_STOPPED = "STOPPED"


class ScannerError(Exception):
    pass


class LoadError(ScannerError):
    """Classifier resources unreachable or malformed. Fatal for the session."""


class PredictError(ScannerError):
    """A single prediction call failed; the tick counts as "no predictions"."""


class PersistError(ScannerError):
    """Override layer could not be written. The in-memory edit is kept."""


class OverrideParseError(ScannerError):
    """Persisted override content unreadable; recovered as an empty layer."""
