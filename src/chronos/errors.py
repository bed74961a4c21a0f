"""Error taxonomy for Chronos Vault."""


class ChronosError(Exception):
    """Base class for all Chronos Vault errors."""


class ValidationError(ChronosError):
    """Bad user input (empty title, unlock date not in the future, unknown media)."""


class DeviceError(ChronosError):
    """Capture device could not be acquired or the recorder failed."""


class CaptureStateError(DeviceError):
    """A capture operation was invoked from a state that does not allow it."""


class StoreConnectionError(ChronosError, ConnectionError):
    """The durable store could not be opened."""


class PersistenceError(ChronosError):
    """A read, write or delete transaction against the store failed."""


class EnrichmentError(ChronosError):
    """The enrichment service failed or is unavailable."""
