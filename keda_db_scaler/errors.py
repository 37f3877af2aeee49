class ScalerError(Exception):
    """Base class for errors that stop the scaler from starting."""


class ConfigError(ScalerError):
    """Missing or invalid configuration, or unusable cluster credentials."""


class SyncError(ScalerError):
    """A watched scope never finished its initial listing."""
