"""Exception types shared across the capture pipeline."""


class InitializationError(RuntimeError):
    """Camera or model setup failed. Terminal for the capture session."""


class CameraError(InitializationError):
    """The video source could not be opened."""


class DetectorError(InitializationError):
    """The hand landmark model could not be loaded."""


class ConfigError(ValueError):
    """Invalid session configuration."""
