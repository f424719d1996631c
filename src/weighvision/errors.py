"""Error taxonomy for the offline recognition pipeline."""


class WeighVisionError(Exception):
    """Base class for recognition pipeline errors."""


class InvalidInputError(WeighVisionError):
    """Raised when the input image is missing, empty or zero-sized."""


class PreprocessingError(WeighVisionError):
    """Raised when an image cannot be decoded or transformed."""


class EngineError(WeighVisionError):
    """Raised when the text-recognition engine cannot run."""
