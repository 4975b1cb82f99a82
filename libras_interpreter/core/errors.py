"""Exception hierarchy for the Libras interpreter."""


class LibrasError(Exception):
    """Base class for all interpreter errors."""


class CameraUnavailableError(LibrasError):
    """The capture device could not be opened. Fatal: the pipeline never runs."""


class ModelLoadError(LibrasError):
    """A model backend is missing or its assets failed to load."""


class PipelineStateError(LibrasError, RuntimeError):
    """An operation was attempted in a pipeline state that does not allow it."""
