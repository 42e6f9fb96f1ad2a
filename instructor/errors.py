"""
Failure taxonomy for the monitor.

Each error is contained at the smallest enclosing unit: a face, a cycle,
or startup. None of them unwind past MonitoringSession.
"""


class InstructorError(Exception):
    """Base exception for monitor failures."""
    pass


class StartupResourceError(InstructorError):
    """Missing, empty or unloadable cascade/model asset. Blocks activation."""
    pass


class CaptureError(InstructorError):
    """Screen snapshot could not be taken for this cycle."""
    pass


class DetectionError(InstructorError):
    """The cascade matcher failed on a captured frame."""
    pass


class ClassificationError(InstructorError):
    """A single face could not be classified at all."""
    pass


class CycleFatalError(InstructorError):
    """Unexpected failure spanning a whole monitoring cycle."""
    pass


class ResourceReleaseError(InstructorError):
    """Releasing a model or detector handle failed. Ignored on shutdown."""
    pass
