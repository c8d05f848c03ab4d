"""
Exception types raised by the annotation core
"""


class AnnotatorError(Exception):
    """Base class for recoverable annotation core errors"""


class DegenerateAnnotationError(AnnotatorError, ValueError):
    """Geometry refused at commit time (zero-area box, empty mask, ...)"""


class AnnotationNotFoundError(AnnotatorError, KeyError):
    """No annotation with the requested id exists in the store"""


class ImageDecodeError(AnnotatorError):
    """The image blob could not be decoded; the requesting operation fails as a whole"""


class InvariantViolation(AssertionError):
    """
    A state that the single-threaded editing model makes unreachable

    Raised for programming errors such as starting an edit while another edit
    is still in flight. Not meant to be caught and recovered from.
    """
