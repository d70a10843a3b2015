class ReportError(Exception):
    """Base class for errors raised by the report tasks."""


class InvalidSpecification(ReportError, ValueError):
    """A model specification references an unknown column or a non-binary outcome."""


class InsufficientData(ReportError):
    """A training subset is too degenerate for the model to be fitted."""


class NoCandidates(ReportError):
    """Model selection was requested without any candidate specification."""
