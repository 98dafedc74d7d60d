class ReportError(Exception):
    """Base class for failures that abort a report run."""


class ConfigurationError(ReportError):
    """A view schema, view order or name template is malformed."""


class AssemblyError(ReportError):
    """Declared view columns and the materialized rows disagree."""


class ExportError(ReportError):
    """The artifact could not be written to its destination."""


class RunInProgressError(ReportError):
    """A generate trigger arrived while another run was still active."""
