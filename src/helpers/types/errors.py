class PipelineError(Exception):
    """Base class for every error raised by the snapshot pipeline"""


class ValidationError(PipelineError, ValueError):
    """Bad input for a single item (symbol spec, price level, bucket width...)

    Never retried. The caller reports it and moves on to the next item."""


class TransientError(PipelineError):
    """Network failure, timeout, 5xx or throttling. Safe to retry"""


class AuthError(PipelineError):
    """Credentials were rejected (401/403 or a failed login). Not retried"""


class StoreError(PipelineError):
    """The store answered with something we don't understand"""


class ExchangeError(PipelineError):
    """Could not fetch market depth from the exchange"""


class ExportError(PipelineError, OSError):
    """Writing the columnar file failed. Nothing is left at the output path"""


class PublishError(PipelineError):
    """Uploading an exported file to the remote repository failed"""
