"""Per-item failure types.

None of these ever escape the batch dispatcher: ``process_job`` turns
them into failure strings recorded against the job's label.
"""


class CompressionError(Exception):
    """Base class for failures tied to a single input item."""

    def __init__(self, name: str, reason: str):
        super().__init__(f"{name}: {reason}")
        self.name = name
        self.reason = reason


class DecodeFailure(CompressionError):
    """Unreadable image or document bytes."""


class UnsupportedFormat(CompressionError):
    """Recognised extension, no decoder."""


class EncodingFailure(CompressionError):
    """The JPEG encoder itself failed."""
