"""
Exceptions surfaced by the decoder.

Everything that goes wrong inside a message is recovered from locally, so the
only error a caller ever sees is a failure to read the input at all.
"""


class EmailReadError(ValueError):
    """Raised when the raw message stream cannot be read."""
