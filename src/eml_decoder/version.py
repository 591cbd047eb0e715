"""
Version constants for the email decoder.

PARSER_VERSION is reported by the CLI next to every summary so archived output
can be traced back to the decoder that produced it.
"""

__version__ = "0.3.0"

PARSER_VERSION = f"eml-decoder-{__version__}"
