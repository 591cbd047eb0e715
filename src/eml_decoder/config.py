"""
Decoder configuration management.

This module handles configuration from environment variables using Pydantic Settings.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Decoder configuration from environment variables.

    All settings can be overridden via environment variables with the same name.
    """

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Charset handling
    default_charset: str = "utf-8"  # Used when a text part declares no charset
    detect_unknown_charsets: bool = True  # charset-normalizer for undeclared non-UTF-8 bytes

    # Structural limits
    max_nesting_depth: int = 64  # Deeper multipart parts become opaque leaves
    max_attachments: int = 0  # 0 = unlimited

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


# Global settings instance
settings = Settings()
