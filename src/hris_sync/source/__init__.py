"""
HR system-of-record extraction.
"""

from .extractor import HrisExtractor, build_connection_string

__all__ = ["HrisExtractor", "build_connection_string"]
