"""gitsig - sign arbitrary git objects with signify and minisign keys.

Signatures live in the object store itself and are discovered through
references under ``refs/signify/signatures/``.
"""

__version__ = "0.1.0"
__author__ = "gitsig Contributors"

from gitsig.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__"]
