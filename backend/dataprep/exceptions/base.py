"""
Base domain exceptions
"""

from typing import Any, Dict, Optional


class DomainException(Exception):
    """Base class for every error raised by the dataset domain"""

    def __init__(self, message: str, code: str = "DOMAIN_ERROR",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}
