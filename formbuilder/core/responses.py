"""
Standard response envelopes.

Every endpoint answers with `{"success", "data" | "error", "metadata"}` so
clients can handle results the same way regardless of the route.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


def _metadata(status_code: int) -> Dict[str, Any]:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "status_code": status_code
    }


class ResponseHandler:
    """Builds response envelopes."""

    @staticmethod
    def success(data: Any = None, status_code: int = 200) -> Dict[str, Any]:
        return {"success": True, "data": data, "metadata": _metadata(status_code)}

    @staticmethod
    def error(
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Create an error envelope.

        Args:
            code: Machine-readable error code, e.g. NOT_FOUND
            message: Human-readable message
            status_code: HTTP status code
            details: Extra context such as the offending field id
        """
        return {
            "success": False,
            "error": {"code": code, "message": message, "details": details or {}},
            "metadata": _metadata(status_code)
        }
