"""
Standard API response envelopes.
"""

from typing import Any


def success_response(data: Any = None, message: str = "Success") -> dict:
    return {"success": True, "data": data, "message": message}


def error_payload(message: str, **extra: Any) -> dict:
    """Error body: a readable message plus any structured context (e.g. lastSubmission)."""
    return {"error": message, **extra}
