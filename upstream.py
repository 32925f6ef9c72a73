"""Helpers shared by the clients of third-party HTTP APIs."""

from typing import Any, Dict

import httpx


def json_object(response: httpx.Response) -> Dict[str, Any]:
    """Decode a response body that must be a JSON object.

    Raises ValueError for invalid JSON and for any other JSON value (a list,
    a string, ``null``), so callers can treat both as a malformed payload.
    """
    data = response.json()
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object from {response.url}, got {type(data).__name__}")
    return data
