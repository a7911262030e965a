"""Test utilities for lazuli applications::

    from lazuli.testing import TestClient, mock_request
"""

from lazuli.testing.client import TestClient, mock_request

__all__ = ["TestClient", "mock_request"]
