"""
Pytest configuration and fixtures for fulfillment-mcp tests.
"""

import sys
from pathlib import Path

import pytest

# Add the repository root to path for imports
# This allows `from fulfillment_mcp.adapters import ...` to work
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from fulfillment_mcp.adapters import InMemoryAdapter, create_adapter_factory  # noqa: E402
from fulfillment_mcp.config import AppSettings  # noqa: E402
from fulfillment_mcp.runtime import build_runtime  # noqa: E402


@pytest.fixture
def mock_config():
    """Built-in in-memory adapter config."""
    return {"type": "builtin", "name": "mock"}


@pytest.fixture
def memory_adapter():
    """Unconnected in-memory adapter with no latency or simulated errors."""
    return InMemoryAdapter({})


@pytest.fixture
def factory():
    """Adapter factory with the built-in adapters registered."""
    return create_adapter_factory()


@pytest.fixture
def settings():
    """Settings with retries, breaker and periodic health checks off."""
    return AppSettings(
        retry={"enabled": False},
        circuit_breaker={"enabled": False},
        monitoring={"enabled": False},
        timeouts={"request_ms": 2000, "adapter_ms": 1000},
    )


@pytest.fixture
def runtime(settings):
    """Runtime built from settings; tests call start() and shutdown()."""
    return build_runtime(settings)


@pytest.fixture
def sample_order():
    """Order payload for create-sales-order."""
    return {
        "externalId": "SHOP-5001",
        "customer": {"firstName": "Ada", "lastName": "Lovelace", "email": "ada@example.com"},
        "lineItems": [
            {"sku": "WID-001", "quantity": 1, "unitPrice": 80.0},
            {"sku": "TSH-002", "quantity": 2, "unitPrice": 20.0},
        ],
        "shippingAddress": {"address1": "1 Analytical Way", "city": "London", "country": "GB"},
    }
