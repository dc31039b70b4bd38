"""Shared pytest configuration and fixtures for the GPS logger test suite."""

import logging
import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "hardware: mark test as requiring physical hardware"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


def pytest_addoption(parser):
    """Add custom command-line options."""
    parser.addoption(
        "--run-hardware",
        action="store_true",
        default=False,
        help="Run tests that require a GPS receiver on a serial port",
    )


def pytest_collection_modifyitems(config, items):
    """Skip hardware tests unless --run-hardware is specified."""
    if config.getoption("--run-hardware"):
        return

    skip_hardware = pytest.mark.skip(reason="Need --run-hardware option to run")
    for item in items:
        if "hardware" in item.keywords:
            item.add_marker(skip_hardware)


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def gps_log_capture(caplog):
    """caplog set to DEBUG for the gps_logger namespace."""
    caplog.set_level(logging.DEBUG, logger="gps_logger")
    return caplog


# =============================================================================
# Mock Fixtures
# =============================================================================

@pytest.fixture
def mock_gps_device():
    """Create a mock GPS device for testing."""
    from tests.infrastructure.mocks.serial_mocks import MockGPSDevice
    device = MockGPSDevice()
    yield device
    device.close()


@pytest.fixture
def fake_clock():
    """Manually advanced monotonic clock."""
    from tests.infrastructure.mocks.serial_mocks import FakeClock
    return FakeClock()
