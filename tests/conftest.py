import logfire
import pytest


@pytest.fixture(scope="session", autouse=True)
def quiet_logfire():
    """Keep logfire local and silent during tests."""
    logfire.configure(send_to_logfire=False, console=False)
