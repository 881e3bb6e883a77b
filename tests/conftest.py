"""Root conftest — shared pytest markers.

Markers
-------
unit      fast, no I/O, pure logic
runtime   spawns the real runtime worker subprocess
slow      expected to take > 5 seconds
"""

from __future__ import annotations


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast, no I/O tests")
    config.addinivalue_line("markers", "runtime: spawns the runtime worker subprocess")
    config.addinivalue_line("markers", "slow: test is expected to take > 5 s")
