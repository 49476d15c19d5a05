"""Test configuration and fixtures.

Policy:
- tests/unit are lightweight and always run
- all non-unit tests are marked `slow` automatically (they refine and solve full meshes)
"""

from __future__ import annotations

from pathlib import Path

import matplotlib
import pytest

matplotlib.use("Agg")

from tests.mesh_factories import concentric_mesh, two_triangle_mesh, unit_square_mesh


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "slow: compute-intensive test")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    for item in items:
        p = Path(str(item.fspath))
        # Any test outside tests/unit is considered heavy by default.
        if "tests" in p.parts and "unit" not in p.parts:
            item.add_marker(pytest.mark.slow)


@pytest.fixture
def square_mesh():
    return unit_square_mesh()


@pytest.fixture
def ring_mesh():
    return concentric_mesh()


@pytest.fixture
def tiny_mesh():
    return two_triangle_mesh()
