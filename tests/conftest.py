"""Shared test fixtures and helpers."""

from __future__ import annotations

import pytest

from geomatricula.core.config import AuditConfig
from geomatricula.geometry.models import Segment
from geomatricula.governance.audit import AuditLogger


# Rural deed traverse used across the suite: authored distances sum to 554.75 m.
RURAL_SEGMENTS = [
    {"index": 1, "bearing_raw": "N35°20'W", "distance_m": 45.50, "neighbor": "Estrada Municipal"},
    {"index": 2, "bearing_raw": "N78°15'W", "distance_m": 120.00, "neighbor": "Sítio Boa Vista"},
    {"index": 3, "bearing_raw": "S45°0'W", "distance_m": 85.30, "neighbor": "Córrego do Campo"},
    {"index": 4, "bearing_raw": "S12°30'E", "distance_m": 95.20, "neighbor": "Fazenda Santa Rita"},
    {"index": 5, "bearing_raw": "N55°40'E", "distance_m": 150.00, "neighbor": "João da Silva"},
    {"index": 6, "bearing_raw": "N5°10'E", "distance_m": 58.75, "neighbor": "Estrada Municipal"},
]


def square_payload(side: float = 100.0) -> list[dict]:
    """A closed square traverse as an oracle would send it."""
    return [
        {"index": 1, "bearingRaw": "Az 0°", "distanceM": side, "confrontation": "Rua A"},
        {"index": 2, "bearingRaw": "Az 90°", "distanceM": side, "confrontation": "Rua B"},
        {"index": 3, "bearingRaw": "Az 180°", "distanceM": side, "confrontation": "Rua C"},
        {"index": 4, "bearingRaw": "Az 270°", "distanceM": side, "confrontation": "Rua D"},
    ]


def square_segments(side: float = 100.0) -> list[Segment]:
    return [
        Segment(index=i, bearing_raw=f"Az {az}°", distance_m=side, neighbor=f"Lote {i}")
        for i, az in enumerate((0, 90, 180, 270), start=1)
    ]


@pytest.fixture
def rural_segments() -> list[Segment]:
    return [Segment(**raw) for raw in RURAL_SEGMENTS]


@pytest.fixture
def audit_logger(tmp_path):
    return AuditLogger(config=AuditConfig(log_dir=str(tmp_path / "audit")))
