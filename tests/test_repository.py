"""
test_repository.py — Tests for the in-memory Disaster / Alert repository.

Covers:
    • Id assignment and lookup
    • Validation of severity, priority, affected areas
    • Proximity query (planar, 111 km per degree, inclusive)
    • Time-window and 72-hour alert queries
    • Alert status updates and disaster bookkeeping
    • Copy isolation of returned records
    • Type coercion and thread-safe id assignment

Run with:
    pytest tests/test_repository.py -v
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from prism.app.core.errors import NotFoundError, ValidationError
from prism.app.storage.models import Alert, AlertStatus, Disaster, DisasterType, Location
from prism.app.storage.repository import DisasterAlertRepository, planar_distance_km


# ═══════════════════════════════════════════════════════════════════════════
# Test Fixtures
# ═══════════════════════════════════════════════════════════════════════════

CHENNAI_LAT = 13.0
CHENNAI_LNG = 80.0
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _make_disaster(
    dtype: DisasterType = DisasterType.FLOOD,
    lat: float = CHENNAI_LAT,
    lng: float = CHENNAI_LNG,
    severity: int = 3,
    timestamp: datetime = NOW,
) -> Disaster:
    return Disaster(
        type=dtype,
        title=f"{dtype.value.capitalize()} Warning - Chennai",
        description="Test event",
        location=Location(lat=lat, lng=lng),
        severity=severity,
        affected_areas=["Chennai"],
        timestamp=timestamp,
    )


@pytest.fixture
def repo() -> DisasterAlertRepository:
    return DisasterAlertRepository(lookback_hours=72)


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Disasters
# ═══════════════════════════════════════════════════════════════════════════

class TestCreateDisaster:

    def test_ids_strictly_increase(self, repo):
        ids = [repo.create_disaster(_make_disaster()).id for _ in range(3)]
        assert ids == [1, 2, 3]

    def test_get_returns_created_record(self, repo):
        created = repo.create_disaster(_make_disaster(severity=4))
        fetched = repo.get_disaster(created.id)
        assert fetched is not None
        assert fetched.severity == 4
        assert fetched.active_alert_count == 0
        assert fetched.last_update is not None

    def test_unknown_id_is_none(self, repo):
        assert repo.get_disaster(999) is None

    def test_list_in_id_order(self, repo):
        repo.create_disaster(_make_disaster(DisasterType.CYCLONE))
        repo.create_disaster(_make_disaster(DisasterType.FLOOD))
        assert [d.id for d in repo.list_disasters()] == [1, 2]

    def test_naive_timestamp_treated_as_utc(self, repo):
        created = repo.create_disaster(_make_disaster(timestamp=datetime(2026, 10, 19, 6, 0)))
        assert created.timestamp.tzinfo is not None

    @pytest.mark.parametrize("severity", [0, 6])
    def test_severity_out_of_range(self, repo, severity):
        with pytest.raises(ValidationError):
            repo.create_disaster(_make_disaster(severity=severity))

    def test_empty_affected_areas_rejected(self, repo):
        disaster = _make_disaster()
        disaster.affected_areas = []
        with pytest.raises(ValidationError):
            repo.create_disaster(disaster)

    def test_returned_copy_does_not_alias_store(self, repo):
        created = repo.create_disaster(_make_disaster())
        created.affected_areas.append("Tampered")
        assert repo.get_disaster(created.id).affected_areas == ["Chennai"]

    def test_string_type_coerced_to_enum(self, repo):
        repo.create_disaster(_make_disaster())
        raw = _make_disaster()
        raw.type = "flood"
        created = repo.create_disaster(raw)
        assert created.type is DisasterType.FLOOD
        assert [d.id for d in repo.list_disasters_by_type("flood")] == [1, 2]
        assert repo.list_disasters()[1].to_dict()["type"] == "flood"

    def test_unknown_type_rejected(self, repo):
        raw = _make_disaster()
        raw.type = "meteor"
        with pytest.raises(ValidationError) as exc_info:
            repo.create_disaster(raw)
        assert exc_info.value.details["field"] == "type"
        assert repo.list_disasters() == []

    def test_location_must_be_location(self, repo):
        raw = _make_disaster()
        raw.location = {"lat": 13.0, "lng": 80.0}
        with pytest.raises(ValidationError):
            repo.create_disaster(raw)

    def test_concurrent_creates_get_distinct_ids(self, repo):
        with ThreadPoolExecutor(max_workers=8) as pool:
            futures = [
                pool.submit(lambda: [repo.create_disaster(_make_disaster()).id for _ in range(50)])
                for _ in range(8)
            ]
            ids = [i for f in futures for i in f.result()]
        assert len(ids) == 400
        assert sorted(ids) == list(range(1, 401))
        assert len(repo.list_disasters()) == 400


class TestDisasterQueries:

    def test_by_type(self, repo):
        repo.create_disaster(_make_disaster(DisasterType.CYCLONE))
        repo.create_disaster(_make_disaster(DisasterType.FLOOD))
        repo.create_disaster(_make_disaster(DisasterType.CYCLONE))
        assert [d.id for d in repo.list_disasters_by_type(DisasterType.CYCLONE)] == [1, 3]
        assert [d.id for d in repo.list_disasters_by_type("flood")] == [2]
        assert repo.list_disasters_by_type("earthquake") == []

    def test_near_includes_exact_location(self, repo):
        repo.create_disaster(_make_disaster())
        assert len(repo.list_disasters_near(CHENNAI_LAT, CHENNAI_LNG, 0)) == 1

    def test_near_boundary_is_inclusive(self, repo):
        repo.create_disaster(_make_disaster(lng=CHENNAI_LNG + 0.5))
        assert planar_distance_km(CHENNAI_LAT, CHENNAI_LNG, CHENNAI_LAT, CHENNAI_LNG + 0.5) == pytest.approx(55.5)
        assert len(repo.list_disasters_near(CHENNAI_LAT, CHENNAI_LNG, 55.5)) == 1
        assert repo.list_disasters_near(CHENNAI_LAT, CHENNAI_LNG, 55.0) == []

    def test_near_negative_radius(self, repo):
        with pytest.raises(ValidationError):
            repo.list_disasters_near(CHENNAI_LAT, CHENNAI_LNG, -1)

    def test_between(self, repo):
        repo.create_disaster(_make_disaster(timestamp=NOW - timedelta(days=2)))
        repo.create_disaster(_make_disaster(timestamp=NOW - timedelta(hours=1)))
        repo.create_disaster(_make_disaster(timestamp=NOW))

        assert [d.id for d in repo.list_disasters_between(NOW - timedelta(days=1))] == [2, 3]
        window = repo.list_disasters_between(NOW - timedelta(days=3), NOW - timedelta(hours=1))
        assert [d.id for d in window] == [1, 2]


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: Alerts
# ═══════════════════════════════════════════════════════════════════════════

class TestAlerts:

    def test_unknown_disaster_rejected(self, repo):
        with pytest.raises(NotFoundError):
            repo.create_alert(Alert(disaster_id=42, message="Evacuate"))

    @pytest.mark.parametrize("priority", [0, 4])
    def test_priority_out_of_range(self, repo, priority):
        disaster = repo.create_disaster(_make_disaster())
        with pytest.raises(ValidationError):
            repo.create_alert(Alert(disaster_id=disaster.id, message="x", priority=priority))

    def test_create_updates_active_alert_count(self, repo):
        disaster = repo.create_disaster(_make_disaster())
        repo.create_alert(Alert(disaster_id=disaster.id, message="one"))
        repo.create_alert(Alert(disaster_id=disaster.id, message="two"))
        assert repo.get_disaster(disaster.id).active_alert_count == 2

    def test_active_list_excludes_resolved(self, repo):
        disaster = repo.create_disaster(_make_disaster())
        first = repo.create_alert(Alert(disaster_id=disaster.id, message="one"))
        repo.create_alert(Alert(disaster_id=disaster.id, message="two"))
        repo.update_alert_status(first.id, AlertStatus.RESOLVED)
        assert [a.message for a in repo.list_active_alerts()] == ["two"]
        assert len(repo.list_alerts()) == 2

    def test_recent_window_edges(self, repo):
        disaster = repo.create_disaster(_make_disaster())
        repo.create_alert(Alert(disaster_id=disaster.id, message="old",
                                timestamp=NOW - timedelta(hours=73)))
        repo.create_alert(Alert(disaster_id=disaster.id, message="recent",
                                timestamp=NOW - timedelta(hours=71)))
        assert [a.message for a in repo.list_recent_alerts(now=NOW)] == ["recent"]

    def test_recent_window_excludes_resolved(self, repo):
        disaster = repo.create_disaster(_make_disaster())
        alert = repo.create_alert(Alert(disaster_id=disaster.id, message="x",
                                        timestamp=NOW - timedelta(hours=1)))
        repo.update_alert_status(alert.id, "resolved")
        assert repo.list_recent_alerts(now=NOW) == []


class TestUpdateAlertStatus:

    def test_resolve_is_idempotent(self, repo):
        disaster = repo.create_disaster(_make_disaster())
        alert = repo.create_alert(Alert(disaster_id=disaster.id, message="x"))

        first = repo.update_alert_status(alert.id, AlertStatus.RESOLVED)
        second = repo.update_alert_status(alert.id, AlertStatus.RESOLVED)

        assert first.status == second.status == AlertStatus.RESOLVED
        assert first.to_dict() == second.to_dict()
        assert repo.get_disaster(disaster.id).active_alert_count == 0

    def test_reactivate(self, repo):
        disaster = repo.create_disaster(_make_disaster())
        alert = repo.create_alert(Alert(disaster_id=disaster.id, message="x"))
        repo.update_alert_status(alert.id, AlertStatus.RESOLVED)
        updated = repo.update_alert_status(alert.id, AlertStatus.ACTIVE)
        assert updated.is_active
        assert repo.get_disaster(disaster.id).active_alert_count == 1

    def test_unknown_alert_is_none(self, repo):
        assert repo.update_alert_status(7, AlertStatus.RESOLVED) is None

    def test_invalid_status(self, repo):
        with pytest.raises(ValidationError):
            repo.update_alert_status(1, "archived")

    def test_counts(self, repo):
        disaster = repo.create_disaster(_make_disaster())
        repo.create_alert(Alert(disaster_id=disaster.id, message="x"))
        assert repo.counts() == {"disasters": 1, "alerts": 1, "active_alerts": 1}
