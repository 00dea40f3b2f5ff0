import logging
from datetime import date, datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from BarangayAPI import housekeeping, run_lifecycle_sweep
from BarangayAPI.constants import RequestStatus, ProcessingStage
from BarangayAPI.errors import PersistenceError
from BarangayAPI.housekeeping import (
    HousekeepingResult,
    purge_expired_announcements,
    purge_stale_rejected_requests,
    run_housekeeping,
)
from BarangayAPI.models import Announcement, DocumentRequest, Notification, PickupSlot, RequestAutomationNote
from BarangayAPI.scheduler import SweepScheduler
from BarangayAPI.store import RequestStore
from BarangayAPI.notifier import LifecycleNotifier, REQUEST_EXPIRED

NOW = datetime(2026, 10, 19, 9, 0)


def add_announcement(session, title, created_at):
    session.add(Announcement(title=title, content="Clean-up drive on Saturday", created_at=created_at))
    session.commit()


def test_purge_keeps_announcements_younger_than_a_day(isolated_db):
    add_announcement(isolated_db, "old", NOW - timedelta(hours=25))
    add_announcement(isolated_db, "edge", NOW - timedelta(hours=24))
    add_announcement(isolated_db, "fresh", NOW - timedelta(hours=1))

    assert purge_expired_announcements(isolated_db, NOW) == 1
    remaining = sorted(a.title for a in isolated_db.query(Announcement).all())
    assert remaining == ["edge", "fresh"]


def test_run_housekeeping_sweeps_and_purges(session_factory, make_user):
    setup = session_factory()
    try:
        resident = make_user(setup)
        setup.add(DocumentRequest(
            resident_id=resident.id,
            document_types=["Barangay Clearance"],
            purpose="Employment",
            status=RequestStatus.READY_TO_CLAIM,
            processing_stage=ProcessingStage.READY,
            pickup_end_date=date(2026, 10, 16),
            is_expired=False,
            created_at=NOW - timedelta(days=10),
            updated_at=NOW - timedelta(days=10),
        ))
        setup.commit()
        add_announcement(setup, "old", NOW - timedelta(days=2))
        resident_id = resident.id
    finally:
        setup.close()

    result = run_housekeeping(NOW, session_factory=session_factory)

    assert result.as_dict() == {
        "expired_count": 1,
        "archived_count": 0,
        "failed_count": 0,
        "rejected_purged": 0,
        "announcements_purged": 1,
    }
    check = session_factory()
    try:
        notification = check.query(Notification).one()
        assert notification.user_id == resident_id
        assert notification.event == REQUEST_EXPIRED
        assert notification.read is False
    finally:
        check.close()


class RecordingBroadcaster:
    def __init__(self):
        self.published = []

    def publish_nowait(self, data):
        self.published.append(data)


def test_notifier_stores_and_publishes(isolated_db, make_user):
    resident = make_user(isolated_db)
    broadcaster = RecordingBroadcaster()
    notifier = LifecycleNotifier(isolated_db, broadcaster=broadcaster)

    notifier.emit(REQUEST_EXPIRED, {"request_id": None, "user_id": resident.id, "message": "Expired"})
    notifier.emit("system.heartbeat", {"message": "no recipient"})

    stored = isolated_db.query(Notification).all()
    assert [(n.user_id, n.title, n.body) for n in stored] == [
        (resident.id, "Document request expired", "Expired"),
    ]
    assert [item["event"] for item in broadcaster.published] == [REQUEST_EXPIRED, "system.heartbeat"]


def add_request(session, resident_id, status, updated_at):
    request = DocumentRequest(
        resident_id=resident_id,
        document_types=["Barangay Clearance"],
        purpose="Employment",
        status=status,
        processing_stage=ProcessingStage.SUBMITTED,
        is_expired=False,
        created_at=updated_at,
        updated_at=updated_at,
    )
    session.add(request)
    session.commit()
    session.refresh(request)
    return request


def test_purge_deletes_rejected_requests_older_than_a_month(isolated_db, make_user):
    resident = make_user(isolated_db)
    cutoff = datetime(2026, 9, 19, 9, 0)
    stale = add_request(isolated_db, resident.id, RequestStatus.REJECTED, cutoff - timedelta(minutes=1))
    edge = add_request(isolated_db, resident.id, RequestStatus.REJECTED, cutoff)
    approved = add_request(isolated_db, resident.id, RequestStatus.APPROVED, cutoff - timedelta(days=60))
    isolated_db.add_all([
        PickupSlot(request_id=stale.id, date=date(2026, 9, 1), time="08:00"),
        RequestAutomationNote(request_id=stale.id, note="Request rejected", created_at=cutoff),
        Notification(user_id=resident.id, event="request.status_changed", request_id=stale.id),
    ])
    isolated_db.commit()
    stale_id = stale.id

    assert purge_stale_rejected_requests(isolated_db, NOW) == 1

    remaining = {r.id for r in isolated_db.query(DocumentRequest).all()}
    assert remaining == {edge.id, approved.id}
    assert isolated_db.query(PickupSlot).filter(PickupSlot.request_id == stale_id).count() == 0
    assert isolated_db.query(RequestAutomationNote).filter(RequestAutomationNote.request_id == stale_id).count() == 0
    assert isolated_db.query(Notification).one().request_id is None
    assert purge_stale_rejected_requests(isolated_db, NOW) == 0


def test_run_housekeeping_counts_purged_rejected_requests(session_factory, make_user):
    setup = session_factory()
    try:
        resident = make_user(setup)
        add_request(setup, resident.id, RequestStatus.REJECTED, NOW - timedelta(days=45))
    finally:
        setup.close()

    result = run_housekeeping(NOW, session_factory=session_factory)

    assert result.rejected_purged == 1
    assert result.expired_count == 0


class UnreachableStore(RequestStore):
    def find_many(self, statuses=None, is_expired=None):
        with self._transaction("query"):
            raise OperationalError("SELECT * FROM document_requests", {}, Exception("server closed the connection"))


def test_listing_failure_reaches_the_scheduler_log(session_factory, monkeypatch, caplog):
    monkeypatch.setattr(housekeeping, "RequestStore", UnreachableStore)

    with pytest.raises(PersistenceError):
        run_housekeeping(NOW, session_factory=session_factory)

    scheduler = SweepScheduler(
        job=lambda now: run_housekeeping(now, session_factory=session_factory),
        clock=lambda: NOW,
    )
    with caplog.at_level(logging.ERROR):
        assert scheduler.tick() is None
    assert "Scheduled sweep" in caplog.text
    assert "document_requests" in caplog.text


def test_cron_job_warns_when_in_process_scheduler_is_on(monkeypatch, caplog):
    monkeypatch.setattr(run_lifecycle_sweep, "run_housekeeping", lambda: HousekeepingResult(expired_count=2))
    monkeypatch.setattr(run_lifecycle_sweep, "SWEEP_SCHEDULER_ENABLED", True)

    with caplog.at_level(logging.INFO):
        assert run_lifecycle_sweep.main() == 0
    assert "SWEEP_SCHEDULER_ENABLED is on" in caplog.text
    assert "Expired 2" in caplog.text

    caplog.clear()
    monkeypatch.setattr(run_lifecycle_sweep, "SWEEP_SCHEDULER_ENABLED", False)
    with caplog.at_level(logging.INFO):
        assert run_lifecycle_sweep.main() == 0
    assert "SWEEP_SCHEDULER_ENABLED" not in caplog.text


def test_cron_job_exits_non_zero_when_requests_cannot_be_listed(monkeypatch):
    def failing():
        raise PersistenceError("Could not query document_requests")

    monkeypatch.setattr(run_lifecycle_sweep, "run_housekeeping", failing)
    monkeypatch.setattr(run_lifecycle_sweep, "SWEEP_SCHEDULER_ENABLED", False)
    assert run_lifecycle_sweep.main() == 1
