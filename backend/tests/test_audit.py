import uuid

import pytest

from weekgrid.models.audit_log import AuditLog
from weekgrid.services.audit import list_actions, log_action
from weekgrid.services.errors import PersistenceFailure

ORG_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")


def test_log_action_records_entry(db):
    user_id = uuid.uuid4()
    resource_id = uuid.uuid4()

    log_action(db, str(ORG_ID), user_id, "create", "weekly_timesheet", resource_id, {"week_start": "2025-06-09"})

    [entry] = list_actions(db, "weekly_timesheet", resource_id)
    assert entry.org_id == ORG_ID
    assert entry.user_id == user_id
    assert entry.details == {"week_start": "2025-06-09"}


def test_failed_audit_write_is_a_persistence_failure(db):
    log_action(db, ORG_ID, uuid.uuid4(), "create", "weekly_timesheet", "kept")

    with pytest.raises(PersistenceFailure) as exc:
        # user_id is NOT NULL
        log_action(db, ORG_ID, None, "submitted", "weekly_timesheet", "lost")

    assert exc.value.code == "persistence_failure"
    # the session was rolled back and is usable again
    assert db.query(AuditLog).count() == 1
    assert list_actions(db, "weekly_timesheet", "lost") == []
