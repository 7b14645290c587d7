"""Tests for the availability queries."""

from datetime import timedelta

from conftest import at, insert_appointment
from tenantbook.availability import day_conflicts, find_conflicts, is_slot_free
from tenantbook.models import Appointment, Block


def test_exact_slot_checks(session, tenant):
    insert_appointment(session, tenant.business_id, tenant.worker_id, tenant.client_ids[0], at(10), duration=60)

    assert is_slot_free(session, tenant.business_id, tenant.worker_id, at(9), 60)
    assert is_slot_free(session, tenant.business_id, tenant.worker_id, at(11), 30)
    assert not is_slot_free(session, tenant.business_id, tenant.worker_id, at(10, 59), 30)
    assert not is_slot_free(session, tenant.business_id, tenant.worker_id, at(9, 30), 240)
    assert is_slot_free(session, tenant.business_id, tenant.worker2_id, at(10), 60)


def test_exclude_own_record(session, tenant):
    appt = insert_appointment(session, tenant.business_id, tenant.worker_id, tenant.client_ids[0], at(10))

    assert not is_slot_free(session, tenant.business_id, tenant.worker_id, at(10), 30)
    assert is_slot_free(session, tenant.business_id, tenant.worker_id, at(10), 30, exclude_id=appt.id)


def test_conflicts_enumerate_appointments_and_blocks(session, tenant):
    insert_appointment(session, tenant.business_id, tenant.worker_id, tenant.client_ids[0], at(10))
    session.add(Block(business_id=tenant.business_id, resource_id=tenant.worker_id, starts_at=at(10, 15), ends_at=at(11)))
    session.commit()

    conflicts = find_conflicts(session, tenant.business_id, tenant.worker_id, at(10), 60)

    assert [type(c) for c in conflicts] == [Appointment, Block]


def test_tenants_do_not_see_each_other(session, tenant):
    insert_appointment(session, tenant.other_business_id, tenant.other_worker_id, tenant.other_client_id, at(10))
    session.add(Block(business_id=tenant.other_business_id, resource_id=None, starts_at=at(8), ends_at=at(18)))
    session.commit()

    assert is_slot_free(session, tenant.business_id, tenant.worker_id, at(10), 30)


def test_day_conflicts_use_interval_intersection(session, tenant):
    day = at(0).date()
    insert_appointment(session, tenant.business_id, tenant.worker_id, tenant.client_ids[0], at(23, 45, days=-1), duration=30)
    insert_appointment(session, tenant.business_id, tenant.worker_id, tenant.client_ids[1], at(23, 45), duration=30)
    # ends exactly at midnight, so it stays on the previous day
    session.add(Block(business_id=tenant.business_id, resource_id=None, starts_at=at(20, days=-1), ends_at=at(0)))
    session.add(Block(business_id=tenant.business_id, resource_id=None, starts_at=at(0, days=-3), ends_at=at(0, 1)))
    session.commit()

    appts, blocks = day_conflicts(session, tenant.business_id, tenant.worker_id, day)

    assert [a.starts_at for a in appts] == [at(23, 45, days=-1), at(23, 45)]
    assert [b.ends_at for b in blocks] == [at(0, 1)]

    next_appts, _ = day_conflicts(session, tenant.business_id, tenant.worker_id, day + timedelta(days=1))
    assert [a.starts_at for a in next_appts] == [at(23, 45)]
