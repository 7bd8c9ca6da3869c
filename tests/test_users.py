"""User administration tests: staff creation, listing and guarded deletion."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bluegrid.models.enums import ReportStatus, ScheduleStatus
from bluegrid.models.report import Report
from bluegrid.models.schedule import WaterSchedule
from bluegrid.models.token import RefreshToken
from bluegrid.models.user import User
from bluegrid.repositories.auth_repository import auth_repository
from bluegrid.services.report_lifecycle import report_lifecycle_service as lifecycle
from bluegrid.services.user_service import user_service
from tests.conftest import REPORT_PAYLOAD, auth_header

API = "/api/v1/users"


async def _report_with_status(db: AsyncSession, resident, officer, technician, status: str) -> Report:
    result = await lifecycle.submit(db, resident.id, dict(REPORT_PAYLOAD))
    reason = "closed out" if status == "rejected" else None
    await lifecycle.force_status(db, officer.id, result.report.id, status, reason, str(technician.id))
    await db.commit()
    return result.report


class TestStaffAccounts:

    async def test_create_technician(self, client: AsyncClient, officer):
        """Officer creates a technician with a lowercased email."""
        res = await client.post(f"{API}/create-staff", json={
            "email": "New.Tech@Example.com",
            "password": "secret123",
            "full_name": "New Tech",
            "role": "maintenance_technician",
        }, headers=auth_header(officer))
        assert res.status_code == 201, res.json()
        assert res.json()["email"] == "new.tech@example.com"
        assert res.json()["role"] == "maintenance_technician"

    async def test_cannot_create_officer(self, client: AsyncClient, officer):
        """Officer accounts cannot be created here."""
        res = await client.post(f"{API}/create-staff", json={
            "email": "boss@example.com",
            "password": "secret123",
            "full_name": "Boss",
            "role": "panchayat_officer",
        }, headers=auth_header(officer))
        assert res.status_code == 400
        assert res.json()["detail"]["code"] == "invalid_role"

    async def test_duplicate_email(self, client: AsyncClient, officer, technician):
        """Duplicate staff email gives 409."""
        res = await client.post(f"{API}/create-staff", json={
            "email": technician.email,
            "password": "secret123",
            "full_name": "Again",
            "role": "water_flow_controller",
        }, headers=auth_header(officer))
        assert res.status_code == 409

    async def test_officer_only(self, client: AsyncClient, technician):
        """Technicians cannot list users."""
        res = await client.get(API, headers=auth_header(technician))
        assert res.status_code == 403

    async def test_list_by_role(self, client: AsyncClient, officer, resident, technician):
        """Role filter and residents listing."""
        res = await client.get(API, params={"role": "maintenance_technician"}, headers=auth_header(officer))
        assert [u["id"] for u in res.json()] == [str(technician.id)]

        res = await client.get(f"{API}/residents", headers=auth_header(officer))
        assert [u["email"] for u in res.json()] == [resident.email]


class TestDeleteUser:

    async def test_cannot_delete_officer_or_resident(self, client: AsyncClient, officer, resident):
        """Officers and residents are protected."""
        for target in (officer, resident):
            res = await client.delete(f"{API}/{target.id}", headers=auth_header(officer))
            assert res.status_code == 400
            assert res.json()["detail"]["code"] == "protected_role"

    async def test_unknown_user(self, client: AsyncClient, officer):
        """Unknown user id gives 404."""
        res = await client.delete(f"{API}/{uuid.uuid4()}", headers=auth_header(officer))
        assert res.status_code == 404

    @pytest.mark.parametrize("status", ["assigned", "in_progress", "awaiting_approval"])
    async def test_technician_with_open_report_refused(
        self, client: AsyncClient, db: AsyncSession, resident, officer, technician, status
    ):
        """Technician with open work cannot be deleted."""
        report = await _report_with_status(db, resident, officer, technician, status)
        res = await client.delete(f"{API}/{technician.id}", headers=auth_header(officer))
        assert res.status_code == 409
        assert res.json()["detail"]["code"] == "has_open_reports"
        assert report.assigned_technician_id == technician.id

    async def test_technician_with_closed_reports_removed(
        self, client: AsyncClient, db: AsyncSession, resident, officer, technician
    ):
        """Closed reports are kept and unlinked."""
        approved = await _report_with_status(db, resident, officer, technician, "approved")
        rejected = await _report_with_status(db, resident, officer, technician, "rejected")
        technician_id = technician.id

        res = await client.delete(f"{API}/{technician_id}", headers=auth_header(officer))
        assert res.status_code == 200, res.json()

        rows = (await db.execute(
            select(Report.id, Report.status, Report.assigned_technician_id)
            .where(Report.id.in_([approved.id, rejected.id]))
        )).all()
        assert len(rows) == 2
        assert {r.status for r in rows} == {ReportStatus.APPROVED, ReportStatus.REJECTED}
        assert all(r.assigned_technician_id is None for r in rows)
        assert (await db.execute(select(User.id).where(User.id == technician_id))).first() is None

    @pytest.mark.parametrize("status", [ScheduleStatus.SCHEDULED, ScheduleStatus.ACTIVE])
    async def test_controller_with_pending_schedule_refused(
        self, client: AsyncClient, db: AsyncSession, officer, controller, status
    ):
        """Controller with an upcoming or running schedule cannot be deleted."""
        now = datetime.now(timezone.utc)
        db.add(WaterSchedule(
            controller_id=controller.id,
            area="Ward 2",
            scheduled_open_time=now + timedelta(hours=1),
            scheduled_close_time=now + timedelta(hours=3),
            status=status,
            is_active=status is ScheduleStatus.ACTIVE,
        ))
        await db.commit()

        res = await client.delete(f"{API}/{controller.id}", headers=auth_header(officer))
        assert res.status_code == 409
        assert res.json()["detail"]["code"] == "has_active_schedules"

    async def test_controller_removable_after_interrupting_upcoming(
        self, client: AsyncClient, officer, controller
    ):
        """Upcoming window must be resolved before its controller is removed."""
        start = datetime.now(timezone.utc) + timedelta(hours=1)
        created = await client.post("/api/v1/schedules/create", json={
            "area": "Ward 3",
            "scheduled_open_time": start.isoformat(),
            "scheduled_close_time": (start + timedelta(hours=2)).isoformat(),
        }, headers=auth_header(controller))
        sid = created.json()["id"]

        res = await client.delete(f"{API}/{controller.id}", headers=auth_header(officer))
        assert res.status_code == 409

        await client.put(
            f"/api/v1/schedules/{sid}/interrupt", json={"reason": "Mains repair"}, headers=auth_header(controller)
        )
        res = await client.delete(f"{API}/{controller.id}", headers=auth_header(officer))
        assert res.status_code == 200

    async def test_controller_schedules_kept(self, client: AsyncClient, db: AsyncSession, officer, controller):
        """Past schedules are kept and unlinked."""
        now = datetime.now(timezone.utc)
        schedule = WaterSchedule(
            controller_id=controller.id,
            area="Ward 2",
            scheduled_open_time=now - timedelta(hours=3),
            scheduled_close_time=now - timedelta(hours=1),
            status=ScheduleStatus.CLOSED,
        )
        db.add(schedule)
        await db.commit()
        schedule_id = schedule.id

        res = await client.delete(f"{API}/{controller.id}", headers=auth_header(officer))
        assert res.status_code == 200
        row = (await db.execute(
            select(WaterSchedule.controller_id).where(WaterSchedule.id == schedule_id)
        )).first()
        assert row is not None and row.controller_id is None

    async def test_failure_rolls_back_everything(
        self, db: AsyncSession, resident, officer, technician, monkeypatch
    ):
        """A failing step rolls back the whole deletion."""
        report = await _report_with_status(db, resident, officer, technician, "approved")
        await auth_repository.create_refresh_token(
            db, user_id=technician.id, token="tok-1",
            expires_at=datetime.now(timezone.utc) + timedelta(days=1),
        )
        await db.commit()
        report_id, technician_id = report.id, technician.id

        async def _boom(*args, **kwargs):
            raise RuntimeError("database went away")

        monkeypatch.setattr(auth_repository, "delete_user_refresh_tokens", _boom)
        with pytest.raises(RuntimeError):
            await user_service.delete_user(db, technician_id)

        row = (await db.execute(
            select(Report.assigned_technician_id).where(Report.id == report_id)
        )).first()
        assert row.assigned_technician_id == technician_id
        assert (await db.execute(select(User.id).where(User.id == technician_id))).first() is not None
        tokens = (await db.execute(
            select(RefreshToken.id).where(RefreshToken.user_id == technician_id)
        )).all()
        assert len(tokens) == 1
