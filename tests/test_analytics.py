"""Officer dashboard tests: analytics overview, feedback statistics and officer seeding."""

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from bluegrid.models.enums import Role
from bluegrid.seed import seed_officer
from bluegrid.services.report_lifecycle import report_lifecycle_service as lifecycle
from bluegrid.utils.password import verify_password
from tests.conftest import REPORT_PAYLOAD, auth_header, create_user


async def _resolved_report(db: AsyncSession, resident, officer, technician, rating: int | None = None):
    report = (await lifecycle.submit(db, resident.id, dict(REPORT_PAYLOAD))).report
    await lifecycle.assign(db, officer.id, report.id, str(technician.id))
    await lifecycle.accept(db, technician.id, report.id)
    await lifecycle.complete(db, technician.id, report.id, "Replaced valve")
    await lifecycle.approve(db, officer.id, report.id)
    if rating is not None:
        await lifecycle.submit_feedback(db, resident.id, report.id, rating, f"{rating} stars")
    await db.commit()
    return report


class TestAnalytics:

    async def test_empty_overview(self, client: AsyncClient, officer):
        """Empty database still reports every status and role."""
        res = await client.get("/api/v1/analytics", headers=auth_header(officer))
        assert res.status_code == 200
        body = res.json()
        assert body["total_reports"] == 0
        assert body["average_resolution_hours"] == 0
        assert set(body["by_status"]) == {
            "pending", "assigned", "in_progress", "awaiting_approval", "completed", "approved", "rejected",
        }
        assert body["users_by_role"]["panchayat_officer"] == 1
        assert body["users_by_role"]["maintenance_technician"] == 0

    async def test_overview_counts(self, client: AsyncClient, db: AsyncSession, resident, officer, technician):
        """Dashboard counts reports by status, month and role."""
        await _resolved_report(db, resident, officer, technician)
        await lifecycle.submit(db, resident.id, dict(REPORT_PAYLOAD))
        await db.commit()

        body = (await client.get("/api/v1/analytics", headers=auth_header(officer))).json()
        assert body["total_reports"] == 2
        assert body["pending"] == 1
        assert body["approved"] == 1
        assert body["completed"] == 1
        assert body["rejected"] == 0
        assert body["average_resolution_hours"] >= 0
        assert sum(body["reports_by_month"].values()) == 2
        assert body["active_schedules"] == 0
        assert body["users_by_role"]["resident"] == 1

    async def test_officer_only(self, client: AsyncClient, technician):
        """Technicians cannot read the dashboard."""
        res = await client.get("/api/v1/analytics", headers=auth_header(technician))
        assert res.status_code == 403


class TestFeedbackStatistics:

    async def test_statistics(
        self, client: AsyncClient, db: AsyncSession, resident, other_resident, officer, technician
    ):
        """Average, distribution and recent entries with resident names."""
        await _resolved_report(db, resident, officer, technician, rating=5)
        await _resolved_report(db, other_resident, officer, technician, rating=2)
        await _resolved_report(db, resident, officer, technician)

        res = await client.get("/api/v1/feedback/statistics", headers=auth_header(officer))
        assert res.status_code == 200
        body = res.json()
        assert body["total_feedback"] == 2
        assert body["average_rating"] == 3.5
        assert body["rating_distribution"] == {"1": 0, "2": 1, "3": 0, "4": 0, "5": 1}
        assert {f["resident_name"] for f in body["recent_feedback"]} == {
            resident.full_name, other_resident.full_name,
        }

    async def test_no_feedback(self, client: AsyncClient, officer):
        """No ratings yields a zero average."""
        body = (await client.get("/api/v1/feedback/statistics", headers=auth_header(officer))).json()
        assert body["average_rating"] == 0
        assert body["recent_feedback"] == []

    async def test_officer_only(self, client: AsyncClient, resident):
        """Residents cannot read feedback statistics."""
        res = await client.get("/api/v1/feedback/statistics", headers=auth_header(resident))
        assert res.status_code == 403


class TestSeedOfficer:

    async def test_creates_first_officer(self, db: AsyncSession):
        """Seeding creates a verified officer with a lowercased email."""
        officer = await seed_officer(db, "Chief@Example.com", "secret123", "Chief Officer")
        await db.commit()
        assert officer is not None
        assert officer.role is Role.PANCHAYAT_OFFICER
        assert officer.email == "chief@example.com"
        assert officer.email_verified is True
        assert verify_password("secret123", officer.password_hash)

    async def test_skips_when_officer_exists(self, db: AsyncSession, officer):
        """Seeding is a no-op once an officer exists."""
        assert await seed_officer(db, "chief@example.com", "secret123", "Chief Officer") is None

    async def test_skips_taken_email(self, db: AsyncSession):
        """Seeding never converts an existing account."""
        await create_user(db, Role.RESIDENT, "chief@example.com", "Resident Chief")
        assert await seed_officer(db, "chief@example.com", "secret123", "Chief Officer") is None
