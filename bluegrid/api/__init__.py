"""API router package: aggregates every endpoint under one router.

Included routers:
    - auth: OTP signup, signin, token refresh, signout
    - profile: caller's own profile
    - reports: issue reports and their lifecycle
    - schedules: water supply windows
    - users: officer user administration
    - feedback: rating statistics
    - analytics: officer dashboard
    - notifications: officer direct messages
"""

from fastapi import APIRouter

from bluegrid.api.analytics import router as analytics_router
from bluegrid.api.auth import router as auth_router
from bluegrid.api.feedback import router as feedback_router
from bluegrid.api.notifications import router as notifications_router
from bluegrid.api.profile import router as profile_router
from bluegrid.api.reports import router as reports_router
from bluegrid.api.schedules import router as schedules_router
from bluegrid.api.users import router as users_router

api_router: APIRouter = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["Auth"])
api_router.include_router(profile_router, prefix="/profile", tags=["Profile"])
api_router.include_router(reports_router, prefix="/reports", tags=["Reports"])
api_router.include_router(schedules_router, prefix="/schedules", tags=["Schedules"])
api_router.include_router(users_router, prefix="/users", tags=["Users"])
api_router.include_router(feedback_router, prefix="/feedback", tags=["Feedback"])
api_router.include_router(analytics_router, prefix="/analytics", tags=["Analytics"])
api_router.include_router(notifications_router, prefix="/notify", tags=["Notifications"])
