from fastapi import APIRouter

from intranet.routers import (
    admin, auth, directory, job_titles, leave, maintenance, notifications, pii_audit, properties, requests, tasks,
)

# Routers are aggregated here; main.py only imports this hub.
api_router = APIRouter()

api_router.include_router(auth.router, tags=["Authentication"])
api_router.include_router(directory.router, tags=["Directory"])
api_router.include_router(properties.router, tags=["Properties"])
api_router.include_router(job_titles.router, tags=["Job Titles"])
api_router.include_router(leave.router, tags=["Leave"])
api_router.include_router(requests.router, tags=["HR Requests"])
api_router.include_router(tasks.router, tags=["Tasks"])
api_router.include_router(maintenance.router, tags=["Maintenance"])
api_router.include_router(notifications.router, tags=["Notifications"])
api_router.include_router(pii_audit.router, tags=["PII Audit"])
api_router.include_router(admin.router, tags=["Administration"])
