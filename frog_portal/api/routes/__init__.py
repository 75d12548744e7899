"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from frog_portal.api.routes.auth_routes import router as auth_router
from frog_portal.api.routes.profile_routes import router as profile_router
from frog_portal.api.routes.course_routes import router as course_router
from frog_portal.api.routes.school_editor_routes import router as school_editor_router
from frog_portal.api.routes.school_routes import router as school_router
from frog_portal.api.routes.application_routes import router as application_router
from frog_portal.api.routes.file_routes import router as file_router
from frog_portal.api.routes.content_snare_routes import router as content_snare_router
from frog_portal.api.routes.visa_routes import router as visa_router
from frog_portal.api.routes.subscription_routes import router as subscription_router
from frog_portal.api.routes.learning_routes import router as learning_router
from frog_portal.api.routes.cms_routes import router as cms_router
from frog_portal.api.routes.admin_routes import router as admin_router
from frog_portal.api.routes.admin_catalogue_routes import router as admin_catalogue_router
from frog_portal.api.routes.admin_learning_routes import router as admin_learning_router
from frog_portal.api.routes.statistics_routes import router as statistics_router
from frog_portal.api.routes.dashboard_routes import router as dashboard_router
from frog_portal.api.routes.advisor_routes import router as advisor_router

# Main API router
api_router = APIRouter()

api_router.include_router(auth_router)
api_router.include_router(profile_router)
api_router.include_router(course_router)
api_router.include_router(school_editor_router)
api_router.include_router(school_router)
api_router.include_router(application_router)
api_router.include_router(file_router)
api_router.include_router(content_snare_router)
api_router.include_router(visa_router)
api_router.include_router(subscription_router)
api_router.include_router(learning_router)
api_router.include_router(cms_router)
api_router.include_router(admin_router)
api_router.include_router(admin_catalogue_router)
api_router.include_router(admin_learning_router)
api_router.include_router(statistics_router)
api_router.include_router(dashboard_router)
api_router.include_router(advisor_router)
