from fastapi import APIRouter

from coursehub.api.routes import courses, enrollments, login, modules, progress, users

api_router = APIRouter()
api_router.include_router(login.router)
api_router.include_router(users.router)
api_router.include_router(courses.router)
api_router.include_router(modules.router)
api_router.include_router(enrollments.router)
api_router.include_router(progress.router)
