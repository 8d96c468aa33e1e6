from fastapi import APIRouter
from generatorlog.api.v0.auth.main import router as auth_router
from generatorlog.api.v0.profile.main import router as profile_router
from generatorlog.api.v0.api_keys.main import router as api_keys_router
from generatorlog.api.v0.generator.main import router as generators_router
from generatorlog.api.v0.generator.main import device_router
from generatorlog.api.v0.usage_logs.main import router as usage_logs_router
from generatorlog.api.v0.service_records.main import router as service_records_router

router = APIRouter(prefix="/api")
router.include_router(auth_router)
router.include_router(profile_router)
router.include_router(api_keys_router)
router.include_router(generators_router)
router.include_router(device_router)
router.include_router(usage_logs_router)
router.include_router(service_records_router)
