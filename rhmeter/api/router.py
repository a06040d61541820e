from fastapi import APIRouter

from rhmeter.api.routes import auth, exports, readings, relay

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router, tags=["auth"])
api_router.include_router(readings.router, tags=["readings"])
api_router.include_router(exports.router, tags=["exports"])

relay_router = relay.router
