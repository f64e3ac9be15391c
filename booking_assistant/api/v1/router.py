"""
API v1 router setup
Organized into: availability, bookings and calendar connection routes
"""
from fastapi import APIRouter

from booking_assistant.api.v1 import availability, bookings, calendar

api_v1_router = APIRouter()

# ============================================================================
# SCHEDULING ROUTES
# ============================================================================
api_v1_router.include_router(
    availability.router,
    prefix="/businesses",
    tags=["Availability"]
)

api_v1_router.include_router(
    bookings.router,
    prefix="/businesses",
    tags=["Bookings"]
)

# ============================================================================
# CALENDAR CONNECTION ROUTES
# ============================================================================
api_v1_router.include_router(
    calendar.router,
    prefix="/calendar",
    tags=["Calendar"]
)


# ============================================================================
# ROOT ENDPOINT - API Info
# ============================================================================
@api_v1_router.get("/", tags=["Info"])
async def api_info():
    """API information and available endpoints."""
    return {
        "version": "1.0",
        "endpoints": {
            "availability": "/api/v1/businesses/{business_id}/availability",
            "bookings": "/api/v1/businesses/{business_id}/bookings",
            "calendar": "/api/v1/calendar/{business_id}/status"
        }
    }
