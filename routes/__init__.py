from .health import health_bp
from .booking import booking_bp
from .turfs import turf_bp
from .admin import admin_bp
