from .health import health_bp
from .auth import auth_bp
from .fields import fields_bp
from .availability import availability_bp
from .reservations import reservations_bp
