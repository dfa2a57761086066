from .db import db
from .user import User, Role, user_roles
from .audit_log import AuditLog
from .session import AuthSession
from .city import City
from .field import Field
from .schedule import WeeklyScheduleEntry
from .availability import Availability
from .reservation import Reservation
