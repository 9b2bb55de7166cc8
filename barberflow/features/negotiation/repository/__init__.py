from .appointment_repository import (  # noqa: F401
    AppointmentRepository,
    InMemoryAppointmentRepository,
    RedisAppointmentRepository,
)
from .notification_repository import (  # noqa: F401
    InMemoryNotificationRepository,
    NotificationRepository,
    RedisNotificationRepository,
)
