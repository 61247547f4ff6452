from .appointment import Appointment, AppointmentRequest
from .blocked_time import BlockedTime, ServiceBuffer
from .booking_policy import PolicyConfiguration, PolicyConfigurationUpdate
from .shift import DayShift, RegularShiftTemplate, ShiftInterval

__all__ = [
    "Appointment",
    "AppointmentRequest",
    "BlockedTime",
    "DayShift",
    "PolicyConfiguration",
    "PolicyConfigurationUpdate",
    "RegularShiftTemplate",
    "ServiceBuffer",
    "ShiftInterval",
]
