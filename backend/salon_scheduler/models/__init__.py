from .tables import (
    AppointmentServices,
    AppointmentStatus,
    Appointments,
    Base,
    DailyResetMarkers,
    Invoices,
    PriorityHistory,
    QueueCounters,
    SalonWorkingHours,
    Salons,
    Services,
    Staff,
    StaffPriorities,
    StaffSchedules,
    StaffServices,
    metadata,
)

__all__ = [
    "AppointmentServices",
    "AppointmentStatus",
    "Appointments",
    "Base",
    "DailyResetMarkers",
    "Invoices",
    "PriorityHistory",
    "QueueCounters",
    "SalonWorkingHours",
    "Salons",
    "Services",
    "Staff",
    "StaffPriorities",
    "StaffSchedules",
    "StaffServices",
    "metadata",
]
