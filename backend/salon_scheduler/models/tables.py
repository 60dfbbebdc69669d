from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata


class AppointmentStatus:
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Salons(Base):
    __tablename__ = 'salons'

    name = Column(Text, nullable=False)
    id = Column(Integer, primary_key=True)
    timezone = Column(Text)
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    created_at = Column(DateTime, server_default=text('CURRENT_TIMESTAMP'))

    working_hours = relationship('SalonWorkingHours', back_populates='salon')
    staff = relationship('Staff', back_populates='salon')
    services = relationship('Services', back_populates='salon')
    appointments = relationship('Appointments', back_populates='salon')


class SalonWorkingHours(Base):
    __tablename__ = 'salon_working_hours'
    __table_args__ = (
        UniqueConstraint('salon_id', 'day_of_week'),
    )

    salon_id = Column(ForeignKey('salons.id', ondelete='CASCADE'), nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0 = Monday
    start_time = Column(Text, nullable=False)  # "HH:MM"
    end_time = Column(Text, nullable=False)
    is_open = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)

    salon = relationship('Salons', back_populates='working_hours')


class Staff(Base):
    __tablename__ = 'staff'

    salon_id = Column(ForeignKey('salons.id', ondelete='CASCADE'), nullable=False)
    display_name = Column(Text, nullable=False)
    id = Column(Integer, primary_key=True)
    phone = Column(Text)
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    created_at = Column(DateTime, server_default=text('CURRENT_TIMESTAMP'))

    salon = relationship('Salons', back_populates='staff')
    schedules = relationship('StaffSchedules', back_populates='staff')
    staff_services = relationship('StaffServices', back_populates='staff')
    priority = relationship('StaffPriorities', uselist=False, back_populates='staff')
    appointments = relationship('Appointments', back_populates='staff')


class Services(Base):
    __tablename__ = 'services'

    salon_id = Column(ForeignKey('salons.id', ondelete='CASCADE'), nullable=False)
    name = Column(Text, nullable=False)
    duration_min = Column(Integer, nullable=False)
    price = Column(Float, nullable=False, server_default=text('0'))
    id = Column(Integer, primary_key=True)
    is_active = Column(Integer, nullable=False, server_default=text('1'))

    salon = relationship('Salons', back_populates='services')
    staff_services = relationship('StaffServices', back_populates='service')


class StaffServices(Base):
    __tablename__ = 'staff_services'
    __table_args__ = (
        UniqueConstraint('staff_id', 'service_id'),
    )

    staff_id = Column(ForeignKey('staff.id', ondelete='CASCADE'), nullable=False)
    service_id = Column(ForeignKey('services.id', ondelete='CASCADE'), nullable=False)
    id = Column(Integer, primary_key=True)
    duration_min = Column(Integer)  # NULL = service default
    is_active = Column(Integer, nullable=False, server_default=text('1'))

    staff = relationship('Staff', back_populates='staff_services')
    service = relationship('Services', back_populates='staff_services')


class StaffSchedules(Base):
    """
    Working window of a staff member.

    schedule_date IS NULL  → recurring, keyed by day_of_week
    schedule_date NOT NULL → date-specific, overrides the recurring row
    """
    __tablename__ = 'staff_schedules'

    staff_id = Column(ForeignKey('staff.id', ondelete='CASCADE'), nullable=False)
    start_time = Column(Text, nullable=False)  # "HH:MM"
    end_time = Column(Text, nullable=False)
    id = Column(Integer, primary_key=True)
    day_of_week = Column(Integer)  # 0 = Monday
    schedule_date = Column(Date)
    break_start = Column(Text)
    break_end = Column(Text)

    staff = relationship('Staff', back_populates='schedules')


class Appointments(Base):
    __tablename__ = 'appointments'
    __table_args__ = (
        UniqueConstraint('salon_id', 'check_in_date', 'queue_number'),
    )

    salon_id = Column(ForeignKey('salons.id', ondelete='CASCADE'), nullable=False)
    staff_id = Column(ForeignKey('staff.id', ondelete='SET NULL'))  # NULL = waiting list
    customer_name = Column(Text, nullable=False)
    date_start = Column(DateTime, nullable=False)
    date_end = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    status = Column(Text, nullable=False, server_default=text("'PENDING'"))
    id = Column(Integer, primary_key=True)
    customer_phone = Column(Text)
    notes = Column(Text)
    check_in_date = Column(Date)
    queue_number = Column(Integer)
    checked_in_at = Column(DateTime)
    started_at = Column(DateTime)
    completed_at = Column(DateTime)
    cancel_reason = Column(Text)
    created_at = Column(DateTime, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    updated_at = Column(DateTime, nullable=False, server_default=text('CURRENT_TIMESTAMP'))

    salon = relationship('Salons', back_populates='appointments')
    staff = relationship('Staff', back_populates='appointments')
    items = relationship(
        'AppointmentServices',
        back_populates='appointment',
        order_by='AppointmentServices.id',
    )
    invoices = relationship('Invoices', back_populates='appointment')


class AppointmentServices(Base):
    __tablename__ = 'appointment_services'

    appointment_id = Column(ForeignKey('appointments.id', ondelete='CASCADE'), nullable=False)
    service_id = Column(ForeignKey('services.id', ondelete='SET NULL'))
    service_name = Column(Text, nullable=False)
    duration_min = Column(Integer, nullable=False)
    price = Column(Float, nullable=False, server_default=text('0'))
    id = Column(Integer, primary_key=True)

    appointment = relationship('Appointments', back_populates='items')


class Invoices(Base):
    __tablename__ = 'invoices'

    salon_id = Column(ForeignKey('salons.id', ondelete='CASCADE'), nullable=False)
    final_amount = Column(Float, nullable=False, server_default=text('0'))
    status = Column(Text, nullable=False, server_default=text("'PAID'"))
    created_at = Column(DateTime, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    id = Column(Integer, primary_key=True)
    appointment_id = Column(ForeignKey('appointments.id', ondelete='SET NULL'))
    payment_method = Column(Text)

    appointment = relationship('Appointments', back_populates='invoices')


class StaffPriorities(Base):
    __tablename__ = 'staff_priorities'

    staff_id = Column(ForeignKey('staff.id', ondelete='CASCADE'), nullable=False, unique=True)
    salon_id = Column(ForeignKey('salons.id', ondelete='CASCADE'), nullable=False)
    priority_order = Column(Integer, nullable=False, server_default=text('999'))
    sort_by_revenue = Column(Text, nullable=False, server_default=text("'DESC'"))
    id = Column(Integer, primary_key=True)
    updated_at = Column(DateTime, server_default=text('CURRENT_TIMESTAMP'))

    staff = relationship('Staff', back_populates='priority')
    history = relationship('PriorityHistory', back_populates='staff_priority')


class PriorityHistory(Base):
    __tablename__ = 'priority_history'

    staff_priority_id = Column(ForeignKey('staff_priorities.id', ondelete='CASCADE'), nullable=False)
    priority_order = Column(Integer, nullable=False)
    sort_by_revenue = Column(Text, nullable=False)
    id = Column(Integer, primary_key=True)
    changed_by = Column(Text)
    changed_at = Column(DateTime, nullable=False, server_default=text('CURRENT_TIMESTAMP'))

    staff_priority = relationship('StaffPriorities', back_populates='history')


class DailyResetMarkers(Base):
    __tablename__ = 'daily_reset_markers'
    __table_args__ = (
        UniqueConstraint('salon_id', 'reset_date'),
    )

    salon_id = Column(ForeignKey('salons.id', ondelete='CASCADE'), nullable=False)
    reset_date = Column(Date, nullable=False)
    id = Column(Integer, primary_key=True)
    created_at = Column(DateTime, server_default=text('CURRENT_TIMESTAMP'))


class QueueCounters(Base):
    __tablename__ = 'queue_counters'
    __table_args__ = (
        UniqueConstraint('salon_id', 'queue_date'),
    )

    salon_id = Column(ForeignKey('salons.id', ondelete='CASCADE'), nullable=False)
    queue_date = Column(Date, nullable=False)
    last_number = Column(Integer, nullable=False, server_default=text('0'))
    id = Column(Integer, primary_key=True)
