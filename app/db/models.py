"""
Database models for the Casaora marketplace

All monetary columns hold integer minor currency units (cents/centavos).
All timestamps are naive UTC.
"""
from datetime import datetime, timezone
from enum import Enum as PyEnum
from sqlalchemy import (
    Column, Integer, BigInteger, String, Boolean, Text, JSON, Float, DateTime, Date,
    ForeignKey, Enum, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.session import Base


def utcnow() -> datetime:
    """Current time as naive UTC"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Enums
class UserRole(str, PyEnum):
    CUSTOMER = "customer"
    PROFESSIONAL = "professional"
    ADMIN = "admin"


class CountryCode(str, PyEnum):
    """Supported markets"""
    CO = "CO"
    PY = "PY"
    UY = "UY"
    AR = "AR"


class CurrencyCode(str, PyEnum):
    COP = "COP"
    PYG = "PYG"
    UYU = "UYU"
    ARS = "ARS"
    USD = "USD"


class PaymentProcessor(str, PyEnum):
    STRIPE = "stripe"
    PAYPAL = "paypal"


class BookingStatus(str, PyEnum):
    """Booking lifecycle status"""
    PENDING_PAYMENT = "pending_payment"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DECLINED = "declined"
    DISPUTED = "disputed"


class TransactionType(str, PyEnum):
    AUTHORIZATION = "authorization"
    CAPTURE = "capture"
    VOID = "void"
    REFUND = "refund"
    TIP = "tip"


class TransactionStatus(str, PyEnum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ClearanceStatus(str, PyEnum):
    PENDING = "pending"
    CLEARED = "cleared"
    CANCELLED = "cancelled"


class PayoutType(str, PyEnum):
    INSTANT = "instant"
    BATCH = "batch"


class PayoutStatus(str, PyEnum):
    PROCESSING = "processing"
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    RETURNED = "returned"
    BLOCKED = "blocked"
    UNCLAIMED = "unclaimed"


class PayoutBatchStatus(str, PyEnum):
    PROCESSING = "processing"
    COMPLETED = "completed"


class WebhookProvider(str, PyEnum):
    STRIPE = "stripe"
    PAYPAL = "paypal"
    CHECKR = "checkr"
    TRUORA = "truora"


class WebhookEventStatus(str, PyEnum):
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"


class DisputeStatus(str, PyEnum):
    OPEN = "open"
    RESOLVED = "resolved"
    REJECTED = "rejected"


class SuspensionType(str, PyEnum):
    TEMPORARY = "temporary"
    PERMANENT = "permanent"


class BackgroundCheckStatus(str, PyEnum):
    NOT_STARTED = "not_started"
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    CLEAR = "clear"
    CONSIDER = "consider"
    SUSPENDED = "suspended"
    FAILED = "failed"


class RoadmapStatus(str, PyEnum):
    UNDER_CONSIDERATION = "under_consideration"
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    SHIPPED = "shipped"


class RoadmapCategory(str, PyEnum):
    FEATURES = "features"
    INFRASTRUCTURE = "infrastructure"
    UI_UX = "ui_ux"
    SECURITY = "security"
    INTEGRATIONS = "integrations"


class RoadmapPriority(str, PyEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RoadmapVisibility(str, PyEnum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class Profile(Base):
    """User account shared by customers, professionals and admins"""
    __tablename__ = 'profiles'

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    full_name = Column(String, nullable=False)
    phone = Column(String(20), nullable=True)
    hashed_password = Column(String, nullable=True)
    role = Column(Enum(UserRole), default=UserRole.CUSTOMER, nullable=False, index=True)
    country = Column(Enum(CountryCode), default=CountryCode.CO, nullable=False)
    locale = Column(String(5), default="es", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=True)

    # Relationships
    professional_profile = relationship("ProfessionalProfile", back_populates="profile", uselist=False)
    customer_profile = relationship("CustomerProfile", back_populates="profile", uselist=False)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class ProfessionalProfile(Base):
    """Marketplace data and balances for a professional"""
    __tablename__ = 'professional_profiles'

    id = Column(Integer, primary_key=True, index=True)
    profile_id = Column(Integer, ForeignKey('profiles.id'), unique=True, nullable=False)
    bio = Column(Text, nullable=True)
    primary_services = Column(JSON, nullable=True)  # list of service names
    city = Column(String, nullable=True, index=True)
    hourly_rate = Column(BigInteger, nullable=True)
    rating = Column(Float, default=0.0, nullable=False)
    review_count = Column(Integer, default=0, nullable=False)
    total_bookings = Column(Integer, default=0, nullable=False)
    stripe_account_id = Column(String, nullable=True)
    paypal_email = Column(String, nullable=True)
    instant_payout_enabled = Column(Boolean, default=False, nullable=False)
    available_balance = Column(BigInteger, default=0, nullable=False)
    pending_balance = Column(BigInteger, default=0, nullable=False)
    total_earnings = Column(BigInteger, default=0, nullable=False)
    background_check_status = Column(
        Enum(BackgroundCheckStatus),
        default=BackgroundCheckStatus.NOT_STARTED,
        nullable=False
    )
    is_listed = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=True)

    profile = relationship("Profile", back_populates="professional_profile")


class CustomerProfile(Base):
    __tablename__ = 'customer_profiles'

    id = Column(Integer, primary_key=True, index=True)
    profile_id = Column(Integer, ForeignKey('profiles.id'), unique=True, nullable=False)
    stripe_customer_id = Column(String, nullable=True)
    default_address = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=True)

    profile = relationship("Profile", back_populates="customer_profile")


class Booking(Base):
    """Scheduled service engagement between customer and professional"""
    __tablename__ = 'bookings'

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey('profiles.id'), nullable=False, index=True)
    professional_id = Column(Integer, ForeignKey('profiles.id'), nullable=False, index=True)
    service_name = Column(String, nullable=False)
    status = Column(Enum(BookingStatus), default=BookingStatus.PENDING_PAYMENT, nullable=False, index=True)
    scheduled_start = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    scheduled_end = Column(DateTime, nullable=False)
    address = Column(JSON, nullable=True)  # {"street", "city", "latitude", "longitude", ...}
    special_instructions = Column(Text, nullable=True)
    country = Column(Enum(CountryCode), nullable=False)
    currency = Column(Enum(CurrencyCode), nullable=False)
    payment_processor = Column(Enum(PaymentProcessor), nullable=False, default=PaymentProcessor.STRIPE)

    # Amounts
    amount_estimated = Column(BigInteger, nullable=False)
    service_fee = Column(BigInteger, default=0, nullable=False)
    amount_authorized = Column(BigInteger, default=0, nullable=False)
    amount_captured = Column(BigInteger, nullable=True)
    amount_refunded = Column(BigInteger, default=0, nullable=False)
    time_extension_minutes = Column(Integer, default=0, nullable=False)
    time_extension_amount = Column(BigInteger, default=0, nullable=False)
    tip_amount = Column(BigInteger, nullable=True)
    tip_percentage = Column(Float, nullable=True)

    # Processor references
    stripe_payment_intent_id = Column(String, nullable=True, index=True)
    stripe_payment_status = Column(String, nullable=True)
    paypal_order_id = Column(String, nullable=True, index=True)
    paypal_authorization_id = Column(String, nullable=True)
    paypal_capture_id = Column(String, nullable=True)

    # Service execution
    checked_in_at = Column(DateTime, nullable=True)
    check_in_latitude = Column(Float, nullable=True)
    check_in_longitude = Column(Float, nullable=True)
    checked_out_at = Column(DateTime, nullable=True)
    check_out_latitude = Column(Float, nullable=True)
    check_out_longitude = Column(Float, nullable=True)
    actual_duration_minutes = Column(Integer, nullable=True)
    completion_notes = Column(Text, nullable=True)

    # Cancellation / decline
    cancellation_reason = Column(Text, nullable=True)
    cancelled_by = Column(Integer, ForeignKey('profiles.id'), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    decline_reason = Column(Text, nullable=True)
    accepted_at = Column(DateTime, nullable=True)

    # Rebook nudge experiment
    rebook_nudge_variant = Column(String(8), nullable=True)
    rebook_nudge_sent = Column(Boolean, default=False, nullable=False)
    rebook_nudge_sent_at = Column(DateTime, nullable=True)

    # Scheduled payout that paid out this booking's earnings
    payout_transfer_id = Column(Integer, ForeignKey('payout_transfers.id'), nullable=True, index=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=True)

    # Relationships
    customer = relationship("Profile", foreign_keys=[customer_id])
    professional = relationship("Profile", foreign_keys=[professional_id])
    cancelled_by_user = relationship("Profile", foreign_keys=[cancelled_by])
    transactions = relationship("PaymentTransaction", back_populates="booking", cascade='all, delete-orphan')
    dispute = relationship("Dispute", back_populates="booking", uselist=False)
    review = relationship("Review", back_populates="booking", uselist=False)
    payout_transfer = relationship("PayoutTransfer", back_populates="bookings")


class PaymentTransaction(Base):
    """Record of every processor call, keyed by the idempotency key sent to the processor"""
    __tablename__ = 'payment_transactions'

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey('bookings.id'), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('profiles.id'), nullable=True)
    processor = Column(Enum(PaymentProcessor), nullable=False)
    transaction_type = Column(Enum(TransactionType), nullable=False)
    status = Column(Enum(TransactionStatus), default=TransactionStatus.PENDING, nullable=False)
    amount = Column(BigInteger, nullable=False)
    currency = Column(Enum(CurrencyCode), nullable=False)
    processor_reference = Column(String, nullable=True)
    idempotency_key = Column(String, unique=True, nullable=False)
    gateway_response = Column(JSON, nullable=True)
    failure_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=True)

    booking = relationship("Booking", back_populates="transactions")
    user = relationship("Profile")


class BalanceClearance(Base):
    """24-hour hold on a completed booking's earnings"""
    __tablename__ = 'balance_clearances'

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey('bookings.id'), unique=True, nullable=False)
    professional_id = Column(Integer, ForeignKey('profiles.id'), nullable=False, index=True)
    amount = Column(BigInteger, nullable=False)
    completed_at = Column(DateTime, nullable=False)
    clearance_at = Column(DateTime, nullable=False, index=True)
    status = Column(Enum(ClearanceStatus), default=ClearanceStatus.PENDING, nullable=False)
    cleared_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=True)

    booking = relationship("Booking")


class PayoutBatch(Base):
    """One scheduled payout run (Tuesdays and Fridays)"""
    __tablename__ = 'payout_batches'

    id = Column(Integer, primary_key=True, index=True)
    batch_id = Column(String, unique=True, nullable=False)  # payout-2026-10-20-tue
    run_date = Column(Date, nullable=False)
    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)
    status = Column(Enum(PayoutBatchStatus), default=PayoutBatchStatus.PROCESSING, nullable=False)
    totals = Column(JSON, nullable=True)  # {"COP": 25000000, "PYG": ...}
    total_transfers = Column(Integer, default=0, nullable=False)
    successful_transfers = Column(Integer, default=0, nullable=False)
    failed_transfers = Column(Integer, default=0, nullable=False)
    started_at = Column(DateTime, server_default=func.now(), nullable=True)
    completed_at = Column(DateTime, nullable=True)

    transfers = relationship("PayoutTransfer", back_populates="batch")


class PayoutTransfer(Base):
    __tablename__ = 'payout_transfers'

    id = Column(Integer, primary_key=True, index=True)
    professional_id = Column(Integer, ForeignKey('profiles.id'), nullable=False, index=True)
    payout_type = Column(Enum(PayoutType), nullable=False)
    batch_id = Column(Integer, ForeignKey('payout_batches.id'), nullable=True, index=True)
    processor = Column(Enum(PaymentProcessor), default=PaymentProcessor.STRIPE, nullable=False)
    gross_amount = Column(BigInteger, nullable=False)
    fee_amount = Column(BigInteger, default=0, nullable=False)
    fee_percentage = Column(Float, default=0.0, nullable=False)
    amount = Column(BigInteger, nullable=False)  # net amount sent to the professional
    currency = Column(Enum(CurrencyCode), default=CurrencyCode.COP, nullable=False)
    status = Column(Enum(PayoutStatus), default=PayoutStatus.PROCESSING, nullable=False)
    stripe_payout_id = Column(String, unique=True, nullable=True)
    stripe_transfer_id = Column(String, unique=True, nullable=True)
    paypal_payout_item_id = Column(String, unique=True, nullable=True)
    error_message = Column(Text, nullable=True)
    requested_at = Column(DateTime, server_default=func.now(), nullable=True)
    completed_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=True)

    professional = relationship("Profile")
    batch = relationship("PayoutBatch", back_populates="transfers")
    bookings = relationship("Booking", back_populates="payout_transfer")


class PayoutRateLimit(Base):
    """Per-day instant payout counter"""
    __tablename__ = 'payout_rate_limits'
    __table_args__ = (
        UniqueConstraint('professional_id', 'payout_date', name='uq_payout_rate_limit_day'),
    )

    id = Column(Integer, primary_key=True, index=True)
    professional_id = Column(Integer, ForeignKey('profiles.id'), nullable=False)
    payout_date = Column(Date, nullable=False)
    instant_payout_count = Column(Integer, default=0, nullable=False)


class WebhookEvent(Base):
    """Provider callbacks, stored once per (provider, event_id)"""
    __tablename__ = 'webhook_events'
    __table_args__ = (
        UniqueConstraint('provider', 'event_id', name='uq_webhook_event_provider_id'),
    )

    id = Column(Integer, primary_key=True, index=True)
    provider = Column(Enum(WebhookProvider), nullable=False)
    event_id = Column(String, nullable=False)
    event_type = Column(String, nullable=False)
    status = Column(Enum(WebhookEventStatus), default=WebhookEventStatus.PROCESSING, nullable=False)
    payload = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    received_at = Column(DateTime, server_default=func.now(), nullable=True)
    processed_at = Column(DateTime, nullable=True)


class Dispute(Base):
    __tablename__ = 'disputes'

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey('bookings.id'), unique=True, nullable=False)
    opened_by = Column(Integer, ForeignKey('profiles.id'), nullable=False)
    reason = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(Enum(DisputeStatus), default=DisputeStatus.OPEN, nullable=False, index=True)
    resolution_notes = Column(Text, nullable=True)
    refund_amount = Column(BigInteger, default=0, nullable=False)
    resolved_by = Column(Integer, ForeignKey('profiles.id'), nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=True)

    booking = relationship("Booking", back_populates="dispute")
    opened_by_user = relationship("Profile", foreign_keys=[opened_by])
    resolved_by_user = relationship("Profile", foreign_keys=[resolved_by])


class Review(Base):
    """Customer review of a completed booking"""
    __tablename__ = 'reviews'

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey('bookings.id'), unique=True, nullable=False)
    customer_id = Column(Integer, ForeignKey('profiles.id'), nullable=False)
    professional_id = Column(Integer, ForeignKey('profiles.id'), nullable=False, index=True)
    rating = Column(Integer, nullable=False)  # 1-5
    comment = Column(Text, nullable=True)
    is_hidden = Column(Boolean, default=False, nullable=False)
    is_flagged = Column(Boolean, default=False, nullable=False)
    flag_reason = Column(Text, nullable=True)
    moderated_by = Column(Integer, ForeignKey('profiles.id'), nullable=True)
    moderated_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=True)

    booking = relationship("Booking", back_populates="review")
    customer = relationship("Profile", foreign_keys=[customer_id])


class UserSuspension(Base):
    __tablename__ = 'user_suspensions'

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('profiles.id'), nullable=False, index=True)
    suspended_by = Column(Integer, ForeignKey('profiles.id'), nullable=False)
    suspension_type = Column(Enum(SuspensionType), nullable=False)
    reason = Column(Text, nullable=False)
    details = Column(JSON, nullable=True)
    expires_at = Column(DateTime, nullable=True)  # NULL for permanent bans
    lifted_at = Column(DateTime, nullable=True)
    lifted_by = Column(Integer, ForeignKey('profiles.id'), nullable=True)
    lift_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=True)

    user = relationship("Profile", foreign_keys=[user_id])


class AdminAuditLog(Base):
    __tablename__ = 'admin_audit_logs'

    id = Column(Integer, primary_key=True, index=True)
    admin_id = Column(Integer, ForeignKey('profiles.id'), nullable=False, index=True)
    action_type = Column(String, nullable=False)
    target_user_id = Column(Integer, ForeignKey('profiles.id'), nullable=True)
    target_resource_type = Column(String, nullable=True)
    target_resource_id = Column(String, nullable=True)
    details = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=True)


class Notification(Base):
    """In-app notification"""
    __tablename__ = 'notifications'
    __table_args__ = (
        Index('ix_notifications_user_unread', 'user_id', 'is_read'),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('profiles.id'), nullable=False)
    title = Column(String, nullable=False)
    body = Column(Text, nullable=False)
    notification_type = Column(String, nullable=False)
    url = Column(String, nullable=True)
    related_booking_id = Column(Integer, ForeignKey('bookings.id'), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=True)


class PushToken(Base):
    """Expo push token registered by the mobile app"""
    __tablename__ = 'push_tokens'

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('profiles.id'), nullable=False, index=True)
    token = Column(String, unique=True, nullable=False)
    platform = Column(String(10), nullable=True)  # ios / android
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=True)


class RoadmapItem(Base):
    __tablename__ = 'roadmap_items'

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    slug = Column(String(200), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=False)
    status = Column(Enum(RoadmapStatus), default=RoadmapStatus.UNDER_CONSIDERATION, nullable=False)
    category = Column(Enum(RoadmapCategory), nullable=False)
    priority = Column(Enum(RoadmapPriority), default=RoadmapPriority.MEDIUM, nullable=False)
    target_quarter = Column(String(7), nullable=True)  # "Q1 2025"
    visibility = Column(Enum(RoadmapVisibility), default=RoadmapVisibility.DRAFT, nullable=False)
    target_audience = Column(JSON, nullable=True)  # ["all"] / ["customer", "professional"]
    tags = Column(JSON, nullable=True)
    vote_count = Column(Integer, default=0, nullable=False)
    created_by = Column(Integer, ForeignKey('profiles.id'), nullable=True)
    published_at = Column(DateTime, nullable=True)
    shipped_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=True)

    votes = relationship("RoadmapVote", back_populates="item", cascade='all, delete-orphan')


class RoadmapVote(Base):
    __tablename__ = 'roadmap_votes'
    __table_args__ = (
        UniqueConstraint('roadmap_item_id', 'user_id', name='uq_roadmap_vote_user'),
    )

    id = Column(Integer, primary_key=True, index=True)
    roadmap_item_id = Column(Integer, ForeignKey('roadmap_items.id'), nullable=False)
    user_id = Column(Integer, ForeignKey('profiles.id'), nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=True)

    item = relationship("RoadmapItem", back_populates="votes")


class BackgroundCheck(Base):
    __tablename__ = 'background_checks'

    id = Column(Integer, primary_key=True, index=True)
    professional_id = Column(Integer, ForeignKey('profiles.id'), nullable=False, index=True)
    provider = Column(Enum(WebhookProvider), nullable=False)
    provider_check_id = Column(String, unique=True, nullable=False)
    status = Column(Enum(BackgroundCheckStatus), default=BackgroundCheckStatus.PENDING, nullable=False)
    result = Column(JSON, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=True)

    professional = relationship("Profile")
