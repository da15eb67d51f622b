"""
In-app, push and email notifications
"""
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.logging_config import logger
from app.db.models import (
    Booking, Dispute, Notification, Profile, PushToken, PayoutTransfer,
    BackgroundCheckStatus, UserRole, UserSuspension, utcnow
)
from app.utils.email_service import email_service
from app.utils.price_utils import format_amount
from app.utils.push_service import push_service
from app.utils.tasks import schedule_after_commit

# notification_type -> locale -> (title, body); bodies are str.format templates
MESSAGES: Dict[str, Dict[str, tuple]] = {
    "new_booking": {
        "es": ("Nueva reserva", "{customer} reservó {service} para el {date}."),
        "en": ("New booking", "{customer} booked {service} for {date}."),
    },
    "booking_accepted": {
        "es": ("Reserva confirmada", "{professional} aceptó tu reserva de {service}."),
        "en": ("Booking confirmed", "{professional} accepted your {service} booking."),
    },
    "booking_declined": {
        "es": ("Reserva rechazada", "{professional} no puede atender tu reserva de {service}. No se realizó ningún cobro."),
        "en": ("Booking declined", "{professional} can't take your {service} booking. You have not been charged."),
    },
    "booking_cancelled": {
        "es": ("Reserva cancelada", "La reserva de {service} del {date} fue cancelada. Reembolso: {refund}."),
        "en": ("Booking cancelled", "The {service} booking on {date} was cancelled. Refund: {refund}."),
    },
    "service_started": {
        "es": ("Servicio iniciado", "{professional} llegó y comenzó tu servicio de {service}."),
        "en": ("Service started", "{professional} arrived and started your {service}."),
    },
    "service_completed": {
        "es": ("Servicio completado", "Tu servicio de {service} terminó. Total cobrado: {amount}."),
        "en": ("Service completed", "Your {service} is complete. Total charged: {amount}."),
    },
    "earnings_pending": {
        "es": ("Ganancias en proceso", "Ganaste {amount} por {service}. Estará disponible en 24 horas."),
        "en": ("Earnings pending", "You earned {amount} for {service}. It will be available in 24 hours."),
    },
    "dispute_opened": {
        "es": ("Disputa abierta", "Se abrió una disputa sobre la reserva #{booking_id}: {reason}."),
        "en": ("Dispute opened", "A dispute was opened on booking #{booking_id}: {reason}."),
    },
    "dispute_resolved": {
        "es": ("Disputa resuelta", "La disputa de la reserva #{booking_id} fue resuelta. Reembolso: {refund}."),
        "en": ("Dispute resolved", "The dispute on booking #{booking_id} was resolved. Refund: {refund}."),
    },
    "payout_status": {
        "es": ("Estado de tu pago", "Tu pago de {amount} está {status}."),
        "en": ("Payout update", "Your payout of {amount} is {status}."),
    },
    "background_check": {
        "es": ("Verificación de antecedentes", "Tu verificación de antecedentes terminó con estado: {status}."),
        "en": ("Background check", "Your background check finished with status: {status}."),
    },
    "payment_failed": {
        "es": ("Fallo de pago", "Fallo de pago en la reserva #{booking_id}: {reason}."),
        "en": ("Payment failure", "Payment failure on booking #{booking_id}: {reason}."),
    },
    "rebook_nudge": {
        "es": ("¿Reservar de nuevo?", "Reserva otra vez {service} con {professional}."),
        "en": ("Book again?", "Book {service} with {professional} again."),
    },
    "account_suspended": {
        "es": ("Cuenta suspendida", "Tu cuenta fue suspendida: {reason}. Hasta: {until}."),
        "en": ("Account suspended", "Your account has been suspended: {reason}. Until: {until}."),
    },
}


def _render(notification_type: str, locale: str, **params) -> tuple:
    templates = MESSAGES[notification_type]
    title, body = templates.get(locale, templates["en"])
    return title, body.format(**params)


def _date(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else ""


class NotificationService:
    """Service for user and admin notifications"""

    @staticmethod
    def notify(
        db: Session,
        user: Profile,
        notification_type: str,
        url: Optional[str] = None,
        booking_id: Optional[int] = None,
        send_push: bool = True,
        send_email: bool = False,
        **params
    ) -> Notification:
        """
        Write an in-app notification and queue push/email delivery.
        Delivery starts in the background once the caller commits; failures are only logged.
        """
        title, body = _render(notification_type, user.locale or "es", booking_id=booking_id, **params)
        notification = Notification(
            user_id=user.id,
            title=title,
            body=body,
            notification_type=notification_type,
            url=url,
            related_booking_id=booking_id,
        )
        db.add(notification)

        if send_push:
            tokens = [
                t.token for t in db.query(PushToken).filter(
                    PushToken.user_id == user.id,
                    PushToken.is_active == True
                ).all()
            ]
            if tokens:
                data = {"type": notification_type, "url": url, "booking_id": booking_id}
                schedule_after_commit(db, push_service.send, tokens, title, body, data)

        if send_email and user.email:
            schedule_after_commit(
                db, email_service.send_notification_email,
                to_email=user.email,
                user_name=user.full_name,
                subject=title,
                body=body,
                url=url,
                locale=user.locale or "es",
            )

        logger.info(f"Notification '{notification_type}' queued for user {user.id}")
        return notification

    @staticmethod
    def notify_admins(db: Session, notification_type: str, url: Optional[str] = None,
                      booking_id: Optional[int] = None, **params) -> List[Notification]:
        admins = db.query(Profile).filter(Profile.role == UserRole.ADMIN, Profile.is_active == True).all()
        return [
            NotificationService.notify(
                db, admin, notification_type, url=url, booking_id=booking_id,
                send_push=False, send_email=True, **params
            )
            for admin in admins
        ]

    # Domain helpers

    @staticmethod
    def notify_new_booking(db: Session, booking: Booking):
        return NotificationService.notify(
            db, booking.professional, "new_booking",
            url=f"/pro/bookings/{booking.id}", booking_id=booking.id, send_email=True,
            customer=booking.customer.full_name, service=booking.service_name,
            date=_date(booking.scheduled_start),
        )

    @staticmethod
    def notify_booking_accepted(db: Session, booking: Booking):
        return NotificationService.notify(
            db, booking.customer, "booking_accepted",
            url=f"/dashboard/bookings/{booking.id}", booking_id=booking.id, send_email=True,
            professional=booking.professional.full_name, service=booking.service_name,
        )

    @staticmethod
    def notify_booking_declined(db: Session, booking: Booking):
        return NotificationService.notify(
            db, booking.customer, "booking_declined",
            url=f"/dashboard/bookings/{booking.id}", booking_id=booking.id, send_email=True,
            professional=booking.professional.full_name, service=booking.service_name,
        )

    @staticmethod
    def notify_booking_cancelled(db: Session, booking: Booking, recipient: Profile, refund_amount: int):
        return NotificationService.notify(
            db, recipient, "booking_cancelled",
            url=f"/dashboard/bookings/{booking.id}", booking_id=booking.id, send_email=True,
            service=booking.service_name, date=_date(booking.scheduled_start),
            refund=format_amount(refund_amount, booking.currency),
        )

    @staticmethod
    def notify_service_started(db: Session, booking: Booking):
        return NotificationService.notify(
            db, booking.customer, "service_started",
            url=f"/dashboard/bookings/{booking.id}", booking_id=booking.id,
            professional=booking.professional.full_name, service=booking.service_name,
        )

    @staticmethod
    def notify_service_completed(db: Session, booking: Booking):
        """Customer gets the receipt; professional gets the pending earnings notice"""
        amount = booking.amount_captured or 0
        customer = booking.customer
        NotificationService.notify(
            db, customer, "service_completed",
            url=f"/dashboard/bookings/{booking.id}", booking_id=booking.id,
            service=booking.service_name, amount=format_amount(amount, booking.currency),
        )
        if customer.email:
            receipt = {
                "id": booking.id,
                "service_name": booking.service_name,
                "scheduled_start": booking.scheduled_start,
                "duration_minutes": booking.duration_minutes,
                "actual_duration_minutes": booking.actual_duration_minutes,
                "currency": booking.currency,
            }
            schedule_after_commit(
                db, email_service.send_booking_receipt,
                customer.email, customer.full_name, receipt, amount, customer.locale or "es",
            )
        return NotificationService.notify(
            db, booking.professional, "earnings_pending",
            url="/pro/finances", booking_id=booking.id,
            service=booking.service_name, amount=format_amount(amount, booking.currency),
        )

    @staticmethod
    def notify_dispute_opened(db: Session, booking: Booking, dispute: Dispute):
        NotificationService.notify(
            db, booking.professional, "dispute_opened",
            url=f"/pro/bookings/{booking.id}", booking_id=booking.id, send_email=True,
            reason=dispute.reason,
        )
        return NotificationService.notify_admins(
            db, "dispute_opened", url=f"/admin/disputes/{dispute.id}", booking_id=booking.id,
            reason=dispute.reason,
        )

    @staticmethod
    def notify_dispute_resolved(db: Session, booking: Booking, dispute: Dispute):
        for recipient in (booking.customer, booking.professional):
            NotificationService.notify(
                db, recipient, "dispute_resolved",
                url=f"/dashboard/bookings/{booking.id}", booking_id=booking.id, send_email=True,
                refund=format_amount(dispute.refund_amount or 0, booking.currency),
            )

    @staticmethod
    def notify_payout_status(db: Session, transfer: PayoutTransfer):
        professional = db.query(Profile).filter(Profile.id == transfer.professional_id).first()
        if not professional:
            logger.warning(f"Payout {transfer.id} has no professional profile, skipping notification")
            return None
        status = transfer.status.value if hasattr(transfer.status, "value") else str(transfer.status)
        return NotificationService.notify(
            db, professional, "payout_status", url="/pro/finances", send_email=True,
            amount=format_amount(transfer.amount, transfer.currency), status=status,
        )

    @staticmethod
    def notify_background_check(db: Session, professional: Profile, status: BackgroundCheckStatus):
        return NotificationService.notify(
            db, professional, "background_check", url="/pro/onboarding", send_email=True,
            status=BackgroundCheckStatus(status).value,
        )

    @staticmethod
    def notify_admin_payment_failure(db: Session, booking: Booking, reason: str):
        logger.error(f"Payment failure on booking {booking.id}: {reason}")
        return NotificationService.notify_admins(
            db, "payment_failed", url=f"/admin/bookings/{booking.id}", booking_id=booking.id,
            reason=reason,
        )

    @staticmethod
    def notify_rebook_nudge(db: Session, booking: Booking):
        customer = booking.customer
        notification = NotificationService.notify(
            db, customer, "rebook_nudge",
            url=f"/pros/{booking.professional_id}?rebook=1", booking_id=booking.id,
            service=booking.service_name, professional=booking.professional.full_name,
        )
        if customer.email:
            schedule_after_commit(
                db, email_service.send_rebook_nudge,
                to_email=customer.email,
                user_name=customer.full_name,
                professional_name=booking.professional.full_name,
                service_name=booking.service_name,
                professional_id=booking.professional_id,
                locale=customer.locale or "es",
            )
        return notification

    @staticmethod
    def notify_account_suspended(db: Session, user: Profile, suspension: UserSuspension):
        return NotificationService.notify(
            db, user, "account_suspended", send_push=False, send_email=True,
            reason=suspension.reason, until=_date(suspension.expires_at) or "-",
        )

    # Inbox

    @staticmethod
    def list_query(db: Session, user_id: int, unread_only: bool = False):
        query = db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read == False)
        return query.order_by(Notification.created_at.desc(), Notification.id.desc())

    @staticmethod
    def unread_count(db: Session, user_id: int) -> int:
        return db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read == False
        ).count()

    @staticmethod
    def mark_read(db: Session, user_id: int, notification_id: int) -> Optional[Notification]:
        notification = db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).first()
        if not notification:
            return None
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            db.commit()
            db.refresh(notification)
        return notification

    @staticmethod
    def mark_all_read(db: Session, user_id: int) -> int:
        updated = db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read == False
        ).update({Notification.is_read: True, Notification.read_at: utcnow()}, synchronize_session=False)
        db.commit()
        return updated

    @staticmethod
    def register_push_token(db: Session, user_id: int, token: str, platform: Optional[str] = None) -> PushToken:
        """Tokens are unique per device; re-registering moves the token to the current user"""
        push_token = db.query(PushToken).filter(PushToken.token == token).first()
        if push_token:
            push_token.user_id = user_id
            push_token.platform = platform or push_token.platform
            push_token.is_active = True
        else:
            push_token = PushToken(user_id=user_id, token=token, platform=platform)
            db.add(push_token)
        db.commit()
        db.refresh(push_token)
        logger.info(f"Push token registered for user {user_id}")
        return push_token


# Global instance
notification_service = NotificationService()
