"""
AWS SES email service for transactional emails
"""
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import settings
from app.core.logging_config import logger
from app.core.templates import render_email

GREETINGS = {"es": "Hola", "en": "Hi"}

RECEIPT_LABELS = {
    "es": {"service": "Servicio", "date": "Fecha", "duration": "Duración", "amount": "Total", "reference": "Reserva"},
    "en": {"service": "Service", "date": "Date", "duration": "Duration", "amount": "Total", "reference": "Booking"},
}


class EmailService:
    """Service for sending emails via AWS SES"""

    def __init__(self):
        self._client = None
        self.from_email = settings.SES_FROM_EMAIL
        self.from_name = settings.SES_FROM_NAME

    @property
    def ses_client(self):
        # Created lazily so importing the module never needs AWS credentials
        if self._client is None:
            self._client = boto3.client(
                'ses',
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
                region_name=settings.SES_REGION
            )
        return self._client

    def send_email(
        self,
        to_email: str,
        subject: str,
        body_text: str,
        body_html: Optional[str] = None,
        cc: Optional[List[str]] = None,
        bcc: Optional[List[str]] = None
    ) -> bool:
        """
        Send an email via AWS SES

        Returns:
            True if successful, False otherwise (including when email is disabled)
        """
        if not settings.EMAIL_ENABLED:
            logger.debug(f"Email disabled, skipping '{subject}' to {to_email}")
            return False

        destination = {'ToAddresses': [to_email]}
        if cc:
            destination['CcAddresses'] = cc
        if bcc:
            destination['BccAddresses'] = bcc

        body = {'Text': {'Data': body_text, 'Charset': 'UTF-8'}}
        if body_html:
            body['Html'] = {'Data': body_html, 'Charset': 'UTF-8'}

        try:
            response = self.ses_client.send_email(
                Source=f"{self.from_name} <{self.from_email}>",
                Destination=destination,
                Message={
                    'Subject': {'Data': subject, 'Charset': 'UTF-8'},
                    'Body': body,
                }
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error sending email to {to_email}: {str(e)}")
            return False

        logger.info(f"Email sent successfully to {to_email}. MessageId: {response['MessageId']}")
        return True

    def send_notification_email(
        self,
        to_email: str,
        user_name: str,
        subject: str,
        body: str,
        url: Optional[str] = None,
        cta: str = "Ver en Casaora",
        locale: str = "es"
    ) -> bool:
        """Generic notification email wrapping a title and message"""
        link = f"{settings.SITE_URL}{url}" if url and url.startswith("/") else url
        body_html = render_email(
            "notification.html",
            subject=subject,
            greeting=GREETINGS.get(locale, GREETINGS["en"]),
            user_name=user_name,
            body=body,
            url=link,
            cta=cta,
            locale=locale,
            site_url=settings.SITE_URL,
        )
        body_text = f"{body}\n\n{link}" if link else body
        return self.send_email(to_email, subject, body_text, body_html)

    def send_booking_receipt(self, to_email: str, user_name: str, booking: Dict[str, Any], amount: int, locale: str = "es") -> bool:
        """Receipt sent to the customer after check-out capture; booking is a plain snapshot dict"""
        if locale == "es":
            subject = f"Recibo de tu reserva #{booking['id']}"
            intro = "Gracias por usar Casaora. Este es el resumen de tu servicio."
        else:
            subject = f"Receipt for booking #{booking['id']}"
            intro = "Thanks for using Casaora. Here is a summary of your service."

        body_html = render_email(
            "booking_receipt.html",
            subject=subject,
            greeting=GREETINGS.get(locale, GREETINGS["en"]),
            user_name=user_name,
            intro=intro,
            booking=booking,
            amount=amount,
            labels=RECEIPT_LABELS.get(locale, RECEIPT_LABELS["en"]),
            locale=locale,
            site_url=settings.SITE_URL,
        )
        body_text = f"{intro}\n{booking['service_name']} - #{booking['id']}"
        return self.send_email(to_email, subject, body_text, body_html)

    def send_rebook_nudge(
        self,
        to_email: str,
        user_name: str,
        professional_name: str,
        service_name: str,
        professional_id: int,
        locale: str = "es"
    ) -> bool:
        if locale == "es":
            subject = f"¿Reservar de nuevo con {professional_name}?"
            body = f"¿Qué tal estuvo tu servicio de {service_name}? Puedes reservar de nuevo con {professional_name} en un par de clics."
            cta = "Reservar de nuevo"
        else:
            subject = f"Book {professional_name} again?"
            body = f"How was your {service_name}? You can book {professional_name} again in a couple of clicks."
            cta = "Book again"

        url = f"{settings.SITE_URL}/pros/{professional_id}?rebook=1"
        body_html = render_email(
            "rebook_nudge.html",
            subject=subject,
            greeting=GREETINGS.get(locale, GREETINGS["en"]),
            user_name=user_name,
            body=body,
            url=url,
            cta=cta,
            locale=locale,
            site_url=settings.SITE_URL,
        )
        return self.send_email(to_email, subject, f"{body}\n\n{url}", body_html)


# Global instance
email_service = EmailService()
