import logging
from pathlib import Path
from datetime import datetime
from typing import Optional

from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType
from jinja2 import Environment, FileSystemLoader
from pydantic import EmailStr

from config.setting import settings
from util.enum import NotificationEvent

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "template"

env = Environment(loader=FileSystemLoader(searchpath=str(TEMPLATE_DIR)), autoescape=True)

EVENT_EMAILS = {
    NotificationEvent.plan_created: ("Your new study plan is ready", "plan_created.html"),
    NotificationEvent.plan_completed: (
        "Congratulations on completing your study plan!", "plan_completed.html"
    ),
    NotificationEvent.missed_day: ("You have study tasks waiting", "missed_day.html"),
}


class MailService:
    mail_config = ConnectionConfig(
        MAIL_USERNAME=settings.MAIL_USERNAME,
        MAIL_PASSWORD=str(settings.MAIL_PASSWORD).strip(),
        MAIL_FROM=settings.MAIL_FROM,
        MAIL_FROM_NAME=settings.MAIL_FROM_NAME,
        MAIL_PORT=settings.MAIL_PORT,
        MAIL_SERVER=settings.MAIL_SERVER,
        MAIL_SSL_TLS=settings.MAIL_SSL_TLS,
        MAIL_STARTTLS=settings.MAIL_STARTTLS,
        USE_CREDENTIALS=settings.USE_CREDENTIALS,
        VALIDATE_CERTS=settings.VALIDATE_CERTS,
        MAIL_DEBUG=settings.MAIL_DEBUG,
    )

    @staticmethod
    def render(email_template: str, content: Optional[dict] = None) -> str:
        email_content = dict(content or {})
        email_content.setdefault("current_year", str(datetime.now().year))
        email_content.setdefault("frontend_uri", settings.FRONTEND_URI)
        return env.get_template(email_template).render(**email_content)

    @classmethod
    async def send_email(
        cls,
        email: EmailStr,
        subject: str,
        content: dict = None,
        email_template: str = "plan_created.html",
    ) -> bool:
        """Send a templated email; failures are logged, never raised."""
        try:
            html = cls.render(email_template, content)
            message = MessageSchema(
                subject=subject, recipients=[email], body=html, subtype=MessageType.html
            )
            fm = FastMail(cls.mail_config)
            await fm.send_message(message)
            logger.info("Email '%s' sent to %s", subject, email)
            return True
        except Exception as e:
            logger.error("Failed to send '%s' to %s: %s", subject, email, e)
            return False

    @classmethod
    async def notify(cls, event: NotificationEvent, email: EmailStr, content: dict) -> bool:
        subject, email_template = EVENT_EMAILS[event]
        return await cls.send_email(
            email=email, subject=subject, content=content, email_template=email_template
        )
