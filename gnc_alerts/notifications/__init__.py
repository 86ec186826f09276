"""WhatsApp deep links for manual client notification."""

from .whatsapp import (
    build_whatsapp_link,
    pickup_notice_message,
    renewal_reminder_message,
    to_whatsapp_phone,
)

__all__ = [
    "build_whatsapp_link",
    "pickup_notice_message",
    "renewal_reminder_message",
    "to_whatsapp_phone",
]
