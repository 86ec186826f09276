from __future__ import annotations

import logging
import re
from typing import Any
from urllib.parse import quote

from jinja2 import Template

logger = logging.getLogger(__name__)

WHATSAPP_SEND_URL = "https://api.whatsapp.com/send"
COUNTRY_MOBILE_PREFIX = "549"
DEFAULT_WORKSHOP_NAME = "GNC Cosquin"

RENEWAL_REMINDER_TEMPLATE = (
    "Hola {{ client_name }}! Te recordamos que tu oblea"
    "{% if domain %} del vehiculo {{ domain }}{% endif %} vence"
    "{% if expiration %} el {{ expiration }}{% else %} este mes{% endif %}."
    " No olvides renovarla para circular sin inconvenientes. Agenda tu turno en {{ workshop_name }}!"
)
PICKUP_CYLINDER_TEMPLATE = (
    "Hola buenas, le hablo del taller de {{ workshop_name }} para informarle que ya se encuentra"
    " listo el tubo para ser colocado"
)
PICKUP_DOCUMENT_TEMPLATE = (
    "Hola buenas, le hablo del taller de {{ workshop_name }} para informarle que ya se encuentra"
    " la OBLEA para ser retirada"
)

_NON_DIGITS = re.compile(r"\D")


def to_whatsapp_phone(raw: str | None) -> str:
    """Normalize an Argentine phone to the ``549…`` international mobile form."""

    digits = _NON_DIGITS.sub("", raw or "")
    if not digits:
        return ""
    if digits.startswith(COUNTRY_MOBILE_PREFIX):
        return digits
    if digits.startswith("54"):
        return COUNTRY_MOBILE_PREFIX + digits[2:]
    if digits.startswith("0"):
        return COUNTRY_MOBILE_PREFIX + digits[1:]
    return COUNTRY_MOBILE_PREFIX + digits


def build_whatsapp_link(phone: str | None, message: str | None = None) -> str | None:
    normalized = to_whatsapp_phone(phone)
    if not normalized:
        return None
    link = f"{WHATSAPP_SEND_URL}?phone={normalized}"
    if message:
        link += f"&text={quote(message, safe='')}"
    return link


def _render_template(raw: str, context: dict[str, Any]) -> str:
    try:
        return Template(raw).render(**context).strip()
    except Exception:
        logger.exception("failed to render whatsapp template")
        return raw


def renewal_reminder_message(
    *,
    client_name: str,
    domain: str | None = None,
    expiration: str | None = None,
    workshop_name: str = DEFAULT_WORKSHOP_NAME,
) -> str:
    return _render_template(
        RENEWAL_REMINDER_TEMPLATE,
        {
            "client_name": client_name.strip() or "cliente",
            "domain": domain,
            "expiration": expiration,
            "workshop_name": workshop_name,
        },
    )


def pickup_notice_message(procedure_type_code: str | None, *, workshop_name: str = DEFAULT_WORKSHOP_NAME) -> str:
    """Hydrostatic tests announce the cylinder; every other procedure the sticker."""

    raw = PICKUP_CYLINDER_TEMPLATE if procedure_type_code == "PRUEBA_HIDRAULICA" else PICKUP_DOCUMENT_TEMPLATE
    return _render_template(raw, {"workshop_name": workshop_name})
