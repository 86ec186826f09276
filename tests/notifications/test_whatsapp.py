from urllib.parse import parse_qs, urlparse

from gnc_alerts.notifications import (
    build_whatsapp_link,
    pickup_notice_message,
    renewal_reminder_message,
    to_whatsapp_phone,
)


def test_to_whatsapp_phone_prefix_rules():
    assert to_whatsapp_phone("011-4555-1234") == "5491145551234"
    assert to_whatsapp_phone("+54 9 11 4555-1234") == "5491145551234"
    assert to_whatsapp_phone("54 3541 555123") == "5493541555123"
    assert to_whatsapp_phone("3541 555123") == "5493541555123"
    assert to_whatsapp_phone("") == ""
    assert to_whatsapp_phone(None) == ""
    assert to_whatsapp_phone("sin telefono") == ""


def test_build_whatsapp_link_encodes_text():
    link = build_whatsapp_link("011-4555-1234", "Hola Juan! Tu oblea & tubo")

    parsed = urlparse(link)
    assert parsed.netloc == "api.whatsapp.com"
    assert parsed.path == "/send"
    query = parse_qs(parsed.query)
    assert query["phone"] == ["5491145551234"]
    assert query["text"] == ["Hola Juan! Tu oblea & tubo"]
    assert " " not in link


def test_build_whatsapp_link_without_phone_or_message():
    assert build_whatsapp_link("") is None
    assert build_whatsapp_link("0351 4000000") == "https://api.whatsapp.com/send?phone=5493514000000"


def test_pickup_notice_depends_on_procedure_type():
    assert "tubo para ser colocado" in pickup_notice_message("PRUEBA_HIDRAULICA")
    assert "OBLEA para ser retirada" in pickup_notice_message("RENOVACION_OBLEA")
    assert "Taller Norte" in pickup_notice_message(None, workshop_name="Taller Norte")


def test_renewal_reminder_renders_optional_parts():
    with_details = renewal_reminder_message(client_name="Juan", domain="ABC123", expiration="10/01/2026")
    bare = renewal_reminder_message(client_name="  ")

    assert with_details.startswith("Hola Juan!")
    assert "del vehiculo ABC123" in with_details
    assert "vence el 10/01/2026" in with_details
    assert bare.startswith("Hola cliente!")
    assert "vence este mes" in bare
