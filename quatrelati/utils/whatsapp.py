import logging
from typing import Optional

from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from quatrelati.config import settings

logger = logging.getLogger(__name__)


class WhatsAppError(Exception):
    """Raised when Twilio refuses the message"""


def get_twilio_client() -> Optional[Client]:
    """Twilio client, or None when the account is not configured"""
    if not (settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN and settings.TWILIO_WHATSAPP_FROM):
        return None
    return Client(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)


def format_whatsapp_number(telefone: str) -> str:
    """E.164 number as Twilio expects it, e.g. +5511999999999"""
    phone = "".join(ch for ch in telefone if ch not in " ()-")
    if not phone.startswith("+"):
        phone = "+" + phone
    return phone


def send_whatsapp_code(client: Client, telefone: str, nome: str, code: str) -> str:
    """Send the recovery code, returning the Twilio message SID"""
    first_name = (nome or "").split(" ")[0]
    body = (
        "*Quatrelati* - Recuperação de Senha\n\n"
        f"Olá {first_name}!\n\n"
        f"Seu código de verificação é: *{code}*\n\n"
        f"Este código expira em {settings.WHATSAPP_CODE_EXPIRE_MINUTES} minutos.\n\n"
        "Se você não solicitou esta recuperação, ignore esta mensagem."
    )
    try:
        message = client.messages.create(
            body=body,
            from_=settings.TWILIO_WHATSAPP_FROM,
            to=f"whatsapp:{format_whatsapp_number(telefone)}"
        )
    except TwilioException as e:
        logger.error(f"Twilio failed to deliver WhatsApp code: {str(e)}")
        raise WhatsAppError(str(e)) from e

    logger.info(f"WhatsApp recovery code sent ({message.sid})")
    return message.sid
