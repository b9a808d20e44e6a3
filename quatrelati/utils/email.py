"""
Outbound email through AWS SES.

Outside production, when no AWS credentials are configured, messages are
written to the log instead of being sent so the auth flows stay usable in
development.
"""

import html
import logging
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, List, Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from quatrelati.config import settings

logger = logging.getLogger(__name__)


class EmailError(Exception):
    """Raised when SES refuses or fails to send a message"""


# (filename, content_type, payload)
Attachment = Tuple[str, str, bytes]


def _sender() -> str:
    return f"{settings.SES_FROM_NAME} <{settings.SES_FROM_EMAIL}>"


def ses_enabled() -> bool:
    return bool(settings.AWS_ACCESS_KEY_ID) or settings.is_production


def get_ses_client():
    return boto3.client(
        "ses",
        region_name=settings.AWS_REGION,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
    )


def send_email(
    to: str,
    subject: str,
    html_body: str,
    text_body: str,
    reply_to: Optional[str] = None,
) -> Dict[str, Any]:
    """Send a simple HTML + text message"""
    if not ses_enabled():
        logger.info(f"[DEV] Email to {to} not sent (SES not configured): {subject}\n{text_body}")
        return {"message_id": None, "dev": True}

    params = {
        "Source": _sender(),
        "Destination": {"ToAddresses": [to]},
        "Message": {
            "Subject": {"Data": subject, "Charset": "UTF-8"},
            "Body": {
                "Html": {"Data": html_body, "Charset": "UTF-8"},
                "Text": {"Data": text_body, "Charset": "UTF-8"},
            },
        },
    }
    if reply_to:
        params["ReplyToAddresses"] = [reply_to]

    try:
        response = get_ses_client().send_email(**params)
    except (BotoCoreError, ClientError) as e:
        logger.error(f"SES failed to send '{subject}' to {to}: {str(e)}")
        raise EmailError(str(e)) from e

    logger.info(f"Email '{subject}' sent to {to} ({response['MessageId']})")
    return {"message_id": response["MessageId"], "dev": False}


def send_raw_email(
    to: str,
    subject: str,
    html_body: str,
    text_body: str,
    attachments: List[Attachment],
    reply_to: Optional[str] = None,
) -> Dict[str, Any]:
    """Send a multipart message carrying attachments"""
    if not ses_enabled():
        logger.info(
            f"[DEV] Email to {to} not sent (SES not configured): {subject} "
            f"with {len(attachments)} attachment(s)\n{text_body}"
        )
        return {"message_id": None, "dev": True}

    message = MIMEMultipart("mixed")
    message["Subject"] = subject
    message["From"] = _sender()
    message["To"] = to
    if reply_to:
        message["Reply-To"] = reply_to

    body = MIMEMultipart("alternative")
    body.attach(MIMEText(text_body, "plain", "utf-8"))
    body.attach(MIMEText(html_body, "html", "utf-8"))
    message.attach(body)

    for filename, content_type, payload in attachments:
        subtype = content_type.split("/", 1)[-1] if content_type else "octet-stream"
        part = MIMEApplication(payload, _subtype=subtype)
        part.add_header("Content-Disposition", "attachment", filename=filename)
        message.attach(part)

    try:
        response = get_ses_client().send_raw_email(
            Source=_sender(),
            Destinations=[to],
            RawMessage={"Data": message.as_string()},
        )
    except (BotoCoreError, ClientError) as e:
        logger.error(f"SES failed to send '{subject}' to {to}: {str(e)}")
        raise EmailError(str(e)) from e

    logger.info(f"Email '{subject}' sent to {to} ({response['MessageId']})")
    return {"message_id": response["MessageId"], "dev": False}


def _first_name(nome: str) -> str:
    return (nome or "").split(" ")[0]


def send_magic_link_email(to: str, user_name: str, magic_link_url: str) -> Dict[str, Any]:
    subject = "Seu link de acesso - Quatrelati"
    text = (
        f"Olá {_first_name(user_name)}!\n\n"
        f"Use o link abaixo para acessar o sistema. Ele expira em "
        f"{settings.MAGIC_LINK_EXPIRE_MINUTES} minutos e só pode ser usado uma vez.\n\n"
        f"{magic_link_url}\n\n"
        "Se você não solicitou este acesso, ignore este email."
    )
    body = (
        f"<p>Olá {html.escape(_first_name(user_name))}!</p>"
        f"<p>Use o link abaixo para acessar o sistema. Ele expira em "
        f"{settings.MAGIC_LINK_EXPIRE_MINUTES} minutos e só pode ser usado uma vez.</p>"
        f'<p><a href="{html.escape(magic_link_url)}">Acessar o sistema</a></p>'
        "<p>Se você não solicitou este acesso, ignore este email.</p>"
    )
    return send_email(to, subject, body, text)


def send_invite_email(to: str, user_name: str, invite_link_url: str) -> Dict[str, Any]:
    subject = "Convite para o Sistema Quatrelati"
    text = (
        f"Olá {_first_name(user_name)}!\n\n"
        "Você foi convidado para acessar o Sistema Quatrelati. "
        f"O link abaixo é válido por {settings.INVITE_EXPIRE_HOURS} horas:\n\n"
        f"{invite_link_url}"
    )
    body = (
        f"<p>Olá {html.escape(_first_name(user_name))}!</p>"
        "<p>Você foi convidado para acessar o Sistema Quatrelati.</p>"
        f'<p><a href="{html.escape(invite_link_url)}">Aceitar convite</a></p>'
        f"<p>O link é válido por {settings.INVITE_EXPIRE_HOURS} horas.</p>"
    )
    return send_email(to, subject, body, text)


def send_reply_email(
    to: str,
    contact_name: str,
    subject: str,
    corpo: str,
    sender_name: str,
    attachments: Optional[List[Attachment]] = None,
) -> Dict[str, Any]:
    """Answer a landing-page contact, optionally with attachments"""
    text = f"Olá {_first_name(contact_name)},\n\n{corpo}\n\n{sender_name}\nQuatrelati"
    paragraphs = "".join(f"<p>{html.escape(line)}</p>" for line in corpo.split("\n") if line.strip())
    body = (
        f"<p>Olá {html.escape(_first_name(contact_name))},</p>"
        f"{paragraphs}"
        f"<p>{html.escape(sender_name)}<br>Quatrelati</p>"
    )
    if attachments:
        return send_raw_email(to, subject, body, text, attachments, reply_to=settings.SES_FROM_EMAIL)
    return send_email(to, subject, body, text, reply_to=settings.SES_FROM_EMAIL)


def send_contact_email(nome: str, empresa: str, email: str, telefone: str, mensagem: str) -> Dict[str, Any]:
    """Notify the sales team about a landing-page request"""
    subject = f"Nova Solicitação de Orçamento - {empresa}"
    text = (
        f"Nome: {nome}\nEmpresa: {empresa}\nEmail: {email or '-'}\n"
        f"Telefone: {telefone}\n\nMensagem:\n{mensagem}"
    )
    body = (
        "<h2>Nova solicitação pelo site</h2>"
        f"<p><strong>Nome:</strong> {html.escape(nome)}</p>"
        f"<p><strong>Empresa:</strong> {html.escape(empresa)}</p>"
        f"<p><strong>Email:</strong> {html.escape(email or '-')}</p>"
        f"<p><strong>Telefone:</strong> {html.escape(telefone)}</p>"
        f"<p>{html.escape(mensagem)}</p>"
    )
    return send_email(settings.CONTACT_EMAIL_TO, subject, body, text, reply_to=email or None)
