import logging

from fastapi import APIRouter, Depends, HTTPException, status

from quatrelati.rate_limit import contact_limiter
from quatrelati.schemas.contatos import ContactRequest
from quatrelati.utils.email import EmailError, send_contact_email

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/", dependencies=[Depends(contact_limiter)])
async def send_contact(contact_data: ContactRequest):
    """
    Public quote request form; notifies the sales team by email
    """
    try:
        send_contact_email(
            contact_data.nome,
            contact_data.empresa,
            contact_data.email,
            contact_data.telefone,
            contact_data.mensagem
        )
    except EmailError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Erro ao enviar solicitação. Tente novamente."
        )

    logger.info(f"[CONTACT] Request from {contact_data.nome} ({contact_data.empresa})")
    return {"success": True, "message": "Solicitação enviada! Em breve entraremos em contato."}
