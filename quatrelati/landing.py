"""
Landing page service.

A small FastAPI app, deployed apart from the ERP API, that receives the
quote request form: it emails the sales team and forwards the lead to
the ERP ``/api/contatos`` endpoint.
"""

import logging
from datetime import datetime

import httpx
import uvicorn
from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from quatrelati.config import settings
from quatrelati.exception_handlers import format_validation_errors
from quatrelati.logging_config import setup_logging
from quatrelati.rate_limit import RateLimit
from quatrelati.schemas.contatos import LandingContactForm
from quatrelati.utils.email import EmailError, send_contact_email

logger = logging.getLogger(__name__)

SERVICE_NAME = "quatrelati-landing"

landing_contact_limiter = RateLimit(
    "landing_contact", "5 per 15 minutes", "Muitas solicitações. Tente novamente em 15 minutos."
)

app = FastAPI(title="Quatrelati Landing", version=settings.APP_VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def landing_validation_handler(request: Request, exc: RequestValidationError):
    errors = format_validation_errors(exc.errors())
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": "Dados inválidos", "errors": errors}
    )


@app.exception_handler(StarletteHTTPException)
async def landing_http_handler(request: Request, exc: StarletteHTTPException):
    detail = "Rota não encontrada" if exc.status_code == status.HTTP_404_NOT_FOUND else exc.detail
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": detail},
        headers=getattr(exc, "headers", None)
    )


async def forward_to_erp(form: LandingContactForm) -> None:
    """
    Register the lead in the ERP; failures are only logged
    """
    if not settings.ERP_API_URL or not settings.ERP_API_KEY:
        logger.warning("[ERP] ERP_API_URL or ERP_API_KEY not configured, lead not forwarded")
        return

    payload = form.model_dump()
    payload["email"] = payload["email"] or ""
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.post(
                f"{settings.ERP_API_URL.rstrip('/')}/api/contatos",
                json=payload,
                headers={"X-Api-Key": settings.ERP_API_KEY}
            )
        response.raise_for_status()
        logger.info("[ERP] Lead registered in the ERP")
    except httpx.HTTPError as e:
        logger.error(f"[ERP] Could not forward lead: {str(e)}")


@app.on_event("startup")
def on_startup():
    setup_logging(service=SERVICE_NAME)


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "timestamp": datetime.utcnow().isoformat()
    }


@app.post("/api/contact", dependencies=[Depends(landing_contact_limiter)])
async def contact(form: LandingContactForm):
    """
    Quote request form of the landing page
    """
    logger.info(f"[LANDING] Request from {form.nome} ({form.empresa})")
    try:
        send_contact_email(form.nome, form.empresa, form.email or "", form.telefone, form.mensagem)
    except EmailError:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "error": "Erro ao enviar solicitação. Tente novamente ou entre em contato via WhatsApp."
            }
        )

    await forward_to_erp(form)
    return {
        "success": True,
        "message": "Solicitação enviada com sucesso! Entraremos em contato em breve."
    }


if __name__ == "__main__":
    uvicorn.run("quatrelati.landing:app", host="0.0.0.0", port=3100, reload=settings.DEBUG)
