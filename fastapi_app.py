from datetime import datetime

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from quatrelati.routers import (
    auth, usuarios, clientes, produtos, pedidos, dashboard,
    logs, configuracoes, contatos, contact, upload
)
from quatrelati.config import settings
from quatrelati.database import SessionLocal, init_db
from quatrelati.exception_handlers import setup_exception_handlers
from quatrelati.logging_config import setup_logging
from quatrelati.utils.seed import seed_passwords

app = FastAPI(
    title="Quatrelati API",
    description="API do sistema de gestão de pedidos Quatrelati",
    version=settings.APP_VERSION
)

# CORS middleware configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)

# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(usuarios.router, prefix="/api/usuarios", tags=["Usuarios"])
app.include_router(clientes.router, prefix="/api/clientes", tags=["Clientes"])
app.include_router(produtos.router, prefix="/api/produtos", tags=["Produtos"])
app.include_router(pedidos.router, prefix="/api/pedidos", tags=["Pedidos"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["Dashboard"])
app.include_router(logs.router, prefix="/api/logs", tags=["Logs"])
app.include_router(configuracoes.router, prefix="/api/configuracoes", tags=["Configuracoes"])
app.include_router(contatos.router, prefix="/api/contatos", tags=["Contatos"])
app.include_router(contact.router, prefix="/api/contact", tags=["Contact"])
app.include_router(upload.router, prefix="/api/upload", tags=["Upload"])


@app.on_event("startup")
def on_startup():
    """Configure logging, create missing tables and fix placeholder passwords"""
    setup_logging()
    init_db()
    db = SessionLocal()
    try:
        seed_passwords(db)
    finally:
        db.close()


@app.get("/api/health", tags=["Root"])
async def health():
    """Health check"""
    return {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "service": "Quatrelati API",
        "version": settings.APP_VERSION
    }


if __name__ == "__main__":
    uvicorn.run(
        "fastapi_app:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
