import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from quatrelati.dependencies import get_current_user
from quatrelati.models.usuarios import Usuario
from quatrelati.utils.storage import (
    ALLOWED_IMAGE_TYPES, MAX_UPLOAD_BYTES, S3_PREFIX_LOGOS, S3_PREFIX_PRODUTOS,
    StorageError, convert_to_webp, upload_webp
)

logger = logging.getLogger(__name__)

router = APIRouter()


async def store_image(arquivo: UploadFile, prefix: str) -> dict:
    """
    Validate an uploaded image, convert it to WebP and push it to S3
    """
    if arquivo.content_type not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Tipo de arquivo não permitido"
        )

    content = await arquivo.read()
    if not content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Nenhum arquivo enviado"
        )
    if len(content) > MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Arquivo muito grande. Máximo: 1MB"
        )

    try:
        webp = convert_to_webp(content)
    except StorageError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    try:
        return upload_webp(webp, prefix)
    except StorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Erro ao fazer upload da imagem"
        )


@router.post("/image")
async def upload_image(
    image: UploadFile = File(...),
    current_user: Usuario = Depends(get_current_user)
):
    """
    Upload a produto image
    """
    stored = await store_image(image, S3_PREFIX_PRODUTOS)
    logger.info(f"[UPLOAD] Produto image {stored['url']} ({round(stored['size'] / 1024)}KB)")
    return {"message": "Upload realizado com sucesso", **stored}


@router.post("/logo")
async def upload_logo(
    logo: UploadFile = File(...),
    current_user: Usuario = Depends(get_current_user)
):
    """
    Upload a cliente logo
    """
    stored = await store_image(logo, S3_PREFIX_LOGOS)
    logger.info(f"[UPLOAD] Cliente logo {stored['url']} ({round(stored['size'] / 1024)}KB)")
    return {"message": "Logo enviada com sucesso", **stored}
