from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...dependencies import get_db
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])

@router.get("/live")
def live():
    return {"status": "ok"}

@router.get("/ready")
def ready(db: Session = Depends(get_db)):
    """Listo solo si el almacén transaccional responde"""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("Base de datos no disponible: %s", e)
        return JSONResponse(status_code=503, content={"status": "unavailable"})
    return {"status": "ok"}
