import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException

from config import get_settings
from db_models import IdentifyRequest, FinalResponse
from db_setup import init_db, close_db
from errors import is_transient_error
from identity import identify as resolve_contact
from logging_config import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_logging()
    init_db()
    yield
    close_db()


settings = get_settings()
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)


@app.get("/")
async def root():
    return {"message": f"{settings.app_name} is up"}


@app.get("/health")
def health_check() -> dict[str, str]:
    return {
        "status": "ok",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.app_env,
    }


# Plain def: FastAPI runs it in its threadpool, so blocking database
# work and retry sleeps never stall the event loop.
@app.post("/identify", response_model=FinalResponse)
def identify(request: IdentifyRequest):

    email = request.email
    phone = request.phoneNumber

    if not email and not phone:
        raise HTTPException(status_code=400, detail="Either email or phoneNumber must be provided")

    try:
        contact = resolve_contact(email, phone)
    except Exception as exc:
        logger.exception("Error in /identify")
        if is_transient_error(exc):
            raise HTTPException(status_code=503, detail="Storage temporarily unavailable") from exc
        raise HTTPException(status_code=500, detail="Internal server error") from exc

    return FinalResponse(contact=contact)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
