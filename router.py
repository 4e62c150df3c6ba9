import asyncio
import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

import config
import db_manager
from core_logic import (
    ForbiddenException, OutOfDomainException, SeedGenerationException, get_obfuscator,
)
from models import DecodeResponse, EncodeResponse, ErrorResponse, RotateSeedPayload, SeedInfo
from obfuscation import Obfuscator, OutOfDomainError
from primes import SeedGenerationError, generate_seed

# --- Router Setup ---

limiter = Limiter(key_func=get_remote_address)

# API Router for versioning and organization.
api_router = APIRouter(
    prefix="/api/v1",
    tags=["IDs"],  # Group endpoints in the docs
)

monitoring_router = APIRouter(
    tags=["Monitoring"],
)

# --- Constants and Logger ---

logger = logging.getLogger(__name__)


def _seed_info(obfuscator: Obfuscator) -> SeedInfo:
    seed = obfuscator.seed
    return SeedInfo(name=config.SEED_NAME, bits=seed.bits, max_id=seed.max_id, prime=seed.prime)

# --- API Routes ---

@api_router.get(
    "/encode/{value}",
    response_model=EncodeResponse,
    summary="Obfuscate an ID",
    responses={422: {"model": ErrorResponse, "description": "The value is outside the obfuscation domain."}},
)
@limiter.limit(config.RATE_LIMIT_CODEC)
async def encode_id(value: int, request: Request, obfuscator: Obfuscator = Depends(get_obfuscator)):
    """Maps a sequential ID to its obfuscated form."""
    try:
        return EncodeResponse(value=value, encoded=obfuscator.encode(value))
    except OutOfDomainError as e:
        raise OutOfDomainException(str(e))


@api_router.get(
    "/decode/{value}",
    response_model=DecodeResponse,
    summary="Recover an ID",
    responses={422: {"model": ErrorResponse, "description": "The value is outside the obfuscation domain."}},
)
@limiter.limit(config.RATE_LIMIT_CODEC)
async def decode_id(value: int, request: Request, obfuscator: Obfuscator = Depends(get_obfuscator)):
    """Maps an obfuscated ID back to the original."""
    try:
        return DecodeResponse(value=value, decoded=obfuscator.decode(value))
    except OutOfDomainError as e:
        raise OutOfDomainException(str(e))


@api_router.get("/seed", response_model=SeedInfo, summary="Describe the active seed")
async def get_seed(obfuscator: Obfuscator = Depends(get_obfuscator)):
    return _seed_info(obfuscator)


@api_router.post(
    "/seed/rotate",
    response_model=SeedInfo,
    summary="Replace the active seed",
    responses={
        403: {"model": ErrorResponse, "description": "Forbidden: the admin token is invalid."},
        502: {"model": ErrorResponse, "description": "Bad Gateway: no usable candidate prime could be obtained."},
        503: {"model": ErrorResponse, "description": "Service Unavailable: seed rotation is disabled."},
    }
)
@limiter.limit(config.RATE_LIMIT_ADMIN)
async def rotate_seed(
    payload: RotateSeedPayload,
    request: Request,
    obfuscator: Obfuscator = Depends(get_obfuscator),
):
    """
    Generates a new seed, stores it and makes it active.
    IDs encoded under the previous seed no longer decode correctly.
    """
    if not config.ADMIN_TOKEN:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Seed rotation is disabled.")
    if not secrets.compare_digest(payload.admin_token.encode(), config.ADMIN_TOKEN.encode()):
        raise ForbiddenException()

    # Stored and live seeds must change together across concurrent rotations.
    async with request.app.state.rotation_lock:
        try:
            seed = await generate_seed(request.app.state.prime_supplier, bits=obfuscator.seed.bits)
        except SeedGenerationError as e:
            logger.error(f"Seed rotation failed: {e}", exc_info=True)
            raise SeedGenerationException()

        # Persist first, then publish.
        await asyncio.to_thread(db_manager.save_seed, config.SEED_NAME, seed)
        obfuscator.reseed(seed)
        info = _seed_info(obfuscator)
    logger.info(f"Seed '{config.SEED_NAME}' rotated")
    return info

# --- Monitoring Routes ---

def _ping_database() -> None:
    with db_manager.get_db_connection() as conn:
        conn.execute("SELECT 1").fetchone()


@monitoring_router.get("/health", summary="Health Check")
async def health_check(request: Request):
    """Reports whether a seed is loaded and the seed database is reachable."""
    health_status = {"status": "ok", "seed_loaded": True, "database": "ok"}
    status_code = 200

    if getattr(request.app.state, "obfuscator", None) is None:
        health_status["seed_loaded"] = False
        health_status["status"] = "error"
        status_code = 503

    try:
        await asyncio.to_thread(_ping_database)
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        health_status["database"] = "error"
        health_status["status"] = "error"
        status_code = 503

    return JSONResponse(content=health_status, status_code=status_code)
