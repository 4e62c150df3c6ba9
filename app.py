import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler, errors

# Import core modules
import config
import db_manager
from core_logic import logger
from obfuscation import Obfuscator, Seed, build_seed
from primes import PrimeSupplier, PrimeTableSupplier, generate_seed
from router import api_router, limiter, monitoring_router

# --- SEED LOADING ---

async def load_or_create_seed(supplier: PrimeSupplier) -> Seed:
    """
    Returns the stored seed for SEED_NAME, creating and storing one if needed.
    A stored seed always wins over environment values.
    """
    seed = await asyncio.to_thread(db_manager.load_seed, config.SEED_NAME)
    if seed is not None:
        if config.OBFUSCATION_PRIME is not None and config.OBFUSCATION_PRIME != seed.prime:
            logger.warning(f"OBFUSCATION_PRIME ignored: seed '{config.SEED_NAME}' is already stored")
        if seed.bits != config.OBFUSCATION_BITS:
            logger.warning(
                f"OBFUSCATION_BITS={config.OBFUSCATION_BITS} ignored: seed '{config.SEED_NAME}' "
                f"is stored with {seed.bits} bits"
            )
        logger.info(f"Loaded seed '{config.SEED_NAME}'")
        return seed

    if config.OBFUSCATION_PRIME is not None:
        seed = build_seed(config.OBFUSCATION_PRIME, bits=config.OBFUSCATION_BITS, mask=config.OBFUSCATION_MASK)
        logger.info("Seed built from OBFUSCATION_PRIME")
    else:
        seed = await generate_seed(supplier, bits=config.OBFUSCATION_BITS)
        logger.info("Seed generated from prime table")

    await asyncio.to_thread(db_manager.save_seed, config.SEED_NAME, seed)
    return seed

# --- LIFESPAN AND APP SETUP ---

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    try:
        config.config.validate()
        db_manager.init_db()

        if getattr(app.state, "prime_supplier", None) is None:
            app.state.prime_supplier = PrimeTableSupplier(bits=config.OBFUSCATION_BITS)

        seed = await load_or_create_seed(app.state.prime_supplier)
        app.state.obfuscator = Obfuscator(seed)
        app.state.rotation_lock = asyncio.Lock()

        logger.info("Application started successfully")
        yield

    finally:
        app.state.obfuscator = None
        logger.info("Application shutdown complete")

# Main app instance
app = FastAPI(
    title="ID Obfuscator",
    lifespan=lifespan
)

app.state.limiter = limiter
app.add_exception_handler(errors.RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(api_router)
app.include_router(monitoring_router)
