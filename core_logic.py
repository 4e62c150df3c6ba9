import os
import logging
from logging.handlers import RotatingFileHandler

from fastapi import HTTPException, Request, status

import config
from obfuscation import Obfuscator

# --- LOGGING SETUP ---

def setup_logging() -> logging.Logger:
    """Configure structured logging with rotation"""
    logger = logging.getLogger("id_obfuscator")
    logger.setLevel(logging.INFO)

    if not logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)

        os.makedirs(config.LOG_DIR, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(config.LOG_DIR, "app.log"),
            maxBytes=10_485_760,
            backupCount=5
        )
        file_handler.setLevel(logging.INFO)

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
        )
        console_handler.setFormatter(formatter)
        file_handler.setFormatter(formatter)

        logger.addHandler(console_handler)
        logger.addHandler(file_handler)

    return logger

logger = setup_logging()

# --- CUSTOM EXCEPTIONS (REQUIRED BY ROUTERS) ---

class ForbiddenException(HTTPException):
    def __init__(self, detail: str = "Invalid admin token"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)

class OutOfDomainException(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=422, detail=detail)

class SeedUnavailableException(HTTPException):
    def __init__(self, detail: str = "No obfuscation seed is loaded"):
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)

class SeedGenerationException(HTTPException):
    def __init__(self, detail: str = "Could not generate a new seed"):
        super().__init__(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)

# --- DEPENDENCIES ---

def get_obfuscator(request: Request) -> Obfuscator:
    obfuscator = getattr(request.app.state, "obfuscator", None)
    if obfuscator is None:
        raise SeedUnavailableException()
    return obfuscator
