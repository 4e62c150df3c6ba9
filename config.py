import os
from typing import Optional


def _optional_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else None

# ============================================================================
# CONFIGURATION CLASS
# ============================================================================

class Config:
    """Centralized configuration with validation"""

    # Obfuscation domain: identifiers live in [0, 2**OBFUSCATION_BITS)
    OBFUSCATION_BITS: int = int(os.getenv("OBFUSCATION_BITS", "31"))
    MIN_OBFUSCATION_BITS: int = 2
    MAX_OBFUSCATION_BITS: int = 32

    # Known-good seed values (optional). The inverse is always recomputed.
    OBFUSCATION_PRIME: Optional[int] = _optional_int("OBFUSCATION_PRIME")
    OBFUSCATION_MASK: Optional[int] = _optional_int("OBFUSCATION_MASK")

    # Seed storage
    SEED_NAME: str = os.getenv("SEED_NAME", "default")
    DB_FILE: str = os.getenv("DB_FILE", "seeds.db")

    # Seed generation
    MAX_SEED_RETRIES: int = int(os.getenv("MAX_SEED_RETRIES", "10"))
    PRIME_TABLE_URL: str = os.getenv(
        "PRIME_TABLE_URL", "http://primes.utm.edu/lists/small/millions/primes{index}.zip"
    )
    PRIME_TABLE_COUNT: int = 50
    # Each table opens with a title line that is not part of the data
    PRIME_TABLE_HEADER_SIZE: int = 67

    # Timeouts
    HTTP_TIMEOUT: float = float(os.getenv("HTTP_TIMEOUT", "30.0"))

    # Security
    ADMIN_TOKEN: Optional[str] = os.getenv("ADMIN_TOKEN")

    # Rate limiting
    RATE_LIMIT_CODEC: str = os.getenv("RATE_LIMIT_CODEC", "120/minute")
    RATE_LIMIT_ADMIN: str = os.getenv("RATE_LIMIT_ADMIN", "5/minute")

    # Logging
    LOG_DIR: str = os.getenv("LOG_DIR", os.path.join(os.path.dirname(__file__), "logs"))

    @classmethod
    def validate(cls):
        """Validate configuration on startup"""
        if not cls.MIN_OBFUSCATION_BITS <= cls.OBFUSCATION_BITS <= cls.MAX_OBFUSCATION_BITS:
            raise ValueError(
                f"OBFUSCATION_BITS must be between {cls.MIN_OBFUSCATION_BITS} and {cls.MAX_OBFUSCATION_BITS}"
            )
        if cls.OBFUSCATION_MASK is not None and cls.OBFUSCATION_PRIME is None:
            raise ValueError("OBFUSCATION_MASK requires OBFUSCATION_PRIME to be set")
        if not cls.SEED_NAME:
            raise ValueError("SEED_NAME must be set")
        if cls.MAX_SEED_RETRIES < 1:
            raise ValueError("MAX_SEED_RETRIES must be at least 1")
        if "{index}" not in cls.PRIME_TABLE_URL:
            raise ValueError("PRIME_TABLE_URL must contain an {index} placeholder")
        if not cls.PRIME_TABLE_URL.startswith(("http://", "https://")):
            raise ValueError("PRIME_TABLE_URL must include http:// or https://")

# ============================================================================
# SINGLETON INSTANCE & DERIVED CONSTANTS
# ============================================================================

config = Config()

# --- Expose class attributes as module constants for convenience ---
for attr in [a for a in dir(config) if not a.startswith('__') and not callable(getattr(config, a))]:
    globals()[attr] = getattr(config, attr)
