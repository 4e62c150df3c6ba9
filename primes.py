"""
Candidate-prime suppliers and the seed generation retry loop.

A supplier is any object with an async `get_candidate()` returning an integer
believed to be prime. Failures surface as `NoCandidateError` and never fall
back to a fixed multiplier.
"""
import io
import logging
import secrets
import zipfile
from typing import Callable, Iterable, List, Optional, Protocol

import httpx

import config
from mymath import NotInvertibleError
from obfuscation import DEFAULT_BITS, PrecisionOverflowError, Seed, build_seed

logger = logging.getLogger(__name__)


class NoCandidateError(Exception):
    """Raised when a supplier cannot produce a candidate prime."""


class SeedGenerationError(RuntimeError):
    """Raised when no usable seed could be built within the retry budget."""


class PrimeSupplier(Protocol):
    async def get_candidate(self) -> int:
        ...


class StaticPrimeSupplier:
    """Hands out candidates from a fixed sequence, in order."""

    def __init__(self, candidates: Iterable[int]):
        self._candidates = iter(candidates)

    async def get_candidate(self) -> int:
        try:
            return next(self._candidates)
        except StopIteration:
            raise NoCandidateError("Candidate list is exhausted") from None


class PrimeTableSupplier:
    """Samples a prime from one of the public zipped prime tables."""

    def __init__(
        self,
        url_template: Optional[str] = None,
        table_count: Optional[int] = None,
        bits: int = DEFAULT_BITS,
        timeout: Optional[float] = None,
        header_size: Optional[int] = None,
    ):
        self.url_template = url_template or config.PRIME_TABLE_URL
        self.table_count = table_count or config.PRIME_TABLE_COUNT
        self.max_id = 1 << bits
        self.timeout = timeout if timeout is not None else config.HTTP_TIMEOUT
        self.header_size = header_size if header_size is not None else config.PRIME_TABLE_HEADER_SIZE

    def table_url(self, index: Optional[int] = None) -> str:
        if index is None:
            index = secrets.randbelow(self.table_count) + 1
        return self.url_template.format(index=index)

    async def fetch_table(self, url: str) -> bytes:
        logger.info(f"Downloading prime table: {url}")
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, follow_redirects=True)
                response.raise_for_status()
                return response.content
        except httpx.TimeoutException as e:
            raise NoCandidateError(f"Timed out downloading {url}") from e
        except httpx.HTTPStatusError as e:
            raise NoCandidateError(f"HTTP {e.response.status_code} from {url}") from e
        except httpx.HTTPError as e:
            raise NoCandidateError(f"Could not download {url}: {e}") from e

    def parse_table(self, payload: bytes) -> List[int]:
        """Extracts usable primes (odd, below the domain modulus) from a zipped table."""
        try:
            with zipfile.ZipFile(io.BytesIO(payload)) as archive:
                names = archive.namelist()
                if not names:
                    raise NoCandidateError("Prime table archive is empty")
                text = archive.read(names[0]).decode("ascii", errors="ignore")
        except zipfile.BadZipFile as e:
            raise NoCandidateError("Prime table is not a valid zip archive") from e

        primes = [
            int(token) for token in text[self.header_size:].split()
            if token.isdigit() and 2 < int(token) < self.max_id
        ]
        if not primes:
            raise NoCandidateError("Prime table contains no usable primes")
        return primes

    async def get_candidate(self) -> int:
        url = self.table_url()
        primes = self.parse_table(await self.fetch_table(url))
        candidate = secrets.choice(primes)
        logger.info(f"Selected candidate prime from {len(primes)} entries in {url}")
        return candidate


async def generate_seed(
    supplier: PrimeSupplier,
    bits: int = DEFAULT_BITS,
    retries: Optional[int] = None,
    random_source: Callable[[int], int] = secrets.randbelow,
) -> Seed:
    """
    Builds a seed from the supplier, discarding unusable candidates.
    `retries` defaults to MAX_SEED_RETRIES.
    """
    if retries is None:
        retries = config.MAX_SEED_RETRIES
    last_error: Optional[Exception] = None
    for attempt in range(retries):
        try:
            candidate = await supplier.get_candidate()
            return build_seed(candidate, bits=bits, random_source=random_source)
        except (NoCandidateError, PrecisionOverflowError, NotInvertibleError) as e:
            last_error = e
            logger.warning(f"Seed generation attempt {attempt + 1} failed: {e}")

    raise SeedGenerationError(
        f"Failed to generate a seed after {retries} attempts."
    ) from last_error
