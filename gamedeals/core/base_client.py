# ===== IMPORTS & DEPENDENCIES =====
import logging
import asyncio
import aiohttp
import os
import hashlib
import time
import json
import random
from typing import Optional, Any, Dict

from gamedeals.config import COMMON_HEADERS, REQUEST_TIMEOUT

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = [403, 429, 502, 503, 504]

# ===== CORE BUSINESS LOGIC =====
class BaseWebClient:
    """
    A base class for web clients providing robust fetching with retries.

    When constructed with a `cache_dir`, responses fetched with `use_cache=True`
    are kept on disk for `cache_ttl` seconds. Deal listings are always fetched
    live; only slow-changing lookups (app ids, review summaries) opt into the cache.
    """

    def __init__(self, session: aiohttp.ClientSession, cache_dir: Optional[str] = None, cache_ttl: int = 0):
        self._session = session
        self._cache_dir = cache_dir
        self._cache_ttl = cache_ttl
        if self._cache_dir:
            os.makedirs(self._cache_dir, exist_ok=True)
            logger.debug(f"[{self.__class__.__name__}] Initialized with cache dir: {self._cache_dir} and TTL: {self._cache_ttl}s")

    def _get_cache_path(self, key: str, extension: str = "json") -> str:
        """Generates a cache file path from a given key."""
        hashed_key = hashlib.sha256(key.encode('utf-8')).hexdigest()
        return os.path.join(self._cache_dir, f"{hashed_key}.{extension}")

    def _is_cache_valid(self, cache_path: str) -> bool:
        """Checks if a cache file exists and has not expired."""
        if not os.path.exists(cache_path):
            return False

        file_mod_time = os.path.getmtime(cache_path)
        if (time.time() - file_mod_time) > self._cache_ttl:
            logger.debug(f"[{self.__class__.__name__}] Cache file expired: {cache_path}")
            return False

        logger.debug(f"[{self.__class__.__name__}] Cache file is valid: {cache_path}")
        return True

    def _read_cache(self, cache_path: str, is_json: bool) -> Optional[Any]:
        with open(cache_path, 'r', encoding='utf-8') as f:
            content = f.read()
        if not is_json:
            return content
        try:
            return json.loads(content)
        except json.JSONDecodeError:
            logger.warning(f"⚠️ [{self.__class__.__name__}] Invalid JSON in cache file {cache_path}. Deleting and re-fetching.")
            os.remove(cache_path)
            return None

    async def _fetch(
        self,
        url: str,
        method: str = 'GET',
        is_json: bool = True,
        use_cache: bool = False,
        max_retries: int = 3,
        initial_delay: float = 2.0,
        headers: Optional[Dict[str, str]] = None,
        payload: Optional[Dict[str, Any]] = None
    ) -> Optional[Any]:
        """
        Fetches a URL with retries and exponential backoff.
        Handles both JSON and HTML content. Returns None on any failure.
        """
        cache_path = None
        if use_cache and self._cache_dir:
            cache_key = url if method == 'GET' else f"{url}-{json.dumps(payload, sort_keys=True)}"
            cache_path = self._get_cache_path(cache_key, extension="json" if is_json else "html")
            if self._is_cache_valid(cache_path):
                cached = self._read_cache(cache_path, is_json)
                if cached is not None:
                    logger.info(f"✅ [{self.__class__.__name__}] Loaded content from cache: {cache_path}")
                    return cached

        logger.info(f"➡️ [{self.__class__.__name__}] Fetching from network: {url}")
        request_headers = headers or COMMON_HEADERS

        for attempt in range(max_retries):
            try:
                async with self._session.request(method, url, headers=request_headers, json=payload, timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT)) as response:
                    response.raise_for_status()

                    if is_json:
                        # content_type=None handles non-standard API content-types
                        content = await response.json(content_type=None)
                        file_content = json.dumps(content, ensure_ascii=False, indent=4)
                    else:
                        content = await response.text()
                        file_content = content

                    if cache_path:
                        with open(cache_path, 'w', encoding='utf-8') as f:
                            f.write(file_content)
                        logger.debug(f"💾 [{self.__class__.__name__}] Content saved to cache: {cache_path}")
                    return content

            except aiohttp.ClientResponseError as e:
                logger.warning(f"⚠️ [{self.__class__.__name__}] HTTP error on {url} (Attempt {attempt + 1}/{max_retries}): Status {e.status}")
                if attempt >= max_retries - 1 or e.status not in RETRYABLE_STATUSES:
                    logger.error(f"❌ [{self.__class__.__name__}] Unrecoverable error on {url}. Giving up.")
                    return None
            except (asyncio.TimeoutError, aiohttp.ClientConnectorError) as e:
                logger.warning(f"⚠️ [{self.__class__.__name__}] Network error on {url} (Attempt {attempt + 1}/{max_retries}): {type(e).__name__}")
                if attempt >= max_retries - 1:
                    logger.error(f"❌ [{self.__class__.__name__}] Failed to connect to {url} after {max_retries} attempts.")
                    return None
            except (aiohttp.ClientError, ValueError) as e:
                # ValueError covers malformed JSON bodies
                logger.error(f"❌ [{self.__class__.__name__}] Unexpected error fetching {url}: {e}", exc_info=True)
                return None

            delay = initial_delay * (2 ** attempt) + random.uniform(0, 1)
            logger.info(f"Retrying request to {url} in {delay:.2f} seconds...")
            await asyncio.sleep(delay)

        return None

    async def _fetch_bytes(self, url: str, headers: Optional[Dict[str, str]] = None) -> Optional[bytes]:
        """Downloads a binary resource (e.g. an image) in a single attempt. Returns None on failure."""
        logger.info(f"➡️ [{self.__class__.__name__}] Downloading binary content: {url}")
        try:
            async with self._session.get(url, headers=headers or {'User-Agent': COMMON_HEADERS['User-Agent']}, timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT)) as response:
                response.raise_for_status()
                return await response.read()
        except aiohttp.ClientResponseError as e:
            logger.warning(f"⚠️ [{self.__class__.__name__}] HTTP error downloading {url}: Status {e.status}")
        except (asyncio.TimeoutError, aiohttp.ClientError) as e:
            logger.warning(f"⚠️ [{self.__class__.__name__}] Network error downloading {url}: {type(e).__name__}")
        return None
