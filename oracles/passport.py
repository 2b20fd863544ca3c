"""
Passport Oracle - Identity scores from the Gitcoin Passport API.

Features:
- Rate limiting between requests
- SQLite caching with a time-to-live to avoid repeated lookups
- Retry with exponential backoff on connection problems
"""

import os
import time
import sqlite3
import json
from typing import Optional, Dict
import logging
import requests
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

log = logging.getLogger(__name__)

# Passport scores are decimals; engines compare integers.
SCORE_SCALE = 10_000


class PassportError(RuntimeError):
    """The Passport API did not return a usable score."""


class ScoreCache:
    """SQLite cache for Passport scores."""

    def __init__(self, db_path: str = "passport_cache.db", ttl_seconds: float = 3600.0):
        self.db_path = db_path
        self.ttl_seconds = ttl_seconds
        self._init_db()

    def _init_db(self):
        conn = sqlite3.connect(self.db_path)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS passport_scores (
                address TEXT PRIMARY KEY,
                score INTEGER NOT NULL,
                result_json TEXT,
                fetched_at REAL NOT NULL
            )
        """)
        conn.commit()
        conn.close()

    def get(self, address: str, now: Optional[float] = None) -> Optional[int]:
        now = time.time() if now is None else now
        conn = sqlite3.connect(self.db_path)
        row = conn.execute(
            "SELECT score, fetched_at FROM passport_scores WHERE address = ?",
            (address.lower(),)
        ).fetchone()
        conn.close()
        if row and now - row[1] < self.ttl_seconds:
            return row[0]
        return None

    def set(self, address: str, score: int, result: Dict, now: Optional[float] = None):
        conn = sqlite3.connect(self.db_path)
        conn.execute(
            """INSERT OR REPLACE INTO passport_scores
               (address, score, result_json, fetched_at)
               VALUES (?, ?, ?, ?)""",
            (address.lower(), score, json.dumps(result), time.time() if now is None else now)
        )
        conn.commit()
        conn.close()


class PassportScoreOracle:
    """
    Score oracle backed by the Gitcoin Passport v2 API.

    Respects a minimum interval between requests and caches scores.
    Raises PassportError when no score can be obtained; voting engines
    turn that into ScoreTooLow.
    """

    BASE_URL = "https://api.passport.xyz"
    USER_AGENT = "quadvote/1.0"
    MIN_REQUEST_INTERVAL = 0.2

    def __init__(
        self,
        api_key: Optional[str] = None,
        scorer_id: Optional[str] = None,
        cache_path: str = "passport_cache.db",
        cache_ttl_seconds: float = 3600.0,
        base_url: Optional[str] = None
    ):
        self.api_key = api_key or os.getenv("PASSPORT_API_KEY", "")
        self.scorer_id = scorer_id or os.getenv("PASSPORT_SCORER_ID", "")
        self.base_url = (base_url or os.getenv("PASSPORT_API_URL") or self.BASE_URL).rstrip("/")
        self.cache = ScoreCache(cache_path, ttl_seconds=cache_ttl_seconds)
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": self.USER_AGENT, "X-API-KEY": self.api_key})
        self._last_request_time = 0.0

    def _rate_limit(self):
        elapsed = time.time() - self._last_request_time
        if elapsed < self.MIN_REQUEST_INTERVAL:
            time.sleep(self.MIN_REQUEST_INTERVAL - elapsed)
        self._last_request_time = time.time()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
        reraise=True,
    )
    def _make_request(self, address: str) -> Dict:
        """Make a rate-limited request with retry."""
        self._rate_limit()
        url = f"{self.base_url}/v2/stamps/{self.scorer_id}/score/{address}"
        response = self.session.get(url, timeout=10)
        response.raise_for_status()
        return response.json()

    @staticmethod
    def parse_score(result: Dict) -> int:
        """Convert the API's decimal score into a scaled integer."""
        raw = result.get("score")
        if raw is None:
            raise PassportError(f"Response has no score: {result}")
        try:
            return int(round(float(raw) * SCORE_SCALE))
        except (TypeError, ValueError) as e:
            raise PassportError(f"Unparseable score {raw!r}") from e

    def get_score(self, address: str) -> int:
        """
        Identity score of an address, scaled by SCORE_SCALE.

        Args:
            address: Wallet address, e.g. "0xAbC..."

        Returns:
            Integer score (e.g. a Passport score of 1.5 returns 15000)
        """
        if not self.scorer_id:
            raise PassportError("PASSPORT_SCORER_ID is not configured")

        cached = self.cache.get(address)
        if cached is not None:
            log.debug(f"Cache hit for: {address}")
            return cached

        try:
            result = self._make_request(address)
        except requests.RequestException as e:
            log.error(f"Passport lookup failed for {address}: {e}")
            raise PassportError(f"Passport lookup failed for {address}: {e}") from e

        score = self.parse_score(result)
        self.cache.set(address, score, result)
        log.info(f"Passport score for {address}: {score}")
        return score


# Singleton instance
_oracle: Optional[PassportScoreOracle] = None

def get_passport_oracle() -> PassportScoreOracle:
    """Get the singleton Passport oracle, configured from the environment."""
    global _oracle
    if _oracle is None:
        _oracle = PassportScoreOracle()
    return _oracle
