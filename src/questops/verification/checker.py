"""One-shot verification of a deployed Quest Tracker (frontend + API)."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor

import httpx
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
SHORT_TIMEOUT = 5.0
RATE_LIMIT_PROBES = 5
HEALTH_LATENCY_LIMIT_MS = 500
API_LATENCY_LIMIT_MS = 2000

API_ENDPOINTS = [
    ("/api/quests", "Quest list"),
    ("/api/quests/1", "Quest details"),
    ("/api/players/alex", "Player profile"),
    ("/api/categories", "Categories list"),
]


class VerificationReport(BaseModel):
    """Result of every verification check, by name."""

    results: dict[str, bool] = Field(default_factory=dict)

    @property
    def passed(self) -> int:
        return sum(1 for ok in self.results.values() if ok)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def ok(self) -> bool:
        return self.total > 0 and self.passed == self.total


class HealthChecker:
    """
    Runs the verification checks in order. Each check returns True/False and
    logs what it saw; none of them raise.
    """

    def __init__(
        self,
        frontend_url: str,
        backend_url: str,
        api_key: str,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.frontend_url = frontend_url.rstrip("/")
        self.backend_url = backend_url.rstrip("/")
        self.api_key = api_key
        self._transport = transport

    def _client(self, timeout: float = DEFAULT_TIMEOUT) -> httpx.Client:
        return httpx.Client(timeout=timeout, transport=self._transport, follow_redirects=True)

    def check_frontend(self) -> bool:
        try:
            with self._client() as client:
                start = time.monotonic()
                r = client.get(self.frontend_url)
                elapsed_ms = int((time.monotonic() - start) * 1000)
            if not r.is_success:
                raise ValueError(f"HTTP {r.status_code}: {r.reason_phrase}")
            logger.info("Frontend is accessible", extra={"url": self.frontend_url, "response_ms": elapsed_ms})
            return True
        except Exception as e:
            logger.warning("Frontend check failed: %s", e, extra={"url": self.frontend_url})
            return False

    def check_backend_health(self) -> bool:
        url = f"{self.backend_url}/health"
        try:
            with self._client() as client:
                r = client.get(url)
            data = r.json()
            if r.is_success and data.get("status") == "healthy":
                logger.info(
                    "Backend is healthy",
                    extra={"uptime": data.get("uptime"), "environment": data.get("environment")},
                )
                return True
            raise ValueError(f"Health check failed: {data.get('status') or 'unknown'}")
        except Exception as e:
            logger.warning("Backend health check failed: %s", e, extra={"url": url})
            return False

    def check_api_endpoints(self) -> bool:
        passed = 0
        with self._client() as client:
            for path, description in API_ENDPOINTS:
                try:
                    r = client.get(f"{self.backend_url}{path}", params={"api_key": self.api_key})
                except httpx.HTTPError as e:
                    logger.warning("%s: %s", description, e)
                    continue
                if r.is_success:
                    passed += 1
                else:
                    logger.warning("%s: %s", description, r.status_code)
        if passed == len(API_ENDPOINTS):
            logger.info("All %s API endpoints working", len(API_ENDPOINTS))
            return True
        logger.warning("%s/%s endpoints failed", len(API_ENDPOINTS) - passed, len(API_ENDPOINTS))
        return False

    def check_authentication(self) -> bool:
        url = f"{self.backend_url}/api/quests/1"
        try:
            with self._client(timeout=SHORT_TIMEOUT) as client:
                if client.get(url).status_code != 401:
                    logger.warning("Authentication not enforced")
                    return False
                if client.get(url, params={"api_key": "invalid"}).status_code != 401:
                    logger.warning("Invalid API key not rejected")
                    return False
                if not client.get(url, params={"api_key": self.api_key}).is_success:
                    logger.warning("Valid API key rejected")
                    return False
        except httpx.HTTPError as e:
            logger.warning("Authentication check failed: %s", e)
            return False
        logger.info("Authentication working correctly")
        return True

    def check_rate_limit(self) -> bool:
        """Fire a small burst; rejected requests only mean limiting is active."""
        url = f"{self.backend_url}/api/quests"
        try:
            with self._client(timeout=SHORT_TIMEOUT) as client:
                with ThreadPoolExecutor(max_workers=RATE_LIMIT_PROBES) as pool:
                    responses = list(
                        pool.map(lambda _: client.get(url, params={"api_key": self.api_key}), range(RATE_LIMIT_PROBES))
                    )
        except httpx.HTTPError as e:
            logger.warning("Rate limit check failed: %s", e)
            return False
        if all(r.is_success for r in responses):
            logger.info("Rate limiting configured (%s requests passed)", RATE_LIMIT_PROBES)
        else:
            logger.warning("Some requests failed (rate limiting may be active)")
        return True

    def check_performance(self) -> bool:
        samples = [
            ("/health", {}, HEALTH_LATENCY_LIMIT_MS),
            ("/api/quests", {"api_key": self.api_key}, API_LATENCY_LIMIT_MS),
        ]
        passed = 0
        try:
            with self._client() as client:
                for path, params, limit_ms in samples:
                    start = time.monotonic()
                    client.get(f"{self.backend_url}{path}", params=params)
                    elapsed_ms = int((time.monotonic() - start) * 1000)
                    if elapsed_ms < limit_ms:
                        passed += 1
                    else:
                        logger.warning("%s: %sms (>= %sms)", path, elapsed_ms, limit_ms)
        except httpx.HTTPError as e:
            logger.warning("Performance check failed: %s", e)
            return False
        return passed == len(samples)

    def check_error_handling(self) -> bool:
        try:
            with self._client(timeout=SHORT_TIMEOUT) as client:
                not_found = client.get(f"{self.backend_url}/api/nonexistent")
                if not_found.status_code != 404:
                    logger.warning("404 handling incorrect: %s", not_found.status_code)
                    return False
                malformed = client.post(
                    f"{self.backend_url}/api/quests",
                    content=b"invalid-json",
                    headers={"Content-Type": "application/json"},
                )
                if malformed.status_code < 400:
                    logger.warning("Malformed requests not rejected")
                    return False
        except httpx.HTTPError as e:
            logger.warning("Error handling check failed: %s", e)
            return False
        logger.info("Error handling working correctly")
        return True

    def run_all_checks(self) -> VerificationReport:
        checks = {
            "frontend": self.check_frontend,
            "backend_health": self.check_backend_health,
            "api_endpoints": self.check_api_endpoints,
            "authentication": self.check_authentication,
            "rate_limit": self.check_rate_limit,
            "performance": self.check_performance,
            "error_handling": self.check_error_handling,
        }
        report = VerificationReport()
        for name, check in checks.items():
            report.results[name] = check()
        logger.info("Verification: %s/%s checks passed", report.passed, report.total)
        return report
