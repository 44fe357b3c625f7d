from __future__ import annotations

import logging
from dataclasses import dataclass
from types import TracebackType
from typing import Any

import httpx
from opentelemetry import trace

from simples_worker.core.cancellation import CancellationToken
from simples_worker.core.config import Settings
from simples_worker.core.errors import ProviderCooldownError, ProviderSoftError
from simples_worker.services.breaker import ProviderBreaker
from simples_worker.services.rate_limiter import ProviderRateLimiter

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass(slots=True, frozen=True)
class ProviderSpec:
    name: str
    url_template: str
    rate_factor: float
    # top-level {"status": "ERROR", "message": ...} marks an application error
    reports_status_error: bool = False

    def url_for(self, cnpj: str) -> str:
        return self.url_template.format(cnpj=cnpj)


def default_providers(settings: Settings) -> list[ProviderSpec]:
    return [
        ProviderSpec("receitaws", settings.receitaws_url, 1.0, reports_status_error=True),
        ProviderSpec("minhareceita", settings.minhareceita_url, 0.4),
        ProviderSpec("brasilapi", settings.brasilapi_url, 0.4),
        ProviderSpec("cnpjws", settings.cnpjws_url, 0.7),
    ]


class ProviderClient:
    """HTTP access to lookup providers behind a shared rate limiter and breaker.

    ``request_json`` returns the decoded JSON object or raises
    ``ProviderSoftError``. Rate-limit responses and malformed payloads give up
    on the provider at once; server and network errors back off
    ``min(base * attempt, max)`` seconds and retry up to ``max_retries`` times.
    """

    def __init__(
        self,
        *,
        limiter: ProviderRateLimiter,
        breaker: ProviderBreaker,
        cancel: CancellationToken,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 8.0,
        max_retries: int = 2,
        backoff_base_seconds: float = 2.0,
        backoff_max_seconds: float = 4.0,
        user_agent: str = "simples-nacional-worker/0.1",
    ) -> None:
        self.limiter = limiter
        self.breaker = breaker
        self.cancel = cancel
        self.max_retries = max(1, max_retries)
        self.backoff_base_seconds = backoff_base_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self.headers = {"User-Agent": user_agent}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def __aenter__(self) -> "ProviderClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def request_json(self, provider: ProviderSpec, cnpj: str) -> dict[str, Any]:
        name = provider.name
        url = provider.url_for(cnpj)
        last_error = ""

        for attempt in range(1, self.max_retries + 1):
            self.cancel.raise_if_cancelled()
            remaining = self.breaker.cooldown_remaining(name)
            if remaining > 0:
                raise ProviderCooldownError(
                    f"{name}: provider paused ({int(remaining)}s left after consecutive failures)"
                )

            await self.limiter.wait_turn(name, cancel=self.cancel)

            with tracer.start_as_current_span("provider.request") as span:
                span.set_attribute("provider.name", name)
                span.set_attribute("provider.attempt", attempt)
                try:
                    response = await self.cancel.guard(self._client.get(url, headers=self.headers))
                except httpx.HTTPError as exc:
                    last_error = f"network failure: {str(exc) or type(exc).__name__}"
                    self._fail(name, "consecutive network failures")
                    await self._backoff(attempt)
                    continue
                span.set_attribute("http.status_code", response.status_code)

            if response.status_code == 429:
                self._fail(name, "rate limiting (429)")
                raise ProviderSoftError(f"{name}: rate limited (429)")

            if response.status_code >= 500:
                last_error = f"server error ({response.status_code})"
                self._fail(name, "consecutive server errors")
                await self._backoff(attempt)
                continue

            if response.status_code != 200:
                raise ProviderSoftError(f"{name}: HTTP {response.status_code}")

            try:
                payload = response.json()
            except ValueError:
                self._fail(name, "consecutive invalid responses")
                raise ProviderSoftError(f"{name}: invalid response") from None

            if not isinstance(payload, dict):
                self._fail(name, "consecutive unexpected payloads")
                raise ProviderSoftError(f"{name}: unexpected payload")

            self.breaker.record_success(name)
            return payload

        self.breaker.record_failure(name)
        raise ProviderSoftError(f"{name}: {last_error or 'failure without detail'}")

    def _fail(self, name: str, reason: str) -> None:
        cooldown = self.breaker.record_failure(name)
        if cooldown:
            logger.warning("provider %s paused for %ss after %s", name, f"{cooldown:g}", reason)
            raise ProviderSoftError(f"{name}: paused for {cooldown:g}s after {reason}")

    async def _backoff(self, attempt: int) -> None:
        if attempt >= self.max_retries:
            return
        await self.cancel.sleep(min(self.backoff_base_seconds * attempt, self.backoff_max_seconds))
