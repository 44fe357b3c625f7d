from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

from simples_worker.core.cnpj import require_cnpj
from simples_worker.core.errors import ProviderSoftError
from simples_worker.schemas.job import LookupOutcome, ResultStatus
from simples_worker.services.provider_client import ProviderSpec

BOOLEAN_STATUS_FIELDS = ("simples", "opcao_pelo_simples", "opcao_simples")
MAX_DETAIL_PROVIDERS = 4


class JsonFetcher(Protocol):
    async def request_json(self, provider: ProviderSpec, cnpj: str) -> dict[str, Any]: ...


def parse_simples_payload(payload: dict[str, Any], provider: str) -> LookupOutcome:
    """Interpret a provider payload as a definitive Simples Nacional answer.

    A payload without any recognized field is a definitive "no".
    """
    simples = payload.get("simples")
    if isinstance(simples, dict) and isinstance(simples.get("optante"), bool):
        return _answer(simples["optante"], provider, "simples.optante")

    for field in BOOLEAN_STATUS_FIELDS:
        value = payload.get(field)
        if isinstance(value, bool):
            return _answer(value, provider, field)

    regime = payload.get("regime_tributario")
    if isinstance(regime, list) and regime:
        formas = [
            str(item.get("forma_de_tributacao") or "").upper()
            for item in regime
            if isinstance(item, dict)
        ]
        if any("SIMPLES" in forma for forma in formas):
            return LookupOutcome(ResultStatus.YES, f"{provider}: regime_tributario=simples", provider)
        return LookupOutcome(ResultStatus.NO, f"{provider}: regime_tributario without simples", provider)

    return LookupOutcome(ResultStatus.NO, f"{provider}: simples field not returned", provider)


def _answer(flag: bool, provider: str, field: str) -> LookupOutcome:
    status = ResultStatus.YES if flag else ResultStatus.NO
    return LookupOutcome(status, f"{provider}: {field}={str(flag).lower()}", provider)


def application_error(payload: dict[str, Any]) -> str | None:
    if payload.get("status") != "ERROR":
        return None
    message = payload.get("message")
    return str(message) if message else "query error"


class SimplesResolver:
    def __init__(self, fetcher: JsonFetcher, providers: Sequence[ProviderSpec]) -> None:
        if not providers:
            raise ValueError("at least one provider is required")
        self.fetcher = fetcher
        self.providers = list(providers)

    @property
    def provider_names(self) -> list[str]:
        return [provider.name for provider in self.providers]

    async def resolve(self, cnpj: str) -> LookupOutcome:
        cnpj = require_cnpj(cnpj)
        failures: list[LookupOutcome] = []
        for provider in self.providers:
            outcome = await self._query(provider, cnpj)
            if outcome.status.is_definitive:
                return outcome
            failures.append(outcome)

        detail = " | ".join(item.detail for item in failures[:MAX_DETAIL_PROVIDERS])
        return LookupOutcome(ResultStatus.ERROR, detail or "failure without detail", "fallback")

    async def _query(self, provider: ProviderSpec, cnpj: str) -> LookupOutcome:
        try:
            payload = await self.fetcher.request_json(provider, cnpj)
        except ProviderSoftError as exc:
            return LookupOutcome(ResultStatus.ERROR, exc.detail, provider.name)

        if provider.reports_status_error:
            message = application_error(payload)
            if message is not None:
                return LookupOutcome(ResultStatus.ERROR, f"{provider.name}: {message}", provider.name)
        return parse_simples_payload(payload, provider.name)
