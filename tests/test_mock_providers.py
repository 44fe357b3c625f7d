from __future__ import annotations

import importlib.util
from http import HTTPStatus
from pathlib import Path

from simples_worker.jobs.resolver import application_error, parse_simples_payload
from simples_worker.schemas.job import ResultStatus

SCRIPT_PATH = Path(__file__).resolve().parents[1] / "scripts" / "mock_providers.py"


def load_script():
    spec = importlib.util.spec_from_file_location("mock_providers", SCRIPT_PATH)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_receitaws_rate_limits_odd_identifiers() -> None:
    module = load_script()

    status, payload = module.payload_for("receitaws", "12345678000191")
    assert status == HTTPStatus.TOO_MANY_REQUESTS
    assert application_error(payload) == "Too many requests"

    status, payload = module.payload_for("receitaws", "12345678000194")
    assert status == HTTPStatus.OK
    assert parse_simples_payload(payload, "receitaws").status is ResultStatus.YES


def test_fallback_payloads_parse_to_definitive_answers() -> None:
    module = load_script()

    assert module.payload_for("minhareceita", "12345678000197")[0] == HTTPStatus.SERVICE_UNAVAILABLE
    status, payload = module.payload_for("brasilapi", "12345678000197")
    assert status == HTTPStatus.OK
    assert parse_simples_payload(payload, "brasilapi").status is ResultStatus.YES

    _, payload = module.payload_for("cnpjws", "12345678000193")
    outcome = parse_simples_payload(payload, "cnpjws")
    assert outcome.status is ResultStatus.YES
    assert outcome.detail == "cnpjws: regime_tributario=simples"


def test_unknown_provider_is_not_found() -> None:
    assert load_script().payload_for("nope", "12345678000190")[0] == HTTPStatus.NOT_FOUND
