#!/usr/bin/env python3
"""Local stand-in for the four CNPJ lookup providers.

Point the worker at it with, for example:
SN_WORKER_RECEITAWS_URL=http://127.0.0.1:8765/receitaws/{cnpj}
"""

from __future__ import annotations

import argparse
import json
import re
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

PROVIDERS = ("receitaws", "minhareceita", "brasilapi", "cnpjws")
_PATH_RE = re.compile(r"^/(?P<provider>[a-z]+)/(?P<cnpj>\d{14})$")


def payload_for(provider: str, cnpj: str) -> tuple[HTTPStatus, dict[str, object]]:
    last_digit = int(cnpj[-1])
    if provider == "receitaws":
        if last_digit % 2:
            return HTTPStatus.TOO_MANY_REQUESTS, {"status": "ERROR", "message": "Too many requests"}
        return HTTPStatus.OK, {"cnpj": cnpj, "simples": {"optante": last_digit in {0, 4, 8}}}
    if provider == "minhareceita":
        if last_digit == 7:
            return HTTPStatus.SERVICE_UNAVAILABLE, {"message": "maintenance"}
        return HTTPStatus.OK, {"cnpj": cnpj, "opcao_pelo_simples": last_digit % 3 == 0}
    if provider == "brasilapi":
        return HTTPStatus.OK, {"cnpj": cnpj, "opcao_pelo_simples": last_digit == 7}
    if provider == "cnpjws":
        return HTTPStatus.OK, {
            "estabelecimento": {"cnpj": cnpj},
            "regime_tributario": [{"ano": 2024, "forma_de_tributacao": "SIMPLES NACIONAL"}],
        }
    return HTTPStatus.NOT_FOUND, {"detail": "unknown provider"}


class MockProviderHandler(BaseHTTPRequestHandler):
    server_version = "MockCnpjProviders/1.0"

    def do_GET(self) -> None:  # noqa: N802 - stdlib handler signature
        if self.path == "/healthz":
            self._write_json(HTTPStatus.OK, {"status": "ok"})
            return

        match = _PATH_RE.match(self.path)
        if match is None or match.group("provider") not in PROVIDERS:
            self._write_json(HTTPStatus.NOT_FOUND, {"detail": "not found"})
            return

        status, payload = payload_for(match.group("provider"), match.group("cnpj"))
        self._write_json(status, payload)

    def log_message(self, _: str, *args: object) -> None:
        if args:
            print("mock-providers:", *args)

    def _write_json(self, status: HTTPStatus, payload: dict[str, object]) -> None:
        raw = json.dumps(payload).encode("utf-8")
        self.send_response(status.value)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(raw)))
        self.end_headers()
        self.wfile.write(raw)


def main() -> None:
    parser = argparse.ArgumentParser(description="Mock CNPJ lookup providers for local runs.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8765)
    args = parser.parse_args()

    server = ThreadingHTTPServer((args.host, args.port), MockProviderHandler)
    base = f"http://{args.host}:{args.port}"
    print(f"mock-providers listening on {base}", flush=True)
    for provider in PROVIDERS:
        print(f"  SN_WORKER_{provider.upper()}_URL={base}/{provider}/{{cnpj}}", flush=True)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()


if __name__ == "__main__":
    main()
