from __future__ import annotations

import re
from typing import Any

from simples_worker.core.errors import InvalidCnpjError

CNPJ_LENGTH = 14

_NON_DIGITS_RE = re.compile(r"\D+")


def sanitize_cnpj(value: Any) -> str | None:
    """Strip formatting from a raw CNPJ; ``None`` unless exactly 14 digits remain."""
    if value is None:
        return None
    digits = _NON_DIGITS_RE.sub("", str(value))
    return digits if len(digits) == CNPJ_LENGTH else None


def require_cnpj(value: Any) -> str:
    cnpj = sanitize_cnpj(value)
    if cnpj is None:
        raise InvalidCnpjError("" if value is None else str(value))
    return cnpj
