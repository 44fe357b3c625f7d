from __future__ import annotations

import csv
import io
import os
import tempfile
from dataclasses import astuple, dataclass
from enum import Enum
from pathlib import Path

REPORT_HEADERS = ("linha", "cnpj_original", "cnpj_limpo", "resultado", "origem", "provedor", "detalhe")


class ReportOrigin(str, Enum):
    CACHE = "CACHE"
    API = "API"
    VALIDATION = "VALIDACAO"
    FINAL_REPROCESS = "REPROCESSAMENTO_FINAL"
    INTERRUPTED = "INTERRUPCAO"


@dataclass(slots=True, frozen=True)
class ReportRow:
    row_number: int
    cnpj_original: str
    cnpj_clean: str
    result: str
    origin: str
    provider: str
    detail: str


class ReportBuilder:
    def __init__(self) -> None:
        self._rows: list[ReportRow] = []

    def __len__(self) -> int:
        return len(self._rows)

    def add(
        self,
        row_number: int,
        cnpj_original: str,
        cnpj_clean: str,
        result: str,
        origin: ReportOrigin | str,
        provider: str,
        detail: str,
    ) -> ReportRow:
        row = ReportRow(
            row_number=row_number,
            cnpj_original=cnpj_original,
            cnpj_clean=cnpj_clean,
            result=str(getattr(result, "value", result)),
            origin=str(getattr(origin, "value", origin)),
            provider=provider,
            detail=detail,
        )
        self._rows.append(row)
        return row

    def rows(self) -> list[ReportRow]:
        return sorted(self._rows, key=lambda row: row.row_number)

    def to_csv(self) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(REPORT_HEADERS)
        for row in self.rows():
            writer.writerow([str(value) for value in astuple(row)])
        return buffer.getvalue()

    def write(self, path: Path | str) -> Path:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", dir=target.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
                handle.write(self.to_csv())
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return target


def report_path_for(output_path: Path | str, suffix: str = "_log_detalhado.csv") -> Path:
    output = Path(output_path)
    return output.with_name(f"{output.stem}{suffix}")
