from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.cell.cell import MergedCell
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.worksheet import Worksheet

from simples_worker.core.errors import FatalInputError
from simples_worker.schemas.job import JobRow

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_header(value: Any) -> str:
    text = cell_text(value).strip()
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(char for char in decomposed if not unicodedata.combining(char))
    return _WHITESPACE_RE.sub(" ", stripped.upper()).strip()


def cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def build_output_path(input_path: Path | str, infix: str, *, now: datetime | None = None) -> Path:
    source = Path(input_path)
    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return source.with_name(f"{source.stem}{infix}{stamp}{source.suffix}")


@dataclass(slots=True)
class TargetSheet:
    worksheet: Worksheet
    cnpj_col: int
    result_col: int


def find_target_sheet(workbook: Workbook, cnpj_header: str, result_header: str) -> TargetSheet:
    wanted_cnpj = normalize_header(cnpj_header)
    wanted_result = normalize_header(result_header)
    for worksheet in workbook.worksheets:
        headers: dict[str, int] = {}
        for col in range(1, worksheet.max_column + 1):
            normalized = normalize_header(worksheet.cell(row=1, column=col).value)
            if normalized and normalized not in headers:
                headers[normalized] = col
        if wanted_cnpj in headers and wanted_result in headers:
            return TargetSheet(worksheet, headers[wanted_cnpj], headers[wanted_result])
    raise FatalInputError(
        f"no worksheet has the columns {cnpj_header!r} and {result_header!r} in row 1"
    )


class WorkbookSession:
    def __init__(self, workbook: Workbook, target: TargetSheet) -> None:
        self.workbook = workbook
        self.target = target

    @classmethod
    def open(cls, path: Path | str, *, cnpj_header: str, result_header: str) -> "WorkbookSession":
        try:
            workbook = load_workbook(path)
        except (OSError, ValueError, KeyError, BadZipFile, InvalidFileException) as exc:
            raise FatalInputError(f"could not read workbook {path}: {exc}") from exc
        return cls(workbook, find_target_sheet(workbook, cnpj_header, result_header))

    @property
    def sheet_name(self) -> str:
        return self.target.worksheet.title

    def rows(self, max_rows: int | None = None) -> list[JobRow]:
        worksheet = self.target.worksheet
        rows: list[JobRow] = []
        for row_number in range(2, worksheet.max_row + 1):
            raw = cell_text(worksheet.cell(row=row_number, column=self.target.cnpj_col).value).strip()
            if raw:
                rows.append(JobRow(row_number=row_number, raw_cnpj=raw))
        if max_rows is not None:
            return rows[:max_rows]
        return rows

    def set_status(self, row_number: int, value: str) -> None:
        worksheet = self.target.worksheet
        cell = worksheet.cell(row=row_number, column=self.target.result_col)
        if isinstance(cell, MergedCell):
            for merged in worksheet.merged_cells.ranges:
                if cell.coordinate in merged:
                    worksheet.cell(row=merged.min_row, column=merged.min_col).value = value
                    return
        cell.value = value

    def status_of(self, row_number: int) -> Any:
        return self.target.worksheet.cell(row=row_number, column=self.target.result_col).value

    def save(self, path: Path | str) -> Path:
        target = Path(path)
        try:
            self.workbook.save(target)
        except OSError as exc:
            raise FatalInputError(f"could not write workbook {target}: {exc}") from exc
        return target
