from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator


class ResultStatus(str, Enum):
    YES = "SIM"
    NO = "NÃO"
    ERROR = "ERRO"
    INVALID = "CNPJ_INVALIDO"
    PENDING = "PENDENTE"

    @property
    def is_definitive(self) -> bool:
        return self in (ResultStatus.YES, ResultStatus.NO)


@dataclass(slots=True, frozen=True)
class JobRow:
    row_number: int
    raw_cnpj: str


@dataclass(slots=True, frozen=True)
class LookupOutcome:
    status: ResultStatus
    detail: str
    provider: str


class JobOptions(BaseModel):
    delay_seconds: float = Field(gt=0)
    max_rows: int | None = Field(default=None, ge=0)
    workers: int = Field(ge=1, le=32)
    reprocess_rounds: int = Field(ge=0, le=10)

    @property
    def max_rounds(self) -> int:
        return 1 + self.reprocess_rounds


class JobStartRequest(JobOptions):
    input_file: str = Field(min_length=1)

    @field_validator("input_file")
    @classmethod
    def _strip_input_file(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("input file is empty")
        return stripped


class ProcessResult(BaseModel):
    output_file: str | None = None
    report_file: str | None = None
    processed: int
    total: int
    success: int
    failed: int
    sem_dado: int
    erro: int
    invalid: int
    interrupted: bool


class LogEvent(BaseModel):
    type: Literal["log"] = "log"
    message: str


class ProgressEvent(BaseModel):
    type: Literal["progress"] = "progress"
    done: int
    total: int


class DoneEvent(BaseModel):
    type: Literal["done"] = "done"
    result: ProcessResult


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    message: str


JobEvent = Annotated[LogEvent | ProgressEvent | DoneEvent | ErrorEvent, Field(discriminator="type")]
