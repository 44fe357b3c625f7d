from __future__ import annotations


class SimplesWorkerError(Exception):
    pass


class InvalidCnpjError(SimplesWorkerError, ValueError):
    def __init__(self, raw: str) -> None:
        super().__init__(f"invalid CNPJ: {raw!r}")
        self.raw = raw


class ProviderSoftError(SimplesWorkerError):
    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ProviderCooldownError(ProviderSoftError):
    pass


class StopRequestedError(SimplesWorkerError):
    def __init__(self) -> None:
        super().__init__("processing interrupted by user")


class FatalInputError(SimplesWorkerError):
    pass
