from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    environment: str = "dev"
    log_level: str = "INFO"
    request_timeout_seconds: float = 8.0
    max_retries: int = 2
    min_delay_seconds: float = 0.1
    limiter_tick_seconds: float = 0.25
    provider_failure_threshold: int = 4
    provider_cooldown_seconds: float = 45.0
    provider_backoff_base_seconds: float = 2.0
    provider_backoff_max_seconds: float = 4.0
    round_backoff_base_seconds: float = 2.0
    round_backoff_max_seconds: float = 8.0
    heartbeat_seconds: float = 5.0
    round_progress_step: int = 10
    cache_file_name: str = "cache_simples_nacional.json"
    report_suffix: str = "_log_detalhado.csv"
    output_infix: str = "_simples_atualizado_"
    cnpj_header: str = "CRITERIO DE PESQUISA 1"
    result_header: str = "SIMPLES NACIONAL"
    user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64)"
    receitaws_url: str = "https://www.receitaws.com.br/v1/cnpj/{cnpj}"
    minhareceita_url: str = "https://minhareceita.org/{cnpj}"
    brasilapi_url: str = "https://brasilapi.com.br/api/cnpj/v1/{cnpj}"
    cnpjws_url: str = "https://publica.cnpj.ws/cnpj/{cnpj}"
    otel_enabled: bool = True
    otel_service_name: str = "simples-nacional-worker"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="SN_WORKER_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
