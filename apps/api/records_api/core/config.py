from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_env: str = "dev"
    app_name: str = "Police Records"
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    postgres_url: str = "postgresql+psycopg://app:app@db:5432/app"
    redis_url: str = "redis://redis:6379/0"

    s3_endpoint: str = "http://minio:9000"
    s3_bucket: str = "records-imports"
    s3_access_key: str = "minio"
    s3_secret_key: str = "minio123"

    jwt_secret: str = "change-me"

    # Middleware configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR
    log_format: str = "json"  # json or text
    enable_request_logging: bool = True

    # Metrics configuration (OpenTelemetry)
    enable_metrics: bool = True
    metrics_namespace: str = ""  # OpenTelemetry meter name (defaults to app_name)
    otel_service_name: str = ""  # OpenTelemetry service name (defaults to app_name)
    otel_exporter_otlp_endpoint: str = ""  # OTLP endpoint (e.g., http://localhost:4318)

    # Bulk import configuration
    import_queue_name: str = "imports"
    import_job_timeout: int = 3600  # seconds
    import_batch_size: int = 50
    import_max_stored_errors: int = 1000
    import_lookup_concurrency: int = 4  # 1 resolves lookups inline on the job session
    import_max_file_size: int = 10 * 1024 * 1024  # bytes
    import_update_mode: str = "partial"  # partial or overwrite
    import_default_nationality: str = "SLE"

    model_config = {
        "env_file": "../.env",
        "env_file_encoding": "utf-8",
    }


settings = Settings()
