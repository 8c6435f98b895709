from docvault.config import get_settings


def test_settings_read_explicit_env(monkeypatch) -> None:
    monkeypatch.setenv("MAX_FILE_SIZE", "2048")
    monkeypatch.setenv("ALLOWED_FILE_TYPES", "text/plain, application/pdf")
    monkeypatch.setenv("INGESTION_SIMULATOR_ENABLED", "yes")
    monkeypatch.setenv("INGESTION_SIM_TICK_SECONDS", "0.05")

    settings = get_settings()

    assert settings.max_file_size == 2048
    assert settings.allowed_file_types == ("text/plain", "application/pdf")
    assert settings.ingestion_simulator_enabled is True
    assert settings.ingestion_sim_tick_seconds == 0.05


def test_settings_clamp_to_minimums(monkeypatch) -> None:
    monkeypatch.setenv("BCRYPT_ROUNDS", "1")
    monkeypatch.setenv("INGESTION_SIM_MIN_DURATION_SECONDS", "2")
    monkeypatch.setenv("INGESTION_SIM_MAX_DURATION_SECONDS", "1")

    settings = get_settings()

    assert settings.bcrypt_rounds == 4
    assert settings.ingestion_sim_max_duration_seconds == 2.0


def test_settings_defaults(monkeypatch) -> None:
    monkeypatch.delenv("ALLOWED_FILE_TYPES", raising=False)
    monkeypatch.delenv("CORS_ORIGINS", raising=False)

    settings = get_settings()

    assert "application/pdf" in settings.allowed_file_types
    assert settings.cors_origins == ("http://localhost:3000",)
    assert settings.jwt_algorithm == "HS256"
