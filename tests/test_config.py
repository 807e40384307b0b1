import pytest

from review_import.config import ImportSettings, get_database_url


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in [
        "DATABASE_URL", "TEST_MODE", "MONGO_URI", "MONGO_DB_NAME", "SUBJECTS_COLLECTION",
        "IMPORT_BATCH_SIZE", "PREFETCH_CHUNK_SIZE", "LOOKUP_BATCH_SIZE",
        "FSRS_REQUEST_RETENTION", "LOG_LEVEL",
    ]:
        monkeypatch.delenv(name, raising=False)


def test_database_url_required():
    with pytest.raises(ValueError, match="DATABASE_URL"):
        get_database_url()


def test_test_mode_swaps_database_name(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://user:pw@localhost:5432/srs")
    assert get_database_url() == "postgresql://user:pw@localhost:5432/srs"

    monkeypatch.setenv("TEST_MODE", "true")
    assert get_database_url() == "postgresql://user:pw@localhost:5432/test_srs"


def test_defaults():
    settings = ImportSettings.from_env()
    assert settings.batch_size == 50
    assert settings.prefetch_chunk_size == 100
    assert settings.desired_retention == pytest.approx(0.8)
    assert settings.mongo_uri is None
    assert settings.log_level == "INFO"


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("IMPORT_BATCH_SIZE", "25")
    monkeypatch.setenv("FSRS_REQUEST_RETENTION", "0.9")
    monkeypatch.setenv("MONGO_URI", "mongodb://localhost:27017")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = ImportSettings.from_env()

    assert settings.batch_size == 25
    assert settings.desired_retention == pytest.approx(0.9)
    assert settings.mongo_uri == "mongodb://localhost:27017"
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize("value", ["abc", "0", "-5"])
def test_invalid_numbers_name_the_variable(monkeypatch, value):
    monkeypatch.setenv("IMPORT_BATCH_SIZE", value)
    with pytest.raises(ValueError, match="IMPORT_BATCH_SIZE"):
        ImportSettings.from_env()
