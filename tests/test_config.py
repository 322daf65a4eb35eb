import pytest
from pydantic import ValidationError

from studyhub.core.config import Settings


def _settings(**overrides) -> Settings:
    values = {"DATABASE_URL": "sqlite+aiosqlite:///./test.db"}
    values.update(overrides)
    return Settings(**values)


def _settings_with_cors(value: str) -> Settings:
    return _settings(CORS_ORIGINS=value)


def test_cors_origin_list_supports_comma_separated_values() -> None:
    settings = _settings_with_cors("http://localhost:5173,http://localhost:3000")
    assert settings.cors_origin_list() == [
        "http://localhost:5173",
        "http://localhost:3000",
    ]


def test_cors_origin_list_normalizes_quotes_and_trailing_slashes() -> None:
    settings = _settings_with_cors("'http://localhost:5173/'")
    assert settings.cors_origin_list() == ["http://localhost:5173"]


def test_cors_origin_list_supports_json_array_format() -> None:
    settings = _settings_with_cors(
        '["http://localhost:5173", "http://127.0.0.1:5173/"]'
    )
    assert settings.cors_origin_list() == [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("postgres://u:p@db/studyhub", "postgresql+asyncpg://u:p@db/studyhub"),
        ("postgresql://u:p@db/studyhub", "postgresql+asyncpg://u:p@db/studyhub"),
        ("postgresql+asyncpg://u:p@db/studyhub", "postgresql+asyncpg://u:p@db/studyhub"),
        ("sqlite:///./local.db", "sqlite+aiosqlite:///./local.db"),
        ("  sqlite+aiosqlite:///./local.db ", "sqlite+aiosqlite:///./local.db"),
    ],
)
def test_database_url_is_normalized_to_async_driver(raw: str, expected: str) -> None:
    assert _settings(DATABASE_URL=raw).database_url == expected


def test_study_group_defaults() -> None:
    settings = _settings()
    assert settings.api_prefix == "/api"
    assert settings.invite_code_length == 8
    assert settings.invite_code_attempts == 5
    assert settings.default_page_limit == settings.max_page_limit == 100


def test_api_prefix_gets_leading_slash() -> None:
    assert _settings(API_PREFIX="v1/").api_prefix == "/v1"


def test_log_level_is_validated() -> None:
    assert _settings(LOG_LEVEL="debug").log_level == "DEBUG"
    with pytest.raises(ValidationError):
        _settings(LOG_LEVEL="chatty")


def test_page_limits_must_be_consistent() -> None:
    with pytest.raises(ValidationError):
        _settings(DEFAULT_PAGE_LIMIT=200, MAX_PAGE_LIMIT=50)
