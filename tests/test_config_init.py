import pytest

from buffered_publisher.config_init import initialize_config, parse_bool

CONFIG_KEYS = (
    "LOGGING_LEVEL", "RABBIT_HOST", "RABBIT_PORT", "EXCHANGE_NAME", "EXCHANGE_TYPE",
    "ROUTING_KEY", "PERSISTENT", "CONNECT_RETRIES", "RETRY_DELAY", "ENCODING",
)

CONFIG = """\
[DEFAULT]
LOGGING_LEVEL = DEBUG

[RABBITMQ]
RABBIT_HOST = rabbitmq
RABBIT_PORT = 5672
EXCHANGE_NAME = messages
EXCHANGE_TYPE = direct
ROUTING_KEY = default
PERSISTENT = {persistent}
CONNECT_RETRIES = 3
RETRY_DELAY = 0.5

[PUBLISHER]
ENCODING = {encoding}
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in CONFIG_KEYS:
        monkeypatch.delenv(key, raising=False)


def write_config(tmp_path, persistent="true", encoding="utf-8"):
    path = tmp_path / "config.ini"
    path.write_text(CONFIG.format(persistent=persistent, encoding=encoding))
    return str(path)


def test_reads_config_file(tmp_path):
    config = initialize_config(write_config(tmp_path))

    assert config == {
        "logging_level": "DEBUG",
        "rabbit_host": "rabbitmq",
        "rabbit_port": 5672,
        "exchange_name": "messages",
        "exchange_type": "direct",
        "routing_key": "default",
        "persistent": True,
        "connect_retries": 3,
        "retry_delay": 0.5,
        "encoding": "utf-8",
    }


def test_env_overrides_file(tmp_path, monkeypatch):
    monkeypatch.setenv("ROUTING_KEY", "from-env")
    monkeypatch.setenv("RABBIT_PORT", "5673")
    monkeypatch.setenv("PERSISTENT", "False")

    config = initialize_config(write_config(tmp_path))

    assert config["routing_key"] == "from-env"
    assert config["rabbit_port"] == 5673
    assert config["persistent"] is False


def test_missing_section_raises_key_error(tmp_path):
    path = tmp_path / "config.ini"
    path.write_text("[DEFAULT]\nLOGGING_LEVEL = INFO\n")

    with pytest.raises(KeyError):
        initialize_config(str(path))


def test_invalid_bool_raises_value_error(tmp_path):
    with pytest.raises(ValueError):
        initialize_config(write_config(tmp_path, persistent="maybe"))


def test_invalid_port_raises_value_error(tmp_path, monkeypatch):
    monkeypatch.setenv("RABBIT_PORT", "amqp")

    with pytest.raises(ValueError):
        initialize_config(write_config(tmp_path))


def test_unknown_encoding_raises_value_error(tmp_path):
    with pytest.raises(ValueError):
        initialize_config(write_config(tmp_path, encoding="no-such-codec"))


@pytest.mark.parametrize("value,expected", [("true", True), (" TRUE ", True), ("false", False)])
def test_parse_bool(value, expected):
    assert parse_bool("FLAG", value) is expected
