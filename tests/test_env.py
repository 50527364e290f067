import pytest

from thermodash.misc import env
from thermodash.misc.env import Settings, load_settings

ENV_VARS = (
    "MQTT_BROKER",
    "MQTT_PORT",
    "MQTT_TOPIC",
    "MQTT_CLIENT_ID",
    "MQTT_TRANSPORT",
    "MQTT_USE_TLS",
    "MQTT_AUTO_RECONNECT",
    "APP_PORT",
    "APP_ROOT_PATH",
    "GEMINI_API_KEY",
    "GEMINI_MODEL",
    "GEMINI_TIMEOUT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Never pick up a developer's .env
    monkeypatch.setattr(env, "load_dotenv", lambda: None)


def test_defaults(monkeypatch):
    monkeypatch.setenv("MQTT_BROKER", "broker.test")

    settings = load_settings()

    assert settings.mqtt_broker == "broker.test"
    assert settings.mqtt_port == 8884
    assert settings.mqtt_topic == "tele/+/SENSOR"
    assert settings.mqtt_transport == "websockets"
    assert settings.mqtt_use_tls is True
    assert settings.mqtt_auto_reconnect is False
    assert settings.app_port == 8000
    assert settings.app_root_path == ""
    assert settings.gemini_api_key == ""
    assert settings.gemini_timeout == 30.0
    assert settings.mqtt_client_id.startswith("thermodash-")


def test_overrides(monkeypatch):
    monkeypatch.setenv("MQTT_BROKER", "broker.test")
    monkeypatch.setenv("MQTT_PORT", "8883")
    monkeypatch.setenv("MQTT_TOPIC", "stat/+/TEMP")
    monkeypatch.setenv("MQTT_CLIENT_ID", "kiosk-1")
    monkeypatch.setenv("MQTT_TRANSPORT", "TCP")
    monkeypatch.setenv("MQTT_USE_TLS", "no")
    monkeypatch.setenv("MQTT_AUTO_RECONNECT", "on")
    monkeypatch.setenv("APP_ROOT_PATH", "/temps")
    monkeypatch.setenv("GEMINI_TIMEOUT", "2.5")

    settings = load_settings()

    assert settings.mqtt_port == 8883
    assert settings.mqtt_topic == "stat/+/TEMP"
    assert settings.mqtt_client_id == "kiosk-1"
    assert settings.mqtt_transport == "tcp"
    assert settings.mqtt_use_tls is False
    assert settings.mqtt_auto_reconnect is True
    assert settings.app_root_path == "/temps"
    assert settings.gemini_timeout == 2.5


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("MQTT_PORT", "abc"),
        ("MQTT_PORT", "70000"),
        ("MQTT_TOPIC", "tele/#"),
        ("MQTT_TOPIC", "tele/sensorA/SENSOR"),
        ("MQTT_TRANSPORT", "udp"),
        ("MQTT_USE_TLS", "maybe"),
        ("APP_ROOT_PATH", "temps"),
        ("APP_ROOT_PATH", "/temps/"),
        ("GEMINI_TIMEOUT", "0"),
    ],
)
def test_invalid_values_exit(monkeypatch, capsys, name, value):
    monkeypatch.setenv("MQTT_BROKER", "broker.test")
    monkeypatch.setenv(name, value)

    with pytest.raises(SystemExit) as exc:
        load_settings()

    assert exc.value.code == 1
    assert name in capsys.readouterr().err


def test_all_errors_reported_together(monkeypatch, capsys):
    monkeypatch.setenv("APP_PORT", "0")

    with pytest.raises(SystemExit):
        load_settings()

    err = capsys.readouterr().err
    assert "MQTT_BROKER" in err
    assert "APP_PORT" in err


def test_session_config_has_no_credentials():
    config = Settings(mqtt_broker="broker.test", mqtt_client_id="c").session_config()

    assert (config.host, config.port, config.client_id) == ("broker.test", 8884, "c")
    assert config.username == ""
    assert config.password == ""
    assert config.timeout == 5

    with_creds = config.with_credentials("alice", "pw")
    assert (with_creds.username, with_creds.password) == ("alice", "pw")
    assert config.username == ""
