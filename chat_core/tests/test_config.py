from chat_core.config.env_utils import api_key_env_name, read_env_file, update_api_keys
from chat_core.config.settings import ChatSettings


def test_update_api_keys_keeps_unrelated_entries(tmp_path):
    env_path = tmp_path / ".env"
    env_path.write_text('# comment\nLOG_DIR=logs\nOPENAI_API_KEY="sk-old"\n', encoding="utf-8")
    update_api_keys({"openai": " sk-new ", "gemini": "g-key"}, env_path)
    pairs = read_env_file(env_path)
    assert pairs == {"LOG_DIR": "logs", "OPENAI_API_KEY": "sk-new", "GEMINI_API_KEY": "g-key"}
    update_api_keys({"openai": None}, env_path)
    assert "OPENAI_API_KEY" not in read_env_file(env_path)


def test_api_key_env_name():
    assert api_key_env_name("mistral") == "MISTRAL_API_KEY"


def test_settings_read_yaml_file(tmp_path, monkeypatch):
    config = tmp_path / "config.yaml"
    config.write_text("gemini_model: gemini-1.5-pro\nmax_context_turns: 4\n", encoding="utf-8")
    monkeypatch.setenv("CHAT_CONFIG_FILE", str(config))
    monkeypatch.delenv("GEMINI_MODEL", raising=False)
    monkeypatch.delenv("MAX_CONTEXT_TURNS", raising=False)
    cfg = ChatSettings(_env_file=None)
    assert cfg.gemini_model == "gemini-1.5-pro"
    assert cfg.max_context_turns == 4


def test_environment_overrides_yaml(tmp_path, monkeypatch):
    config = tmp_path / "config.yaml"
    config.write_text("default_provider: mistral\n", encoding="utf-8")
    monkeypatch.setenv("CHAT_CONFIG_FILE", str(config))
    monkeypatch.setenv("DEFAULT_PROVIDER", "gemini")
    assert ChatSettings(_env_file=None).default_provider == "gemini"


def test_blank_api_key_is_unset():
    cfg = ChatSettings(_env_file=None, openai_api_key="   ", http_timeout=30)
    assert cfg.openai_api_key is None
    assert cfg.http_timeout == 30
