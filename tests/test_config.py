from __future__ import annotations

from camille.config import (
    DEFAULT_CONFIG,
    AppConfig,
    LLMConfig,
    TelegramConfig,
    load_config,
    write_config,
)


class TestLoadConfig:
    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_config(tmp_path / "absent.yaml")

        assert config == DEFAULT_CONFIG
        assert config is not DEFAULT_CONFIG
        assert config.effective_max_tool_calls == 5

    def test_valid_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "llm:\n"
            "  provider: anthropic\n"
            "  model: claude-sonnet-4-5\n"
            "max_tool_calls: 8\n"
            "agents:\n"
            "  planner:\n"
            "    system_prompt: Be brief.\n"
        )

        config = load_config(path)

        assert config.llm.provider == "anthropic"
        assert config.effective_max_tool_calls == 8
        assert config.agents.planner.system_prompt == "Be brief."

    def test_env_interpolation(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CAMILLE_TEST_TOKEN", "123:abc")
        path = tmp_path / "config.yaml"
        path.write_text(
            "llm:\n  provider: ollama\n  model: llama3.2\n"
            "telegram:\n  bot_token: ${CAMILLE_TEST_TOKEN}\n"
        )

        assert load_config(path).telegram.bot_token == "123:abc"

    def test_unset_variable_is_left_verbatim(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "llm:\n  provider: openai\n  model: gpt-4o\n  api_key: ${CAMILLE_UNSET_VAR}\n"
        )

        assert load_config(path).llm.api_key == "${CAMILLE_UNSET_VAR}"

    def test_dotenv_beside_config_is_loaded(self, tmp_path, monkeypatch):
        # Registered with monkeypatch so the value load_dotenv sets is undone.
        monkeypatch.setenv("CAMILLE_DOTENV_KEY", "")
        monkeypatch.delenv("CAMILLE_DOTENV_KEY")
        (tmp_path / ".env").write_text("CAMILLE_DOTENV_KEY=sk-from-dotenv\n")
        path = tmp_path / "config.yaml"
        path.write_text(
            "llm:\n  provider: openai\n  model: gpt-4o\n  api_key: ${CAMILLE_DOTENV_KEY}\n"
        )

        assert load_config(path).llm.api_key == "sk-from-dotenv"

    def test_invalid_yaml_uses_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("llm: [unclosed\n")

        assert load_config(path) == DEFAULT_CONFIG

    def test_non_mapping_uses_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")

        assert load_config(path) == DEFAULT_CONFIG

    def test_validation_error_uses_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("llm:\n  provider: mystery\n  model: x\nmax_tool_calls: 50\n")

        assert load_config(path) == DEFAULT_CONFIG

    def test_bad_base_url_is_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("llm:\n  provider: ollama\n  model: x\n  base_url: localhost:11434\n")

        assert load_config(path) == DEFAULT_CONFIG


class TestWriteConfig:
    def test_round_trip_omits_unset_values(self, tmp_path):
        config = AppConfig(
            llm=LLMConfig(provider="openai", model="gpt-4o", api_key="sk-test"),
            telegram=TelegramConfig(bot_token="123:abc"),
        )

        path = write_config(config, tmp_path / "nested" / "config.yaml")

        text = path.read_text()
        assert "base_url" not in text
        assert "max_tool_calls" not in text
        assert load_config(path) == config
