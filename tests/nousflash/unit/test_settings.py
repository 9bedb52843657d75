"""Tests for pydantic settings."""

import pytest
from pydantic import ValidationError

from nousflash.config.settings import (
    CycleSettings,
    LongTermSettings,
    ScoringSettings,
    Settings,
    StorageSettings,
)


class TestDefaults:
    def test_cycle_defaults(self):
        settings = CycleSettings()
        assert settings.post_significance_threshold == 0.6
        assert settings.min_thought_length == 20
        assert settings.max_post_length == 280
        assert settings.recent_posts_limit == 10
        assert settings.external_context_limit == 20
        assert settings.retrieval_limit == 5
        assert settings.interaction_retrieval_limit == 3
        assert settings.stage_timeout_seconds == 30.0

    def test_long_term_defaults(self):
        settings = LongTermSettings()
        assert settings.significance_threshold == 0.5
        assert settings.consolidation_distance == 0.1
        assert settings.embedding_dimension == 1536

    def test_scoring_defaults_sum_to_one(self):
        s = ScoringSettings()
        total = (
            s.base_weight
            + s.novelty_weight
            + s.emotional_weight
            + s.relevance_weight
            + s.persistence_weight
        )
        assert total == pytest.approx(1.0)
        assert len(s.emotional_keywords) == 15

    def test_storage_defaults(self):
        settings = StorageSettings()
        assert settings.pool_max_size == 20
        assert settings.backend == "postgres"


class TestValidation:
    def test_threshold_out_of_range(self):
        with pytest.raises(ValidationError):
            LongTermSettings(significance_threshold=1.5)

    def test_pool_bounds(self):
        with pytest.raises(ValidationError):
            StorageSettings(pool_min_size=5, pool_max_size=2)

    def test_unknown_backend(self):
        with pytest.raises(ValidationError):
            StorageSettings(backend="sqlite")


class TestSources:
    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("NOUSFLASH_CYCLE_POST_SIGNIFICANCE_THRESHOLD", "0.75")
        assert CycleSettings().post_significance_threshold == 0.75

    def test_from_toml(self, tmp_path):
        config = tmp_path / "agent.toml"
        config.write_text(
            "[cycle]\n"
            "agent_handle = \"@testbot\"\n"
            "max_post_length = 200\n"
            "\n"
            "[storage]\n"
            "backend = \"memory\"\n"
        )

        settings = Settings.from_toml(str(config))

        assert settings.cycle.agent_handle == "@testbot"
        assert settings.cycle.max_post_length == 200
        assert settings.storage.backend == "memory"
        assert settings.long_term.significance_threshold == 0.5
