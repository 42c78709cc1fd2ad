"""
Per-dataset platform configuration.
"""
import pytest

from srt_platform.config import (
    PlatformConfig, RiskLimits, AnalyticsConfig, ScenarioMultipliers,
    get_platform_config, save_platform_config,
    list_configured_datasets, load_config,
)


class TestDefaults:
    def test_capital_constants(self):
        cfg = PlatformConfig()
        assert cfg.analytics.risk_ratio == 0.08
        assert cfg.analytics.risk_weighting_factor == 1.2
        assert cfg.analytics.capital_ratio == 0.08

    def test_scenario_triples(self):
        s = PlatformConfig().analytics.scenarios
        assert (s["current"].notional, s["current"].cost, s["current"].yield_) == (1.0, 1.0, 1.0)
        assert (s["postHedge"].notional, s["postHedge"].cost, s["postHedge"].yield_) == (1.0, 1.15, 0.95)
        assert (s["futureUpsize"].notional, s["futureUpsize"].cost, s["futureUpsize"].yield_) == (1.5, 0.9, 1.1)

    def test_structure_rules(self):
        rules = PlatformConfig().structure_rules
        assert (rules.min_tranches, rules.max_tranches) == (3, 10)
        assert rules.thickness_tolerance == pytest.approx(1e-6)


class TestPersistence:
    def test_missing_file_gives_defaults(self, tmp_path):
        cfg = get_platform_config("book", tmp_path / "missing.json")
        assert cfg == PlatformConfig()

    def test_round_trip(self, tmp_path):
        path = tmp_path / "nested" / "cfg.json"
        cfg = PlatformConfig(risk_limits=RiskLimits(max_wa_pd_pct=2.0, disabled_checks=["wa_lgd"]))
        save_platform_config("book", cfg, path)

        loaded = get_platform_config("book", path)
        assert loaded.risk_limits.max_wa_pd_pct == 2.0
        assert loaded.risk_limits.disabled_checks == ["wa_lgd"]
        assert loaded.analytics.scenarios["postHedge"].yield_ == 0.95
        assert get_platform_config("other", path) == PlatformConfig()
        assert list_configured_datasets(path) == ["book"]

    def test_scenarios_stored_under_yield(self, tmp_path):
        path = tmp_path / "cfg.json"
        save_platform_config("book", PlatformConfig(), path)
        raw = load_config(path)
        assert "yield" in raw["book"]["analytics"]["scenarios"]["current"]

    def test_corrupt_file_falls_back(self, tmp_path):
        path = tmp_path / "cfg.json"
        path.write_text("{not json")
        assert load_config(path) == {}
        assert get_platform_config("book", path) == PlatformConfig()

    def test_exposure_limits_persist(self, tmp_path):
        path = tmp_path / "cfg.json"
        cfg = PlatformConfig()
        cfg.set_exposure_limit("sector", "Energy", 250_000)
        save_platform_config("book", cfg, path)
        assert get_platform_config("book", path).exposure_limits == {"sector": {"Energy": 250_000.0}}


class TestScenarioOverrides:
    def test_partial_override_keeps_other_presets(self):
        cfg = AnalyticsConfig(scenarios={"current": ScenarioMultipliers(notional=2.0)})
        assert list(cfg.scenarios) == ["current", "postHedge", "futureUpsize"]
        assert cfg.scenarios["current"].notional == 2.0
        assert cfg.scenarios["postHedge"].cost == 1.15

    def test_partial_override_from_saved_json(self, tmp_path):
        path = tmp_path / "cfg.json"
        path.write_text('{"book": {"analytics": {"scenarios": {"futureUpsize": {"notional": 2.0}}}}}')
        scenarios = get_platform_config("book", path).analytics.scenarios
        assert scenarios["futureUpsize"].notional == 2.0
        assert scenarios["current"].notional == 1.0

    def test_extra_scenarios_kept(self):
        cfg = AnalyticsConfig(scenarios={"stress": ScenarioMultipliers(yield_=0.8)})
        assert list(cfg.scenarios) == ["current", "postHedge", "futureUpsize", "stress"]


class TestExposureLimitEdits:
    def test_set_and_remove(self):
        cfg = PlatformConfig()
        cfg.set_exposure_limit("country", "DE", 1_000)
        cfg.set_exposure_limit("country", "NL", 2_000)
        cfg.remove_exposure_limit("country", "DE")
        assert cfg.exposure_limits == {"country": {"NL": 2_000.0}}
        cfg.remove_exposure_limit("country", "NL")
        assert cfg.exposure_limits == {}

    def test_rejects_bad_input(self):
        cfg = PlatformConfig()
        with pytest.raises(ValueError):
            cfg.set_exposure_limit("vintage", "2020", 1_000)
        with pytest.raises(ValueError):
            cfg.set_exposure_limit("sector", "Energy", 0)

    def test_defaults_not_shared(self):
        PlatformConfig().set_exposure_limit("sector", "Energy", 1)
        assert PlatformConfig().exposure_limits == {}
