import os

import pytest

from predmarket.core.config import EngineConfig, ExchangeConfig


def test_defaults():
    cfg = EngineConfig()
    assert cfg.max_iterations == 100
    assert cfg.tolerance == 1e-8
    assert not cfg.strict_convergence
    assert ExchangeConfig().min_ante == 10


def test_engine_config_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("PM_SOLVER_MAX_ITERATIONS", "50")
    monkeypatch.setenv("PM_SOLVER_TOLERANCE", "1e-6")
    monkeypatch.setenv("PM_SOLVER_STRICT", "true")
    cfg = EngineConfig.from_env(str(tmp_path / "missing.env"))
    assert cfg == EngineConfig(max_iterations=50, tolerance=1e-6, strict_convergence=True)


def test_exchange_config_from_dotenv_file(monkeypatch, tmp_path):
    monkeypatch.delenv("PM_MIN_BET", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("PM_MIN_BET=5\nPM_STARTING_BALANCE=250\n")
    try:
        cfg = ExchangeConfig.from_env(str(env_file))
    finally:
        os.environ.pop("PM_MIN_BET", None)
        os.environ.pop("PM_STARTING_BALANCE", None)
    assert cfg.min_bet == 5
    assert cfg.starting_balance == 250


@pytest.mark.parametrize(
    "key,value",
    [("PM_SOLVER_MAX_ITERATIONS", "abc"), ("PM_SOLVER_MAX_ITERATIONS", "0"), ("PM_SOLVER_TOLERANCE", "-1")],
)
def test_invalid_env_values(monkeypatch, tmp_path, key, value):
    monkeypatch.setenv(key, value)
    with pytest.raises(ValueError):
        EngineConfig.from_env(str(tmp_path / "missing.env"))
