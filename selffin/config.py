# selffin/config.py
import os
from typing import Optional
from pydantic import BaseModel

DEFAULT_DB_PATH = os.path.join("gen", "selffin.db")


class Settings(BaseModel):
    db_url: str = f"sqlite:///{DEFAULT_DB_PATH}"
    db_echo: bool = False
    simulation_runs: int = 10000
    simulation_seed: Optional[int] = None
    log_level: str = "INFO"
    log_dir: Optional[str] = None
    llm_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.0
    llm_bucket_capacity: int = 10000
    llm_refill_rate: int = 5000


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def get_settings() -> Settings:
    """
    Read settings from the environment on every call, so a .env loaded by
    the CLI (or a monkeypatched variable in tests) is always honoured.
    """
    seed = os.getenv("SELFFIN_SIMULATION_SEED")
    return Settings(
        db_url=os.getenv("SELFFIN_DB_URL") or Settings.model_fields["db_url"].default,
        db_echo=_env_bool("SELFFIN_DB_ECHO", False),
        simulation_runs=int(os.getenv("SELFFIN_SIMULATION_RUNS", "10000")),
        simulation_seed=int(seed) if seed not in (None, "") else None,
        log_level=os.getenv("SELFFIN_LOG_LEVEL", "INFO"),
        log_dir=os.getenv("SELFFIN_LOG_DIR") or None,
        llm_model=os.getenv("SELFFIN_LLM_MODEL", "gpt-4o-mini"),
        llm_temperature=float(os.getenv("SELFFIN_LLM_TEMPERATURE", "0")),
        llm_bucket_capacity=int(os.getenv("SELFFIN_LLM_BUCKET_CAPACITY", "10000")),
        llm_refill_rate=int(os.getenv("SELFFIN_LLM_REFILL_RATE", "5000")),
    )
