# trade_import/config.py
"""
Import settings read from the environment (and a local .env file).

Environment:
    GROQ_API_KEY=<your_key_here>          enables AI header/value translation
    TRADE_IMPORT_LLM_MODEL                default llama-3.1-8b-instant
    TRADE_IMPORT_LLM_TIMEOUT              seconds, default 20
    TRADE_IMPORT_HEADER_THRESHOLD         0-100, default 60
    TRADE_IMPORT_SAMPLE_SIZE              values kept per column, default 5
    TRADE_IMPORT_VALUE_RATIO              detector supermajority, default 0.8
    TRADE_IMPORT_TRANSLATE                "0"/"false"/"off" disables translation
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv
load_dotenv()


GROQ_CHAT_URL = "https://api.groq.com/openai/v1/chat/completions"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() not in {"0", "false", "off", "no"}


@dataclass
class ImportSettings:
    groq_api_key: Optional[str] = None
    llm_model: str = "llama-3.1-8b-instant"
    llm_url: str = GROQ_CHAT_URL
    request_timeout_seconds: float = 20.0
    header_threshold: int = 60
    sample_size: int = 5
    value_match_ratio: float = 0.8
    translate: bool = True
    # distinct values per categorical column offered to the translator
    category_value_limit: int = 50

    @classmethod
    def from_env(cls) -> "ImportSettings":
        return cls(
            groq_api_key=os.getenv("GROQ_API_KEY") or None,
            llm_model=os.getenv("TRADE_IMPORT_LLM_MODEL", "llama-3.1-8b-instant"),
            request_timeout_seconds=_env_float("TRADE_IMPORT_LLM_TIMEOUT", 20.0),
            header_threshold=int(_env_float("TRADE_IMPORT_HEADER_THRESHOLD", 60)),
            sample_size=int(_env_float("TRADE_IMPORT_SAMPLE_SIZE", 5)),
            value_match_ratio=_env_float("TRADE_IMPORT_VALUE_RATIO", 0.8),
            translate=_env_flag("TRADE_IMPORT_TRANSLATE", True),
        )

    @property
    def translation_enabled(self) -> bool:
        return self.translate and bool(self.groq_api_key)
