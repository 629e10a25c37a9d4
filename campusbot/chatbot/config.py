# chatbot/config.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional
import logging
import os

import yaml
from dotenv import load_dotenv

log = logging.getLogger("chatbot.config")

PROJECT_ROOT = Path(__file__).resolve().parents[1]
CONFIG_PATH = PROJECT_ROOT / "config" / "app.yaml"
KB_DEFAULT = PROJECT_ROOT / "data" / "school.json"

load_dotenv()


def _load_config(path: Path) -> Dict:
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    return {}


@dataclass
class Settings:
    kb_path: Path = KB_DEFAULT

    # OpenAI (embeddings + chat completions)
    openai_api_key: Optional[str] = None
    chat_model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-small"
    temperature: float = 0.5
    max_tokens: int = 400
    openai_timeout_secs: float = 30.0

    # retrieval knobs
    min_similarity: float = 0.78
    max_hits: int = 3
    max_snippets: int = 5
    snippet_chars: int = 600

    # Google Custom Search
    google_cse_key: Optional[str] = None
    google_cse_cx: Optional[str] = None
    web_timeout_secs: float = 10.0
    ratings_site: str = "ratemyprofessors.com"
    default_school_host: str = "deanza.edu"

    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:5173"])


def load_settings(path: Path = CONFIG_PATH) -> Settings:
    """
    app.yaml holds the tunables, the environment holds secrets.
    Anything missing keeps the dataclass default.
    """
    cfg = _load_config(Path(path))
    openai_cfg = cfg.get("openai") or {}
    retrieval_cfg = cfg.get("retrieval") or {}
    web_cfg = cfg.get("web_search") or {}
    api_cfg = cfg.get("api") or {}
    defaults = Settings()

    kb_path = os.getenv("CAMPUSBOT_KB_PATH") or cfg.get("kb_path")
    if kb_path:
        kb_path = Path(kb_path)
        if not kb_path.is_absolute():
            kb_path = PROJECT_ROOT / kb_path
    else:
        kb_path = defaults.kb_path

    settings = Settings(
        kb_path=kb_path,
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        chat_model=str(openai_cfg.get("chat_model", defaults.chat_model)),
        embedding_model=str(openai_cfg.get("embedding_model", defaults.embedding_model)),
        temperature=float(openai_cfg.get("temperature", defaults.temperature)),
        max_tokens=int(openai_cfg.get("max_tokens", defaults.max_tokens)),
        openai_timeout_secs=float(openai_cfg.get("timeout_secs", defaults.openai_timeout_secs)),
        min_similarity=float(retrieval_cfg.get("min_similarity", defaults.min_similarity)),
        max_hits=int(retrieval_cfg.get("max_hits", defaults.max_hits)),
        max_snippets=int(retrieval_cfg.get("max_snippets", defaults.max_snippets)),
        snippet_chars=int(retrieval_cfg.get("snippet_chars", defaults.snippet_chars)),
        google_cse_key=os.getenv("GOOGLE_CSE_KEY"),
        google_cse_cx=os.getenv("GOOGLE_CSE_CX"),
        web_timeout_secs=float(web_cfg.get("timeout_secs", defaults.web_timeout_secs)),
        ratings_site=str(web_cfg.get("ratings_site", defaults.ratings_site)),
        default_school_host=str(web_cfg.get("default_school_host", defaults.default_school_host)),
        cors_origins=list(api_cfg.get("cors_origins") or defaults.cors_origins),
    )

    if not settings.openai_api_key:
        log.warning("OPENAI_API_KEY not set; embeddings and LLM answers are disabled")
    if not (settings.google_cse_key and settings.google_cse_cx):
        log.warning("GOOGLE_CSE_KEY / GOOGLE_CSE_CX not set; web search fallback is disabled")
    return settings
