from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# ── Paths ──────────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = Path(os.getenv("JIRANI_DATA_DIR", str(PROJECT_ROOT / "data")))
DB_PATH = DATA_DIR / "jirani.db"
FALLBACK_INCIDENTS_PATH = DATA_DIR / "reports.json"

# ── Language model ─────────────────────────────────────────────────────
# "openai" | "gemini" | "ollama", all spoken to through the
# OpenAI-compatible chat completions API.
LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "openai").lower()
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
GOOGLE_API_KEY: str = os.getenv("GOOGLE_API_KEY", "")
GEMINI_BASE_URL: str = os.getenv(
    "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta/openai/"
)
OLLAMA_BASE_URL: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434/v1")
MODEL_NAME: str = os.getenv("MODEL_NAME", "gpt-4o-mini")
MODEL_TEMPERATURE: float = float(os.getenv("MODEL_TEMPERATURE", "0.3"))
LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "12"))

# ── Dialog ─────────────────────────────────────────────────────────────
MAX_HISTORY_MESSAGES: int = int(os.getenv("MAX_HISTORY_MESSAGES", "50"))
CONTEXT_WINDOW_MESSAGES: int = int(os.getenv("CONTEXT_WINDOW_MESSAGES", "10"))
CONVERSATION_TIMEOUT_SECONDS: float = float(
    os.getenv("CONVERSATION_TIMEOUT_SECONDS", str(60 * 60))
)
CONVERSATION_CACHE_SIZE: int = int(os.getenv("CONVERSATION_CACHE_SIZE", "1000"))
CONVERSATION_SWEEP_SECONDS: float = float(os.getenv("CONVERSATION_SWEEP_SECONDS", "300"))

# ── Storage ────────────────────────────────────────────────────────────
STORE_BACKOFF_SECONDS: float = float(os.getenv("STORE_BACKOFF_SECONDS", "60"))

# ── WhatsApp Cloud API ─────────────────────────────────────────────────
WHATSAPP_VERIFY_TOKEN: str = os.getenv("WHATSAPP_VERIFY_TOKEN", "")
WHATSAPP_ACCESS_TOKEN: str = os.getenv("WHATSAPP_ACCESS_TOKEN", "")
WHATSAPP_PHONE_NUMBER_ID: str = os.getenv("WHATSAPP_PHONE_NUMBER_ID", "")

# ── Rate limiting ──────────────────────────────────────────────────────
RATE_LIMIT_MAX_REQUESTS: int = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "20"))
RATE_LIMIT_WINDOW_SECONDS: float = float(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))

# ── Ensure runtime dirs exist ──────────────────────────────────────────
DATA_DIR.mkdir(parents=True, exist_ok=True)
