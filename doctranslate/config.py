"""Centralized configuration for the doctranslate package.

Provides paths, LLM defaults, chunking and retry settings read from the
environment. Values tuned at runtime (model, chunk size, sampling) are
persisted in the ``translation_config`` table and fall back to these.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Package root (doctranslate/ directory)
PACKAGE_ROOT = Path(__file__).parent

# Working directory (where the user runs the CLI or server from)
WORKING_DIR = Path.cwd()

# Load .env from the working directory, not from site-packages
load_dotenv(WORKING_DIR / ".env")

# Directory paths (relative to working directory)
OUTPUTS_DIR = WORKING_DIR / "outputs"
DATABASE_PATH = Path(os.getenv("DOCTRANSLATE_DB_PATH", str(OUTPUTS_DIR / "doctranslate.db")))

# LLM Configuration
DEFAULT_PROVIDER = os.getenv("PROVIDER", "google")
DEFAULT_TEMPERATURE = float(os.getenv("DOCTRANSLATE_TEMPERATURE", "1.0"))
DEFAULT_MAX_OUTPUT_TOKENS = int(os.getenv("DOCTRANSLATE_MAX_OUTPUT_TOKENS", "32000"))

# Default models per provider (override with {PROVIDER}_MODEL env var)
# API keys expected in .env:
#   GOOGLE_API_KEY, ANTHROPIC_API_KEY, OPENAI_API_KEY, MISTRAL_API_KEY, XAI_API_KEY
DEFAULT_MODELS = {
    "anthropic": os.getenv("ANTHROPIC_MODEL", "claude-haiku-4-5"),
    "google": os.getenv("GOOGLE_MODEL", "gemini-2.5-flash"),
    "lmstudio": os.getenv("LMSTUDIO_MODEL", "qwen2.5-7b-instruct"),
    "mistral": os.getenv("MISTRAL_MODEL", "mistral-large-latest"),
    "openai": os.getenv("OPENAI_MODEL", "gpt-4o"),
    "xai": os.getenv("XAI_MODEL", "grok-4-1-fast-reasoning"),
}

# Chunking
DEFAULT_CHUNK_SIZE = int(os.getenv("DOCTRANSLATE_CHUNK_SIZE", "2000"))

# Retry Configuration (transient provider errors only)
MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", "3"))
RETRY_BASE_DELAY = float(os.getenv("LLM_RETRY_DELAY", "1.0"))  # seconds
RETRY_MAX_DELAY = float(os.getenv("LLM_RETRY_MAX_DELAY", "30.0"))  # seconds

# Logging
LOG_LEVEL = os.getenv("DOCTRANSLATE_LOG_LEVEL", "INFO")
