# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Keep them in .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "OPSDESK_APP_NAME": "App display name (default: opsdesk).",
    "OPSDESK_LOG_LEVEL": "Console logging level (default: INFO). The log file always records DEBUG.",
    # LLM / OpenRouter
    "OPSDESK_OPENROUTER_API_KEY": (
        "OpenRouter API key (OPENROUTER_API_KEY is also accepted). "
        "Without it the assistant runs on the offline client."
    ),
    "OPSDESK_OPENROUTER_BASE_URL": "OpenRouter base URL (default: https://openrouter.ai/api/v1).",
    "OPSDESK_LLM_MODELS": "Comma/space separated list of models to try in order.",
    "OPSDESK_HTTP_REFERER": "Optional OpenRouter metadata header.",
    "OPSDESK_APP_TITLE": "Optional OpenRouter metadata header title.",
    "OPSDESK_LLM_FIRST_TOKEN_TIMEOUT_SECONDS": "Give up on a model if no token arrives in time (default: 20).",
    "OPSDESK_LLM_READ_TIMEOUT_SECONDS": "HTTP read timeout (default: 25, never below the first-token timeout).",
    "OPSDESK_LLM_CONNECT_TIMEOUT_SECONDS": "HTTP connect timeout (default: 5).",
    # Paths (gitignored)
    "OPSDESK_DATA_DIR": "Local data directory, also holds opsdesk.log (default: .local/opsdesk).",
    "OPSDESK_DB_PATH": "SQLite database for users/tickets/vocabulary (default: <data_dir>/opsdesk.sqlite3).",
    "OPSDESK_EXPORT_PATH": "Default /export target (default: <data_dir>/ISP_Task_System.xlsx).",
    # Workspace defaults
    "OPSDESK_DEFAULT_TASK_TYPES": "Comma separated task categories seeded into new workspaces.",
    "OPSDESK_DEFAULT_AREAS": "Comma separated service regions seeded into new workspaces.",
    "OPSDESK_TOP_TYPES_LIMIT": "How many task types the dashboard ranks (default: 6).",
}
