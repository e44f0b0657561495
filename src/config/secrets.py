"""
Secret management for LLM provider API keys.

Usage:
    from src.config.secrets import get_api_key, get_optional_key

    # Will raise if key is missing
    key = get_api_key("DEEPSEEK_API_KEY")

    # Empty string if missing (provider gets skipped)
    key = get_optional_key("KIMI_API_KEY")

CLI check:
    python -m src.config.secrets --check
"""

import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# Find .env file - walk up from this file to repo root
_current = Path(__file__).resolve()
_repo_root = _current.parent.parent.parent  # src/config/secrets.py -> repo root
_env_path = _repo_root / ".env"

if _env_path.exists():
    load_dotenv(_env_path)
else:
    # Also try current working directory
    load_dotenv()


PROVIDER_KEY_NAMES = {
    "gemini": "GEMINI_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
    "kimi": "KIMI_API_KEY",
}


class MissingAPIKeyError(Exception):
    """Raised when a required API key is not configured."""
    pass


def get_optional_key(env_name: str) -> str:
    """Return the stripped key from the environment, or "" if unset."""
    return os.environ.get(env_name, "").strip()


def get_api_key(env_name: str) -> str:
    """
    Get an API key from environment.

    Raises:
        MissingAPIKeyError: If the variable is not set
    """
    key = get_optional_key(env_name)
    if not key:
        raise MissingAPIKeyError(
            f"{env_name} not found. "
            "Copy .env.example to .env and add your key."
        )
    return key


def check_keys() -> dict:
    """
    Check which provider API keys are configured.

    Returns:
        dict: Status of each key ("OK" or "MISSING")
    """
    return {
        env_name: "OK" if get_optional_key(env_name) else "MISSING"
        for env_name in PROVIDER_KEY_NAMES.values()
    }


def _cli_check():
    """CLI entry point for --check flag."""
    status = check_keys()

    for key_name, key_status in status.items():
        print(f"{key_name}: {key_status}")

    # Providers are fallbacks for each other; one configured key is enough
    if "OK" not in status.values():
        print("\nNo LLM provider configured; consolidation will use the text fallback.")
        print("  1. Copy .env.example to .env")
        print("  2. Add at least one provider key to .env")
        sys.exit(1)
    else:
        print("\nAt least one provider configured.")
        sys.exit(0)


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(
        description="Check API key configuration"
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Check if API keys are configured"
    )

    args = parser.parse_args()

    if args.check:
        _cli_check()
    else:
        parser.print_help()
