import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "autofix_provider": "anthropic",
    "autofix_model": None,  # None = provider's built-in default model
    "snippet_context_chars": 50,
    "fix_context_chars": 300,
    "store": "sqlite",  # "memory" | "sqlite" | "gist"
    "store_path": ".revbuddy.db",
    "gist_id": None,
}


def load_config(config_path: str = ".revbuddy.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .revbuddy.yml in the current directory
      3. CLI argument overrides
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ValueError(f"{config_path} must contain a YAML mapping")
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")
    config["google_api_key"] = os.environ.get("GOOGLE_API_KEY")

    return config
