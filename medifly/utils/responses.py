"""
Centralized loading of canned assistant texts and prompts.
Loads config/responses.yaml once and caches it.
"""

import yaml
from pathlib import Path
from functools import lru_cache


@lru_cache(maxsize=1)
def load_responses() -> dict:
    """
    Loads response templates from YAML configuration file with LRU cache.

    Returns:
        Dictionary containing all response templates and prompts

    Raises:
        FileNotFoundError: If responses.yaml is not found
    """
    config_path = Path(__file__).parent.parent.parent / "config" / "responses.yaml"
    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)
