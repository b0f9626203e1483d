"""
Loads packaged prompt text from vibebuild/data/prompts.

Callers pass an id relative to that root, for example "build/planner.txt"
or "redstone/executor.txt".
"""

from functools import lru_cache
from pathlib import Path


PROMPTS_DIR = Path(__file__).parent / "data" / "prompts"


@lru_cache(maxsize=64)
def load_prompt(prompt_id: str) -> str:
    """Read a UTF-8 prompt file. Cached so each prompt is read once."""
    path = PROMPTS_DIR / prompt_id.lstrip("/")
    if not path.is_file():
        raise FileNotFoundError(f"Prompt not found: {prompt_id}")
    return path.read_text(encoding="utf-8")
