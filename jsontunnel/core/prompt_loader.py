from pathlib import Path
from string import Template

PROMPT_DIR = Path(__file__).parent.parent / "prompts"


def load_prompt(name: str, *, version: str = "v1", **kwargs) -> str:
    """
    Reason:
    - Fixed prompt text must be versioned and reproducible.
    Benefit:
    - $-substitution means schema text full of braces needs no escaping.
    """
    prompt_path = PROMPT_DIR / name / f"{version}.txt"

    try:
        with open(prompt_path, "r", encoding="utf-8") as f:
            template = Template(f.read())
    except FileNotFoundError:
        raise RuntimeError(
            f"Prompt template '{name}' (version '{version}') not found under {PROMPT_DIR}"
        ) from None

    try:
        return template.substitute(**kwargs).strip()
    except KeyError as e:
        raise RuntimeError(
            f"Prompt substitution failed for '{name}'. Missing variable: {e}"
        ) from e
