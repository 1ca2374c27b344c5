from pathlib import Path

from vista.analysis.exceptions import AnalysisError

_DEFAULT_PROMPT_DIR = Path(__file__).parent / "prompts"


def load_system_prompt(path: Path | None = None) -> str:
    """Load the radiology system prompt from a file.

    Args:
        path: Path to the prompt file.
              Defaults to the bundled system_prompt.txt.

    Returns:
        The prompt text with surrounding whitespace removed.

    Raises:
        AnalysisError: if the file cannot be read or is empty.
    """
    if path is None:
        path = _DEFAULT_PROMPT_DIR / "system_prompt.txt"
    try:
        prompt = path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise AnalysisError(f"Failed to load system prompt: {exc}") from exc
    if not prompt:
        raise AnalysisError(f"System prompt is empty: {path}")
    return prompt
