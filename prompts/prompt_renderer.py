# prompts/prompt_renderer.py
"""Render prompt templates and load per-stage system prompts.

This module wraps Jinja2 for rendering templates under the `prompts/`
directory.

Rendering behavior and contracts:

- Templates are loaded relative to `PROMPTS_PATH`.
- Undefined variables are errors via Jinja2's `StrictUndefined`; a missing
  variable raises at render time instead of leaking a placeholder into a
  model prompt.
- Auto-escaping is disabled; prompts are plain text, not HTML.
- The `config` module is always injected into the template context as `config`.

System prompt loading:

- System prompts are read from `prompts/<stage>/system.md`.
- Reads are cached in-process via `functools.lru_cache`
  (`get_system_prompt.cache_clear()` to invalidate).
- A missing system prompt is a configuration error, not an empty prompt.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined

import config
from core.exceptions import ConfigurationError

PROMPTS_PATH = Path(__file__).parent
_env = Environment(
    loader=FileSystemLoader(PROMPTS_PATH),
    autoescape=False,
    undefined=StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
)


def render_prompt(template_name: str, context: dict[str, Any]) -> str:
    """Render a Jinja2 prompt template with a strict variable contract.

    Args:
        template_name: Template path relative to `PROMPTS_PATH`, for example
            `analyst/plan_page.j2`.
        context: Mapping of template variables to values.

    Returns:
        Rendered prompt text, stripped of surrounding whitespace.

    Raises:
        jinja2.TemplateNotFound: If `template_name` does not exist.
        jinja2.UndefinedError: If the template references a variable missing
            from `context`.
    """
    template = _env.get_template(template_name)
    template_context = {"config": config, **context}
    return template.render(**template_context).strip()


@lru_cache(maxsize=16)
def get_system_prompt(stage_name: str) -> str:
    """Load a per-stage system prompt.

    Args:
        stage_name: Directory under `PROMPTS_PATH` containing `system.md`.

    Returns:
        The stripped contents of `prompts/<stage_name>/system.md`.

    Raises:
        ConfigurationError: If the file is missing or unreadable.
    """
    system_path = PROMPTS_PATH / stage_name / "system.md"
    try:
        return system_path.read_text(encoding="utf-8").strip()
    except OSError as e:
        raise ConfigurationError(
            "System prompt could not be read",
            details={"stage": stage_name, "path": str(system_path), "error": str(e)},
        ) from e
