# tests/test_prompt_renderer_misc.py
from jinja2 import DictLoader, Environment, StrictUndefined

import prompts.prompt_renderer


def test_render_prompt_with_custom_env_injects_config(monkeypatch):
    env = Environment(
        loader=DictLoader({"page.j2": "Page {{ page }} of {{ config.MAX_STORY_PAGES }}\n"}),
        autoescape=False,
        undefined=StrictUndefined,
    )
    monkeypatch.setattr(prompts.prompt_renderer, "_env", env)

    result = prompts.prompt_renderer.render_prompt("page.j2", {"page": 4})

    assert result == "Page 4 of 12"
