from __future__ import annotations

from revbuddy_core.providers.base import BaseFixer


class AnthropicFixer(BaseFixer):
    # A small, fast model: auto-fix edits are one line long.
    MODEL = "claude-3-5-haiku-latest"
    TEMPERATURE = 0.2

    def __init__(self, api_key: str, model: str | None = None):
        super().__init__(model)
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this provider. "
                "Install it with: pip install 'revbuddy[anthropic]'"
            )
        self.client = Anthropic(api_key=api_key)

    def _call_api(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        # __init__ already validated the package is installed.
        from anthropic.types import TextBlock

        response = self.client.messages.create(
            model=self.model,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
            temperature=self.TEMPERATURE,
            max_tokens=max_tokens,
        )
        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        return "".join(text_blocks).strip()
