from __future__ import annotations

try:
    from google import genai as _genai
    from google.genai import types as _types
except ImportError:
    _genai = None  # type: ignore[assignment]
    _types = None  # type: ignore[assignment]

from revbuddy_core.providers.base import BaseFixer


class GoogleFixer(BaseFixer):
    MODEL = "gemini-2.0-flash"
    TEMPERATURE = 0.2

    def __init__(self, api_key: str, model: str | None = None):
        # Model ids copied from the API listing carry a "models/" prefix.
        super().__init__(model.removeprefix("models/") if model else None)
        if _genai is None:
            raise ImportError(
                "The 'google-genai' package is required for this provider. "
                "Install it with: pip install 'revbuddy[google]'"
            )
        self.client = _genai.Client(api_key=api_key)

    def _call_api(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        response = self.client.models.generate_content(
            model=self.model,
            contents=user_prompt,
            config=_types.GenerateContentConfig(
                system_instruction=system_prompt,
                temperature=self.TEMPERATURE,
                max_output_tokens=max_tokens,
            ),
        )
        return (response.text or "").strip()
