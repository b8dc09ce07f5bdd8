from __future__ import annotations

from neuron_core.providers.base import BaseProvider


class AnthropicProvider(BaseProvider):
    MODEL = "claude-sonnet-4-20250514"
    TEMPERATURE = 0.2

    def __init__(self, api_key: str, model: str | None = None, timeout: float = 60.0):
        super().__init__(model=model, timeout=timeout)
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this provider. "
                "Install it with: pip install 'neuron[anthropic]'"
            )
        self.client = Anthropic(api_key=api_key, timeout=timeout)

    def _call_api(self, messages: list[dict], json_mode: bool) -> str:
        # Imported inside the method because the anthropic package is optional;
        # __init__ already validated it is installed before we reach here.
        from anthropic.types import TextBlock

        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        conversation = [m for m in messages if m["role"] != "system"]
        if json_mode:
            # No native JSON mode: prefill the assistant turn with "{" so the
            # reply continues a JSON object.
            conversation = conversation + [{"role": "assistant", "content": "{"}]

        response = self.client.messages.create(
            model=self.model,
            system=system,
            messages=conversation,
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
        )
        text = "".join(block.text for block in response.content if isinstance(block, TextBlock)).strip()
        return "{" + text if json_mode else text
