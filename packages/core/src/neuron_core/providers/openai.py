from __future__ import annotations

try:
    from openai import AzureOpenAI as _AzureOpenAI
    from openai import OpenAI as _OpenAI
except ImportError:
    _OpenAI = None  # type: ignore[assignment,misc]
    _AzureOpenAI = None  # type: ignore[assignment,misc]

from neuron_core.providers.base import BaseProvider

_INSTALL_HINT = "The 'openai' package is required for this provider. Install it with: pip install 'neuron[openai]'"


class OpenAIProvider(BaseProvider):
    MODEL = "gpt-4o"
    # Low temperature keeps the JSON structure stable across runs, which
    # matters because unchanged plans must produce unchanged fingerprints.
    TEMPERATURE = 0.2

    def __init__(self, api_key: str, model: str | None = None, timeout: float = 60.0):
        super().__init__(model=model, timeout=timeout)
        if _OpenAI is None:
            raise ImportError(_INSTALL_HINT)
        self.client = _OpenAI(api_key=api_key, timeout=timeout)

    def _call_api(self, messages: list[dict], json_mode: bool) -> str:
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
            **kwargs,
        )
        return (response.choices[0].message.content or "").strip()


class AzureOpenAIProvider(OpenAIProvider):
    """OpenAI chat completions served from an Azure deployment.

    Azure addresses models by deployment name, so ``model`` is the deployment.
    """

    MODEL = ""

    def __init__(self, endpoint: str, api_key: str, deployment: str, api_version: str, timeout: float = 60.0):
        BaseProvider.__init__(self, model=deployment, timeout=timeout)
        if _AzureOpenAI is None:
            raise ImportError(_INSTALL_HINT)
        self.client = _AzureOpenAI(
            azure_endpoint=endpoint,
            api_key=api_key,
            api_version=api_version,
            timeout=timeout,
        )
