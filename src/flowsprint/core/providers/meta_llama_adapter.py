from __future__ import annotations

from flowsprint.core.content.code import extract_code_block
from flowsprint.core.gateway.normalizer import extract_chat_text
from flowsprint.core.providers.base import GenerationRequest, PreExtractedShape, ProviderResponse
from flowsprint.core.providers.openai_compatible import OpenAICompatibleAdapter


class MetaLlamaAdapter(OpenAICompatibleAdapter):
    """Meta Llama models served through the Hugging Face inference router."""

    name = "meta-llama"
    display_name = "Meta Llama"
    description = "High-quality code and content generation"
    use_cases = ("Code generation", "Technical documentation", "Comprehensive PRDs")

    def generate(self, request: GenerationRequest) -> ProviderResponse:
        model, body = self.chat(request)
        text = extract_chat_text(body)

        if request.kind in {"code", "node-code"}:
            payload = PreExtractedShape(key="code", value=extract_code_block(text), raw=body)
        elif request.kind == "prd":
            payload = PreExtractedShape(key="prd", value=text, raw=body)
        else:
            payload = PreExtractedShape(key="generated_text", value=text, raw=body)
        return ProviderResponse(provider=self.name, model=model, payload=payload)
