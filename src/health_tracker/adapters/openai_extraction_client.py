"""OpenAI Responses API client for structured extraction."""

import json
from dataclasses import dataclass

from openai import AsyncOpenAI

from health_tracker.domain.errors import ExtractionContractError
from health_tracker.services.extraction import ExtractionClient


@dataclass
class OpenAIExtractionClient(ExtractionClient):
    """Extraction client backed by OpenAI Responses API."""

    client: AsyncOpenAI

    @classmethod
    def create(cls, api_key: str) -> "OpenAIExtractionClient":
        """Create an OpenAI extraction client."""
        return cls(client=AsyncOpenAI(api_key=api_key))

    async def extract(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        content: list[dict[str, object]],
        schema: dict[str, object],
        schema_name: str,
    ) -> dict[str, object]:
        """Call OpenAI Responses API with a JSON schema output format."""
        request_payload: dict[str, object] = {
            "model": model,
            "input": [{"role": "user", "content": content}],
            "text": {
                "format": {
                    "type": "json_schema",
                    "name": schema_name,
                    "strict": False,
                    "schema": schema,
                }
            },
            "store": store,
        }
        if reasoning_effort:
            request_payload["reasoning"] = {"effort": reasoning_effort}

        response = await self.client.responses.create(**request_payload)
        output_text = response.output_text
        if not output_text:
            raise ExtractionContractError("OpenAI returned an empty response")
        try:
            return json.loads(output_text)
        except json.JSONDecodeError as exc:
            raise ExtractionContractError("OpenAI returned non-JSON output") from exc
