"""Task detail and evaluation checklist generation."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import ValidationError

from taskmind.config import Settings
from taskmind.llm.client import AsyncLLMClient, ChatMessage
from taskmind.logging import get_logger
from taskmind.models.fragment import NodeDetail
from taskmind.prompts import DETAIL_SYSTEM_PROMPT
from taskmind.prompts.enrichment import build_detail_request
from taskmind.utils.jsontext import extract_json_object

logger = get_logger(__name__)


class DetailParseError(ValueError):
    """The model answered, but not with a usable detail object."""


@dataclass(frozen=True)
class DetailGenerator:
    """Generate the long-form description and checklist of one node."""

    llm: AsyncLLMClient
    settings: Settings

    async def generate_detail(self, topic: str, node_id: str) -> NodeDetail:
        """Generate detail for ``topic``.

        Raises:
            LLMError: If the model call fails.
            DetailParseError: If the output is not a detail object.
        """

        messages = [
            ChatMessage(role="system", content=DETAIL_SYSTEM_PROMPT),
            ChatMessage(role="user", content=build_detail_request(topic, node_id)),
        ]
        raw = await self.llm.complete(
            messages,
            model=self.settings.effective_enrichment_model,
            temperature=0.2,
            json_mode=self.settings.model_mode == "external",
        )
        data = extract_json_object(raw)
        if data is None:
            logger.warning("Detail output has no JSON object", extra={"node_id": node_id, "raw": raw[:400]})
            raise DetailParseError("detail output is not valid JSON")
        try:
            detail = NodeDetail.model_validate(data)
        except ValidationError as e:
            raise DetailParseError(f"detail output has the wrong shape: {e}") from e
        detail.evaluation_checklist = [item.strip() for item in detail.evaluation_checklist if item.strip()]
        return detail
