"""Role and responsibility generation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from pydantic import ValidationError

from taskmind.config import Settings
from taskmind.llm.client import AsyncLLMClient, ChatMessage
from taskmind.models.fragment import RoleList
from taskmind.models.node import RoleAssignment
from taskmind.prompts import ROLES_SYSTEM_PROMPT
from taskmind.prompts.enrichment import build_roles_request
from taskmind.utils.jsontext import extract_json_array, extract_json_object


class RoleParseError(ValueError):
    """The model answered, but not with a usable role list."""


@dataclass(frozen=True)
class RoleGenerator:
    """Derive roles and responsibilities from a node's detail and checklist."""

    llm: AsyncLLMClient
    settings: Settings

    async def generate_roles(self, task_detail: str, evaluation_checklist: Sequence[str]) -> list[RoleAssignment]:
        """Generate role assignments.

        Accepts either ``{"roles": [...]}`` or a bare JSON array from the model.

        Raises:
            LLMError: If the model call fails.
            RoleParseError: If no role list can be parsed.
        """

        messages = [
            ChatMessage(role="system", content=ROLES_SYSTEM_PROMPT),
            ChatMessage(role="user", content=build_roles_request(task_detail, evaluation_checklist)),
        ]
        raw = await self.llm.complete(
            messages,
            model=self.settings.effective_enrichment_model,
            temperature=0.2,
            json_mode=self.settings.model_mode == "external",
        )
        return parse_roles(raw)


def parse_roles(raw: str) -> list[RoleAssignment]:
    """Parse a role list out of raw model output."""

    data = extract_json_object(raw)
    if data is None:
        array = extract_json_array(raw)
        if array is None:
            raise RoleParseError("role output is not valid JSON")
        data = {"roles": array}
    try:
        return RoleList.model_validate(data).roles
    except ValidationError as e:
        raise RoleParseError(f"role output has the wrong shape: {e}") from e
