"""Shared PydanticAI plumbing for the report agents.

Model strings use PydanticAI's 'provider:model' form. A local
OpenAI-compatible server is selected with 'openai:<model>@<base_url>'; such
servers usually lack native JSON/tool output, so structured outputs are
requested through PromptedOutput instead.

run_agent bounds every call with asyncio.wait_for, which cancels the
in-flight request when the stage timeout fires.
"""

import asyncio
import logging
from typing import Any, TypeVar

from openai import AsyncOpenAI
from pydantic_ai import Agent, PromptedOutput, UsageLimits
from pydantic_ai.models import Model
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.profiles.openai import OpenAIModelProfile
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.settings import ModelSettings

logger = logging.getLogger(__name__)

OutputT = TypeVar("OutputT")


def parse_local_model(model_str: str) -> tuple[str, str] | None:
    """Parse local model string into (model_name, base_url) or None if not local."""
    if model_str.startswith("openai:") and "@" in model_str:
        rest = model_str[len("openai:"):]
        model_name, base_url = rest.split("@", 1)
        return model_name, base_url
    return None


def create_model(model_str: str) -> Model | str:
    """Create a PydanticAI model instance or pass through a remote model string.

    Supports:
    - Local servers: 'openai:{model_name}@http://127.0.0.1:8080/v1'
    - Remote models: 'openai:gpt-4o', 'anthropic:claude-3-5-sonnet-latest'
    """
    parsed = parse_local_model(model_str)
    if parsed:
        model_name, base_url = parsed
        logger.info("Using local model | model=%s base_url=%s", model_name, base_url)
        client = AsyncOpenAI(base_url=base_url, api_key="local-model")
        profile = OpenAIModelProfile(supports_json_object_output=False)
        return OpenAIChatModel(
            model_name,
            provider=OpenAIProvider(openai_client=client),
            profile=profile,
        )
    return model_str


def create_agent(
    model: str | Model,
    output_type: Any,
    system_prompt: str,
) -> Agent:
    """Create an agent for one report stage.

    Args:
        model: Model string or an already-built model (tests pass TestModel)
        output_type: str or a pydantic model describing the output
        system_prompt: Stage instructions
    """
    is_local = isinstance(model, str) and parse_local_model(model) is not None
    model_instance = create_model(model) if isinstance(model, str) else model
    if is_local and output_type is not str:
        output_type = PromptedOutput(output_type)

    return Agent(
        model_instance,
        output_type=output_type,
        system_prompt=system_prompt,
        retries=2,
        defer_model_check=True,
    )


async def run_agent(
    agent: Agent[Any, OutputT],
    prompt: str,
    *,
    max_tokens: int,
    temperature: float,
    timeout: float,
    stage: str,
) -> OutputT:
    """Run an agent with a token budget and a hard timeout.

    Raises:
        asyncio.TimeoutError: The stage exceeded ``timeout`` seconds
        Exception: Any model/validation error from PydanticAI
    """
    settings = ModelSettings(max_tokens=max_tokens, temperature=temperature)
    result = await asyncio.wait_for(
        agent.run(prompt, model_settings=settings, usage_limits=UsageLimits(request_limit=3)),
        timeout=timeout,
    )
    usage = result.usage
    logger.info(
        "Stage complete | stage=%s input_tokens=%d output_tokens=%d",
        stage,
        usage.input_tokens or 0,
        usage.output_tokens or 0,
    )
    return result.output


class StageOutputError(Exception):
    """Raised when an agent returns output that fails the stage's quality checks."""
