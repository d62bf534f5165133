"""
LLM processing of inbox captures.

Two pydantic-ai agents back the OmniMomentum inbox:

- the categorizer suggests a zone, a priority and a short task breakdown for
  one capture, taking the practitioner's current energy and time into account;
- the intelligent processor splits a bulk capture into tasks, suggested
  projects and task hierarchies that the practitioner approves afterwards.

Both return a deterministic fallback result whenever the model cannot be
built, the call fails or the output does not validate, so capture processing
never fails because of the LLM.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence, Tuple, Type, TypeVar, Union

from pydantic import BaseModel
from pydantic_ai import Agent
from pydantic_ai.models import Model

from omnicrm.core.database.base import new_id
from omnicrm.core.database.entities.momentum import TaskPriority
from omnicrm.core.logging_config import get_logger
from omnicrm.core.models.io.inbox import (
    ExtractedTask,
    InboxCategorization,
    IntelligentProcessingResult,
    IntelligentTask,
    UserContext,
)
from omnicrm.core.monitoring import log_llm_call
from omnicrm.server.core.config import AIConfig

logger = get_logger(__name__)

OutputT = TypeVar("OutputT", bound=BaseModel)

FALLBACK_ZONE = "Personal Wellness"

CATEGORIZE_SYSTEM_PROMPT = """\
You are an AI assistant specialized in helping wellness practitioners organize their work and life. \
Analyze raw text input, categorize it into the appropriate life-business zone and extract actionable tasks.

Zone descriptions:
- Personal Wellness: Self-care activities, personal health goals, mindfulness practices
- Self Care: Rest, relaxation, personal time, hobbies, mental health
- Admin & Finances: Bookkeeping, taxes, administrative tasks, financial planning
- Business Development: Marketing, networking, business growth, strategy
- Social Media & Marketing: Content creation, social media posts, marketing campaigns
- Client Care: Client sessions, follow-ups, client communication, service delivery

The suggested zone must be one of the available zones. Confidence is between 0.0 and 1.0.
"""

INTELLIGENT_SYSTEM_PROMPT = """\
You are an assistant that processes bulk inbox input for productivity management:
1. Split the raw text into individual, actionable tasks.
2. Assign each task to the most appropriate zone using the zone ids provided.
3. Group tasks into new projects only when they logically belong together.
4. Detect task/subtask and project/task relationships.
5. Extract priorities, due dates, time estimates and tags.

Generate a unique id for every task and project and reference those ids in project_id,
parent_task_id and task_hierarchies. Be conservative with confidence scores.
"""


def fallback_categorization(raw_text: str) -> InboxCategorization:
    name = raw_text[:50] + "..." if len(raw_text) > 50 else raw_text
    return InboxCategorization(
        suggested_zone=FALLBACK_ZONE,
        suggested_priority=TaskPriority.MEDIUM,
        suggested_project=None,
        extracted_tasks=[ExtractedTask(name=name, description=raw_text, estimated_minutes=30)],
        confidence=0.1,
        reasoning="AI categorization failed, using default values",
    )


def fallback_processing(raw_text: str, zones: Sequence[Tuple[int, str]]) -> IntelligentProcessingResult:
    is_long = len(raw_text) > 100
    task = IntelligentTask(
        id=new_id(),
        name=raw_text[:100] + ("..." if is_long else ""),
        description=raw_text if is_long else None,
        priority=TaskPriority.MEDIUM,
        zone_id=zones[0][0] if zones else None,
        confidence=0.3,
        reasoning="Fallback processing due to AI error",
    )
    return IntelligentProcessingResult(
        extracted_tasks=[task],
        suggested_projects=[],
        task_hierarchies=[],
        overall_confidence=0.3,
        processing_notes="Processing failed, created fallback task",
        requires_approval=True,
    )


def total_tokens(result: Any) -> Optional[int]:
    """Token count of an agent run; ``usage`` is a method on older pydantic-ai releases and a property on newer ones."""
    usage = getattr(result, "usage", None)
    if callable(usage):
        usage = usage()
    return getattr(usage, "total_tokens", None)


def _describe_user_context(user_context: Optional[UserContext]) -> str:
    if user_context is None:
        return ""
    hours = user_context.working_hours
    return (
        "\nCurrent Context:\n"
        f"- Energy Level: {f'{user_context.current_energy}/5' if user_context.current_energy else 'Not specified'}\n"
        f"- Available Time: {f'{user_context.available_time} minutes' if user_context.available_time else 'Not specified'}\n"
        f"- Preferred Zone: {user_context.preferred_zone or 'No preference'}\n"
        f"- Working Hours: {f'{hours.start} - {hours.end}' if hours else 'Not specified'}"
    )


class InboxAIProcessor:
    """Runs the inbox LLM agents and applies the fallbacks."""

    def __init__(self, config: Optional[AIConfig] = None, model: Union[Model, str, None] = None) -> None:
        """
        Args:
            config: LLM settings; defaults to ``settings.ai``
            model: Model instance or ``provider:model`` name overriding ``config.model``
        """
        if config is None:
            from omnicrm.server.core.config import settings

            config = settings.ai
        self._config = config
        self._model = model if model is not None else config.model

    @property
    def config(self) -> AIConfig:
        return self._config

    @property
    def model_name(self) -> str:
        return self._model if isinstance(self._model, str) else getattr(self._model, "model_name", "custom")

    def _build_agent(self, output_type: Type[OutputT], system_prompt: str) -> Agent[None, OutputT]:
        return Agent(
            self._model,
            output_type=output_type,
            system_prompt=system_prompt,
            model_settings={"temperature": self._config.temperature, "max_tokens": self._config.max_tokens},
        )

    async def _run(self, operation: str, output_type: Type[OutputT], system_prompt: str, prompt: str) -> OutputT:
        agent = self._build_agent(output_type, system_prompt)
        result = await agent.run(prompt)
        output = result.output
        try:
            log_llm_call(self.model_name, operation, total_tokens(result))
        except Exception as e:
            logger.debug(f"Could not record LLM usage for {operation}: {e}")
        return output

    async def categorize(
        self,
        raw_text: str,
        zone_names: Sequence[str],
        user_context: Optional[UserContext] = None,
    ) -> InboxCategorization:
        """
        Suggest a zone, priority and task breakdown for one capture.

        Args:
            raw_text: The captured text
            zone_names: Names of the zones the suggestion must choose from
            user_context: Energy, available time and preferences of the practitioner

        Returns:
            The model's categorization, or the fallback categorization on any failure
        """
        prompt = (
            f"Available Zones: {', '.join(zone_names)}\n\n"
            f'Please analyze the following input and categorize it appropriately:\n\nRaw Input: "{raw_text}"'
            f"{_describe_user_context(user_context)}\n\n"
            "Consider the user's current context when making suggestions. Break down the input into specific, "
            "actionable tasks and categorize them into the most appropriate life-business zone."
        )
        try:
            categorization = await self._run("categorize", InboxCategorization, CATEGORIZE_SYSTEM_PROMPT, prompt)
        except Exception as e:
            logger.warning(f"AI categorization failed, using fallback: {e}")
            log_llm_call(self.model_name, "categorize", None, fallback=True)
            return fallback_categorization(raw_text)

        logger.info(
            f"AI categorization completed: zone={categorization.suggested_zone}, "
            f"confidence={categorization.confidence}, tasks={len(categorization.extracted_tasks)}"
        )
        return categorization

    async def process_intelligently(
        self, raw_text: str, zones: Sequence[Tuple[int, str]]
    ) -> IntelligentProcessingResult:
        """
        Split a bulk capture into tasks, projects and hierarchies.

        Args:
            raw_text: The captured text
            zones: (zone id, zone name) pairs the tasks may be assigned to

        Returns:
            The model's result with ``requires_approval`` forced on, or the
            fallback result on any failure
        """
        available = ", ".join(f"{zone_id}: {name}" for zone_id, name in zones)
        prompt = (
            f"Available zones: {available}\n\n"
            "Please intelligently process this inbox input and break it down into individual tasks "
            f'with proper categorization:\n\n"{raw_text}"'
        )
        try:
            result = await self._run(
                "intelligent_processing", IntelligentProcessingResult, INTELLIGENT_SYSTEM_PROMPT, prompt
            )
        except Exception as e:
            logger.warning(f"Intelligent inbox processing failed, using fallback: {e}")
            log_llm_call(self.model_name, "intelligent_processing", None, fallback=True)
            return fallback_processing(raw_text, zones)

        result.requires_approval = True
        logger.info(
            f"Intelligent inbox processing completed: tasks={len(result.extracted_tasks)}, "
            f"projects={len(result.suggested_projects)}, confidence={result.overall_confidence}"
        )
        return result


def processor_summary(result: IntelligentProcessingResult) -> Dict[str, Any]:
    """Counts logged and returned alongside a stored processing result."""
    return {
        "tasks": len(result.extracted_tasks),
        "projects": len(result.suggested_projects),
        "hierarchies": len(result.task_hierarchies),
        "overall_confidence": result.overall_confidence,
    }
