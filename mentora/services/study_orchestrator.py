"""Orchestrator for one persona-scoped tutoring conversation.

Flow::

    select-mode --study--> level --> topic --> dialogue (loops)
                --advice-> dialogue (loops)

``reset`` returns to select-mode with the transcript cleared. Each dialogue turn
appends the user's message immediately, then an empty assistant placeholder
that grows as streamed fragments arrive. The provider stream is consumed by a
background task, so a listener that stops reading never interrupts the call,
and the persisted reply is always the full concatenation.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from mentora.core.exceptions import (
    ConfirmationRequiredError,
    GenerationFailedError,
    InvalidTransitionError,
    MentoraError,
    SessionBusyError,
    ValidationError,
)
from mentora.schemas.study import ChatMessage, PersonaInfo, StudySessionState
from mentora.services.generation_client import GenerationClient
from mentora.services.lesson_service import LessonService
from mentora.services.prompt_builder import (
    build_advice_system_prompt,
    build_dialogue_system_prompt,
)
from mentora.services.session_store import SessionStore

logger = logging.getLogger(__name__)

LEVELS = ("beginner", "intermediate", "advanced")

STUDY_TOPICS = {
    "dsa": {
        "beginner": ["Arrays", "Linked Lists", "Stacks and Queues", "Big-O Notation"],
        "intermediate": ["Hash Tables", "Binary Search Trees", "Recursion", "Sorting Algorithms"],
        "advanced": ["Dynamic Programming", "Graph Algorithms", "Heaps and Priority Queues", "Tries"],
    },
    "frontend": {
        "beginner": ["HTML Semantics", "CSS Box Model", "JavaScript Basics", "The DOM"],
        "intermediate": ["React Components and Props", "React Hooks", "Async JavaScript", "Responsive Design"],
        "advanced": ["Rendering Performance", "State Management", "Accessibility", "Web Security"],
    },
    "system-design": {
        "beginner": ["Client-Server Model", "Databases 101", "Caching Basics", "Load Balancing"],
        "intermediate": ["Database Sharding", "Message Queues", "CDNs", "API Design"],
        "advanced": ["Consistency Models", "Distributed Consensus", "Rate Limiting", "Designing for Failure"],
    },
}
DEFAULT_TOPICS = {
    "beginner": ["Programming Fundamentals", "Data Types", "Control Flow"],
    "intermediate": ["Object-Oriented Design", "Testing", "Version Control"],
    "advanced": ["Concurrency", "Performance Tuning", "Software Architecture"],
}

REPLY_FAILED_MESSAGE = "Your mentor couldn't reply just now. Please try sending your message again."
LESSON_FAILED_MESSAGE = "We couldn't prepare the next part of your lesson. Please try again."

_END_OF_REPLY = object()


def topics_for(subject: str, level: str) -> list[str]:
    """Fixed topic list for a (subject, level) pair."""
    return list(STUDY_TOPICS.get(subject, DEFAULT_TOPICS).get(level, []))


def start_message(topic: str) -> str:
    return f"Let's start learning about {topic}"


@dataclass
class StudyEvent:
    """An input to the orchestrator."""

    type: str
    mode: Optional[str] = None
    level: Optional[str] = None
    topic: Optional[str] = None
    text: Optional[str] = None
    confirmed: bool = False


class StudySessionOrchestrator:
    """Drives one (owner, persona) study session via ``dispatch``."""

    def __init__(
        self,
        store: SessionStore,
        client: GenerationClient,
        lesson_service: LessonService,
        owner_id: str,
        persona: PersonaInfo,
        state: StudySessionState,
    ):
        self._store = store
        self._client = client
        self._lessons = lesson_service
        self.owner_id = owner_id
        self.persona = persona
        self.state = state
        self._reply_task: Optional[asyncio.Task] = None

        self._handlers = {
            "select_mode": self._handle_select_mode,
            "select_level": self._handle_select_level,
            "select_topic": self._handle_select_topic,
            "send_message": self._handle_send_message,
            "advance_lesson": self._handle_advance_lesson,
            "reset": self._handle_reset,
        }

    @classmethod
    async def open(
        cls,
        store: SessionStore,
        client: GenerationClient,
        lesson_service: LessonService,
        owner_id: str,
        persona_id: str,
    ) -> "StudySessionOrchestrator":
        """Resume the persisted session for the pair, creating defaults on first visit."""
        persona = await store.fetch_persona(persona_id)
        state = await store.read_study_state(owner_id, persona_id)
        if state is None:
            state = StudySessionState()
            await store.write_study_state(owner_id, persona_id, state)
        return cls(store, client, lesson_service, owner_id, persona, state)

    @property
    def available_topics(self) -> list[str]:
        if not self.state.selected_level:
            return []
        return topics_for(self.persona.subject, self.state.selected_level)

    async def dispatch(self, event: StudyEvent) -> StudySessionState:
        """Apply one event and return the resulting state.

        ``send_message`` and ``select_topic`` consume the whole streamed reply
        before returning; use ``send_message()`` directly to render fragments.
        """
        handler = self._handlers.get(event.type)
        if handler is None:
            raise ValidationError(f"Unknown study event: {event.type}")
        self._require_idle()
        await handler(event)
        return self.state

    # ------------------------------------------------------------------
    # Mode, level and topic selection
    # ------------------------------------------------------------------

    async def _handle_select_mode(self, event: StudyEvent) -> None:
        if self.state.mode != "unselected":
            raise InvalidTransitionError("Mode was already chosen; reset to choose again.")
        if event.mode not in ("study", "advice"):
            raise ValidationError("Mode must be 'study' or 'advice'.")
        self.state.mode = event.mode
        self.state.study_stage = "choosing-level"
        await self._save_state()

    async def _handle_select_level(self, event: StudyEvent) -> None:
        self._require_study_stage("choosing-level")
        if event.level not in LEVELS:
            raise ValidationError(f"Level must be one of {', '.join(LEVELS)}.")
        self.state.selected_level = event.level
        self.state.study_stage = "choosing-topic"
        await self._save_state()

    async def _handle_select_topic(self, event: StudyEvent) -> None:
        self._require_study_stage("choosing-topic")
        if event.topic not in self.available_topics:
            raise ValidationError(f"Unknown topic for this level: {event.topic}")

        self.state.is_replying = True
        self.state.error = None
        try:
            lesson = await self._lessons.start_lesson(self.persona, event.topic)
        except GenerationFailedError as e:
            logger.warning(f"Lesson plan failed for {self.owner_id}/{self.persona.id}: {e}")
            self.state.error = LESSON_FAILED_MESSAGE
            return
        finally:
            self.state.is_replying = False

        self.state.selected_topic = event.topic
        self.state.lesson_plan = lesson.lesson_plan
        self.state.lesson_step = 0
        self.state.study_stage = "open-dialogue"
        # The first sub-topic's explanation opens the dialogue
        explanation = ChatMessage(role="assistant", content=lesson.explanation)
        self.state.messages.append(explanation)
        await self._append_transcript(explanation)
        await self._save_state()

        await self._consume(self._begin_turn(start_message(event.topic)))

    # ------------------------------------------------------------------
    # Dialogue
    # ------------------------------------------------------------------

    async def _handle_send_message(self, event: StudyEvent) -> None:
        await self._consume(await self.send_message(event.text or ""))

    async def send_message(self, text: str) -> AsyncIterator[str]:
        """Start one dialogue turn and return the stream of reply fragments.

        The user's message and the empty reply placeholder are in
        ``state.messages`` by the time this returns.
        """
        self._require_idle()
        if not self._in_dialogue():
            raise InvalidTransitionError("Choose a mode (and a topic) before chatting.")
        text = text.strip()
        if not text:
            raise ValidationError("Message cannot be empty.")
        return self._begin_turn(text)

    def _begin_turn(self, text: str) -> AsyncIterator[str]:
        user_message = ChatMessage(role="user", content=text)
        self.state.messages.append(user_message)

        if self.state.mode == "advice":
            system_prompt = build_advice_system_prompt(self.persona.display_prompt)
            history = [user_message.model_dump()]
        else:
            system_prompt = build_dialogue_system_prompt(
                self.persona.display_prompt, self.state.lesson_plan
            )
            history = [m.model_dump() for m in self.state.messages]

        reply = ChatMessage(role="assistant", content="")
        self.state.messages.append(reply)
        self.state.is_replying = True
        self.state.error = None

        queue: asyncio.Queue = asyncio.Queue()
        self._reply_task = asyncio.create_task(
            self._run_reply(user_message, reply, system_prompt, history, queue)
        )
        return self._drain(queue)

    async def _run_reply(
        self,
        user_message: ChatMessage,
        reply: ChatMessage,
        system_prompt: str,
        history: list[dict],
        queue: asyncio.Queue,
    ) -> None:
        await self._append_transcript(user_message)
        try:
            async for fragment in self._client.stream(system_prompt, history=history):
                reply.content += fragment
                queue.put_nowait(fragment)
        except Exception as e:
            logger.error(f"Reply failed for {self.owner_id}/{self.persona.id}: {e}", exc_info=True)
            self._discard(reply)
            self.state.error = REPLY_FAILED_MESSAGE
        else:
            await self._append_transcript(reply)
        finally:
            self.state.is_replying = False
            queue.put_nowait(_END_OF_REPLY)

        await self._save_state()

    @staticmethod
    async def _drain(queue: asyncio.Queue) -> AsyncIterator[str]:
        while True:
            fragment = await queue.get()
            if fragment is _END_OF_REPLY:
                return
            yield fragment

    async def _consume(self, fragments: AsyncIterator[str]) -> None:
        async for _ in fragments:
            pass
        await self.wait_for_reply()

    async def wait_for_reply(self) -> None:
        """Wait until the outstanding reply (if any) is complete and persisted."""
        if self._reply_task is not None:
            await self._reply_task

    def _discard(self, reply: ChatMessage) -> None:
        for i in range(len(self.state.messages) - 1, -1, -1):
            if self.state.messages[i] is reply:
                del self.state.messages[i]
                return

    # ------------------------------------------------------------------
    # Lesson steps
    # ------------------------------------------------------------------

    async def _handle_advance_lesson(self, event: StudyEvent) -> None:
        self._require_study_stage("open-dialogue")
        next_step = self.state.lesson_step + 1
        if next_step >= len(self.state.lesson_plan):
            raise InvalidTransitionError("The lesson is already complete.")

        self.state.is_replying = True
        self.state.error = None
        try:
            step = await self._lessons.continue_lesson(
                self.persona, self.state.lesson_plan, next_step
            )
        except GenerationFailedError as e:
            logger.warning(f"Lesson step {next_step} failed for {self.owner_id}/{self.persona.id}: {e}")
            self.state.error = LESSON_FAILED_MESSAGE
            return
        finally:
            self.state.is_replying = False

        content = step.explanation
        if step.conclusion:
            content = f"{content}\n\n{step.conclusion}"
        message = ChatMessage(role="assistant", content=content)
        self.state.messages.append(message)
        self.state.lesson_step = next_step
        await self._append_transcript(message)
        await self._save_state()

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    async def _handle_reset(self, event: StudyEvent) -> None:
        if not event.confirmed:
            raise ConfirmationRequiredError("Resetting deletes this conversation; confirm to continue.")
        await self._store.reset_study_state(self.owner_id, self.persona.id)
        self.state = StudySessionState()
        logger.info(f"Study session reset for {self.owner_id}/{self.persona.id}")

    # ------------------------------------------------------------------
    # Guards and persistence
    # ------------------------------------------------------------------

    def _require_idle(self) -> None:
        if self.state.is_replying:
            raise SessionBusyError("Your mentor is still replying.")

    def _require_study_stage(self, stage: str) -> None:
        if self.state.mode != "study" or self.state.study_stage != stage:
            raise InvalidTransitionError(
                f"Not available now (mode={self.state.mode}, stage={self.state.study_stage})."
            )

    def _in_dialogue(self) -> bool:
        if self.state.mode == "advice":
            return True
        return self.state.mode == "study" and self.state.study_stage == "open-dialogue"

    async def _save_state(self) -> None:
        """Best-effort cache write; the in-memory state stays authoritative."""
        try:
            await self._store.write_study_state(self.owner_id, self.persona.id, self.state)
        except MentoraError as e:
            logger.warning(f"Failed to save study state for {self.owner_id}/{self.persona.id}: {e}")

    async def _append_transcript(self, message: ChatMessage) -> None:
        try:
            await self._store.append_study_message(self.owner_id, self.persona.id, message)
        except MentoraError as e:
            logger.warning(f"Failed to append transcript row for {self.owner_id}/{self.persona.id}: {e}")
