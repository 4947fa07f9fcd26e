"""
Workflow descriptors.

A conversation workflow is data, not a class hierarchy: the ordered steps of
the variant, the edges allowed between them, and one text handler plus one
image handler per step. The conversation engine is parameterised by a
descriptor and refuses any step change the descriptor does not declare.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, FrozenSet, Mapping, Tuple

from core.models import ConversationStep, WorkflowKind, WORKFLOW_STEPS
from core.exceptions import SessionStateError

# (TurnContext, Intent, text) -> reply
TextHandler = Callable[..., Awaitable[str]]
# (TurnContext, ImagePayload) -> reply
ImageHandler = Callable[..., Awaitable[str]]


@dataclass(frozen=True)
class WorkflowDescriptor:
    """Declarative description of one conversation workflow."""
    kind: WorkflowKind
    entry_step: ConversationStep
    transitions: Mapping[ConversationStep, FrozenSet[ConversationStep]]
    text_handlers: Mapping[ConversationStep, TextHandler]
    image_handlers: Mapping[ConversationStep, ImageHandler]
    greeting: str = ""
    start_step: ConversationStep = field(default=ConversationStep.INITIAL)

    def __post_init__(self):
        steps = set(self.steps)
        if self.start_step not in steps or self.entry_step not in steps:
            raise ValueError(f"{self.kind.value}: start/entry step outside the workflow")
        for src, targets in self.transitions.items():
            unknown = ({src} | set(targets)) - steps
            if unknown:
                raise ValueError(f"{self.kind.value}: undeclared steps in transitions: {sorted(s.value for s in unknown)}")
        for name, handlers in (("text", self.text_handlers), ("image", self.image_handlers)):
            missing = steps - set(handlers)
            if missing:
                raise ValueError(f"{self.kind.value}: no {name} handler for {sorted(s.value for s in missing)}")

    @property
    def steps(self) -> Tuple[ConversationStep, ...]:
        return WORKFLOW_STEPS[self.kind]

    @property
    def recovery_steps(self) -> FrozenSet[ConversationStep]:
        """Steps reachable from anywhere (reset and recovery)."""
        return frozenset({self.start_step, self.entry_step})

    def knows(self, step: Any) -> bool:
        return step in self.steps

    def allows(self, src: ConversationStep, dst: ConversationStep) -> bool:
        if not self.knows(dst):
            return False
        if src == dst or dst in self.recovery_steps:
            return True
        return dst in self.transitions.get(src, frozenset())

    def check_transition(self, src: ConversationStep, dst: ConversationStep) -> None:
        """Raise SessionStateError unless ``src -> dst`` is a declared edge."""
        if not self.allows(src, dst):
            raise SessionStateError(
                f"{self.kind.value}: transition {getattr(src, 'value', src)} -> "
                f"{getattr(dst, 'value', dst)} is not declared",
                step=getattr(src, "value", str(src)),
            )

    def text_handler(self, step: ConversationStep) -> TextHandler:
        return self.text_handlers[step]

    def image_handler(self, step: ConversationStep) -> ImageHandler:
        return self.image_handlers[step]
