"""
Wizard step machine.

The wizard walks setup -> team -> costs -> investments -> projections -> review.
A turn advances at most one step, and only when the completion classifier
says the turn was an explicit completion. Going back is always an explicit
navigation.
"""
import re
from dataclasses import dataclass
from typing import List, Optional, Protocol

from wisdom_bi.wizard.schemas import WizardStep

STEP_ORDER: List[WizardStep] = [
    WizardStep.SETUP,
    WizardStep.TEAM,
    WizardStep.COSTS,
    WizardStep.INVESTMENTS,
    WizardStep.PROJECTIONS,
    WizardStep.REVIEW,
]

STEP_COMPLETE_MARKER = "[STEP_COMPLETE]"

# Whole-word completion patterns, matched against the lowercased message
COMPLETION_PHRASES = (
    r"\bthat'?s (all|it)\b",
    r"\b(i'?m|we'?re|all) done\b",
    r"\bdone\b",
    r"\bno more\b(?!\s+than)",
    r"\blet'?s move on\b",
    r"\bnext step\b",
    r"\bnothing else\b",
    r"\ball good\b",
)

NEGATION_PATTERN = re.compile(r"\b(not|never|haven't|hasn't|havent|isn't|aren't|didn't|don't|won't)\s+(\w+\s+)?$")


class CompletionClassifier(Protocol):
    """Decides whether a turn finished the current step."""

    def is_complete(self, user_message: str, reply: str) -> bool:
        ...


class MarkerCompletionClassifier:
    """The model signalled completion with the step-complete marker."""

    def is_complete(self, user_message: str, reply: str) -> bool:
        return STEP_COMPLETE_MARKER in (reply or "")


class PhraseCompletionClassifier:
    """The user said they are finished with the step."""

    def __init__(self, phrases=COMPLETION_PHRASES):
        self.patterns = [re.compile(p) for p in phrases]

    def is_complete(self, user_message: str, reply: str) -> bool:
        text = (user_message or "").lower().replace("’", "'")
        for pattern in self.patterns:
            for match in pattern.finditer(text):
                # "haven't done", "not done yet"
                if not NEGATION_PATTERN.search(text[:match.start()]):
                    return True
        return False


class ConservativeCompletionClassifier:
    """Both the model and the user must agree the step is finished."""

    def __init__(self):
        self.marker = MarkerCompletionClassifier()
        self.phrase = PhraseCompletionClassifier()

    def is_complete(self, user_message: str, reply: str) -> bool:
        return (
            self.marker.is_complete(user_message, reply)
            and self.phrase.is_complete(user_message, reply)
        )


@dataclass(frozen=True)
class TurnOutcome:
    step: WizardStep
    step_complete: bool
    next_step: Optional[WizardStep] = None


class WizardStepMachine:
    """Tracks which step a conversation is on."""

    def __init__(self, classifier: Optional[CompletionClassifier] = None):
        self.classifier = classifier or MarkerCompletionClassifier()

    @staticmethod
    def next_step(step: WizardStep) -> WizardStep:
        """The step after this one; review is terminal."""
        index = STEP_ORDER.index(WizardStep(step))
        return STEP_ORDER[min(index + 1, len(STEP_ORDER) - 1)]

    def apply_turn(self, step: WizardStep, user_message: str, reply: str) -> TurnOutcome:
        """
        Apply one conversational turn.

        Returns the outcome; the step only moves forward (by one) when the
        classifier reports an explicit completion.
        """
        step = WizardStep(step)
        if not self.classifier.is_complete(user_message, reply):
            return TurnOutcome(step=step, step_complete=False)

        following = self.next_step(step)
        return TurnOutcome(step=following, step_complete=True, next_step=following)

    @staticmethod
    def navigate(step) -> WizardStep:
        """Explicitly jump to any step (the only way to go back)."""
        return WizardStep(step)
