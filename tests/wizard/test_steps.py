"""Tests for the wizard step machine."""
import random

import pytest

from wisdom_bi.wizard.schemas import WizardStep
from wisdom_bi.wizard.steps import (
    STEP_ORDER,
    ConservativeCompletionClassifier,
    MarkerCompletionClassifier,
    PhraseCompletionClassifier,
    WizardStepMachine,
)

# Vocabulary for utterances that never contain a completion phrase
NON_COMPLETION_WORDS = [
    "yes", "add", "another", "hire", "project", "manager", "salary", "95k",
    "starting", "february", "vehicle", "marketing", "budget", "please", "we",
    "need", "site", "supervisor", "$85,000", "march", "rent", "increase", "5%",
]


def _random_utterances(count, seed=42):
    rng = random.Random(seed)
    return [" ".join(rng.choice(NON_COMPLETION_WORDS) for _ in range(rng.randint(1, 8))) for _ in range(count)]


# ============================================================================
# CLASSIFIERS
# ============================================================================

class TestClassifiers:
    """Tests for completion classifiers."""

    def test_marker_classifier(self):
        classifier = MarkerCompletionClassifier()
        assert classifier.is_complete("ok", "Let's move on. [STEP_COMPLETE]")
        assert not classifier.is_complete("that's all", "Anything else?")

    @pytest.mark.parametrize("utterance", [
        "That's all", "I'm done thanks", "no more hires", "Let's move on",
        "next step please", "nothing else", "All good!", "done",
        "That’s all",
    ])
    def test_phrase_classifier_detects_completion(self, utterance):
        assert PhraseCompletionClassifier().is_complete(utterance, "")

    @pytest.mark.parametrize("utterance", [
        "yes", "add another", "$95k starting February", "",
        "We need no more than two hires, starting March",
        "I haven't done the numbers on the van yet",
        "Yes add another, the abandoned site needs a supervisor",
        "We're not done yet",
        "It isn't all good, rent went up",
    ])
    def test_phrase_classifier_ignores_data(self, utterance):
        assert not PhraseCompletionClassifier().is_complete(utterance, "[STEP_COMPLETE]")

    def test_conservative_needs_both(self):
        classifier = ConservativeCompletionClassifier()
        assert classifier.is_complete("that's all", "Great. [STEP_COMPLETE]")
        assert not classifier.is_complete("that's all", "Anything else?")
        assert not classifier.is_complete("add another", "[STEP_COMPLETE]")


# ============================================================================
# STEP MACHINE
# ============================================================================

class TestWizardStepMachine:
    """Tests for WizardStepMachine."""

    def test_step_order(self):
        assert [s.value for s in STEP_ORDER] == [
            "setup", "team", "costs", "investments", "projections", "review",
        ]

    @pytest.mark.parametrize("step,expected", [
        (WizardStep.SETUP, WizardStep.TEAM),
        (WizardStep.TEAM, WizardStep.COSTS),
        (WizardStep.COSTS, WizardStep.INVESTMENTS),
        (WizardStep.INVESTMENTS, WizardStep.PROJECTIONS),
        (WizardStep.PROJECTIONS, WizardStep.REVIEW),
        (WizardStep.REVIEW, WizardStep.REVIEW),
    ])
    def test_next_step(self, step, expected):
        assert WizardStepMachine.next_step(step) == expected

    def test_completion_advances_one_step(self):
        outcome = WizardStepMachine().apply_turn(WizardStep.TEAM, "no more", "Great. [STEP_COMPLETE]")

        assert outcome.step_complete is True
        assert outcome.step == WizardStep.COSTS
        assert outcome.next_step == WizardStep.COSTS

    def test_default_is_stay(self):
        outcome = WizardStepMachine().apply_turn(WizardStep.TEAM, "yes, add another", "What salary?")

        assert outcome.step_complete is False
        assert outcome.step == WizardStep.TEAM
        assert outcome.next_step is None

    @pytest.mark.parametrize("step", list(WizardStep))
    def test_random_non_completion_inputs_never_advance(self, step):
        """Twenty data-bearing utterances in a row keep the step unchanged."""
        machine = WizardStepMachine(PhraseCompletionClassifier())
        current = step

        for utterance in _random_utterances(20):
            outcome = machine.apply_turn(current, utterance, "Got it. Would you like to add another?")
            assert outcome.step_complete is False
            current = outcome.step

        assert current == step

    def test_turns_never_go_backwards(self):
        machine = WizardStepMachine()
        current = WizardStep.SETUP
        for _ in range(10):
            previous = current
            current = machine.apply_turn(current, "done", "[STEP_COMPLETE]").step
            assert STEP_ORDER.index(current) >= STEP_ORDER.index(previous)
        assert current == WizardStep.REVIEW

    def test_navigate_is_the_way_back(self):
        assert WizardStepMachine.navigate("team") == WizardStep.TEAM
        assert WizardStepMachine.navigate(WizardStep.SETUP) == WizardStep.SETUP

    def test_navigate_rejects_unknown_step(self):
        with pytest.raises(ValueError):
            WizardStepMachine.navigate("payroll")

    @pytest.mark.parametrize("utterance", [
        "We need no more than two hires, starting March",
        "I haven't done the numbers on the van yet",
        "Yes add another, the abandoned site needs a supervisor",
    ])
    def test_data_bearing_utterances_stay_on_step(self, utterance):
        machine = WizardStepMachine(ConservativeCompletionClassifier())
        outcome = machine.apply_turn(WizardStep.TEAM, utterance, "Noted. [STEP_COMPLETE]")

        assert outcome.step == WizardStep.TEAM
        assert outcome.step_complete is False

    @pytest.mark.parametrize("utterance", ["No, we're done", "no more hires thanks", "Thats it for now"])
    def test_plain_completions_still_advance(self, utterance):
        machine = WizardStepMachine(PhraseCompletionClassifier())
        assert machine.apply_turn(WizardStep.TEAM, utterance, "").step == WizardStep.COSTS
