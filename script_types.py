"""
Product variants of the wizard.
Each variant owns its ordered step list, the entry predicate of every step, and
which request builders and response shapes it uses. Add a new variant by
subclassing ProductVariant.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import prompt_builders
from llm_utils import LLMRequest, LLMRequestError
from script_schemas import SCRIPT_WITH_THUMBNAIL_SCHEMA, analysis_kind, find_schema_violations
from wizard_state import GeneratedArtifact, WizardState

STORY_GUIDE_PATH = Path(__file__).parent / "templates" / "story_writing_guide.md"


@dataclass(frozen=True)
class StepSpec:
    """One wizard step. `can_enter` must hold before the user may move onto it."""

    number: int
    key: str
    title: str
    can_enter: Callable[[WizardState], bool]


def _always(state: WizardState) -> bool:
    return True


def _has_analysis(state: WizardState) -> bool:
    return state.analysis_result is not None


def _has_selection(state: WizardState) -> bool:
    return (_has_analysis(state)
            and bool(state.inputs.selected_title.strip())
            and bool(state.inputs.selected_topic.strip()))


def _opening_approved(state: WizardState) -> bool:
    inputs = state.inputs
    return _has_selection(state) and inputs.opening_approved and bool(inputs.opening_30s.strip())


def _has_artifact(state: WizardState) -> bool:
    return state.generated_artifact is not None and bool(state.generated_artifact.script)


class ProductVariant(ABC):
    """Base class for wizard variants (instructional video, narrated story, ...)."""

    name: str = ""
    steps: list[StepSpec] = []

    @property
    def final_step(self) -> int:
        return len(self.steps)

    @property
    def generation_step(self) -> int:
        """The step whose action produces the final artifact."""
        return self.final_step - 1

    def step_spec(self, number: int) -> StepSpec:
        if not 1 <= number <= len(self.steps):
            raise IndexError(f"Step {number} is outside 1..{len(self.steps)}")
        return self.steps[number - 1]

    def can_enter(self, number: int, state: WizardState) -> bool:
        if not 1 <= number <= len(self.steps):
            return False
        return self.step_spec(number).can_enter(state)

    def is_consistent(self, state: WizardState) -> bool:
        """True when every step up to state.step has its entry predicate met."""
        if state.variant != self.name or not 1 <= state.step <= self.final_step:
            return False
        return all(self.can_enter(n, state) for n in range(1, state.step + 1))

    def analysis_kind(self, state: WizardState) -> str:
        return analysis_kind(self.name, with_image=bool(state.inputs.thumbnail_image))

    def build_analysis_request(self, state: WizardState) -> LLMRequest:
        inputs = state.inputs
        return prompt_builders.build_analysis_request(
            inputs.reference_script,
            kind=self.analysis_kind(state),
            image_data_uri=inputs.thumbnail_image,
            reference_title=inputs.reference_title,
        )

    def missing_for_generation(self, state: WizardState) -> list[str]:
        """Names of the inputs still needed before generation may start."""
        missing = []
        if state.analysis_result is None:
            missing.append("analysis")
        if not state.inputs.selected_title.strip():
            missing.append("title")
        if not state.inputs.selected_topic.strip():
            missing.append("topic")
        return missing

    @abstractmethod
    def build_generation_request(self, state: WizardState) -> LLMRequest:
        """Build the request that produces the final artifact."""
        pass

    @abstractmethod
    def parse_generation(self, payload: dict | str, source: str) -> GeneratedArtifact:
        """Turn the adapter's answer into a GeneratedArtifact or raise LLMRequestError."""
        pass


class InstructionalVariant(ProductVariant):
    """How-to videos: problem -> stepwise solution -> bonus tip, plus a thumbnail prompt."""

    name = "instructional"
    steps = [
        StepSpec(1, "reference", "Reference script", _always),
        StepSpec(2, "analysis", "Analysis report and settings", _has_analysis),
        StepSpec(3, "selection", "Pick a title and topic", _has_analysis),
        StepSpec(4, "persona", "Persona and rules", _has_selection),
        StepSpec(5, "result", "Finished script", _has_artifact),
    ]

    def build_generation_request(self, state: WizardState) -> LLMRequest:
        return prompt_builders.build_instructional_generation_request(state.inputs)

    def parse_generation(self, payload: dict | str, source: str) -> GeneratedArtifact:
        if not isinstance(payload, dict):
            raise LLMRequestError("Expected a JSON object with script and thumbnailPrompt")
        problems = find_schema_violations(payload, SCRIPT_WITH_THUMBNAIL_SCHEMA)
        if problems or not payload["script"].strip():
            raise LLMRequestError(f"Generation answer has invalid fields: {problems or ['script']}")
        return GeneratedArtifact(
            script=payload["script"].strip(),
            thumbnail_prompt=payload["thumbnailPrompt"].strip(),
            source=source,
        )


class StoryVariant(ProductVariant):
    """Narrated period drama: approved opening, named cast, seven-act script."""

    name = "story"
    steps = [
        StepSpec(1, "reference", "Reference script and thumbnail", _always),
        StepSpec(2, "analysis", "Analysis report and settings", _has_analysis),
        StepSpec(3, "selection", "Pick a title and topic", _has_analysis),
        StepSpec(4, "opening", "Opening drafts (0-30s, 0-2min)", _has_selection),
        StepSpec(5, "cast", "Length, characters and persona", _opening_approved),
        StepSpec(6, "result", "Finished script", _has_artifact),
    ]

    def __init__(self, guide_path: Path | str | None = None):
        self.guide_path = Path(guide_path) if guide_path is not None else STORY_GUIDE_PATH

    def load_guide(self) -> str | None:
        """Read the static writing guide spliced into every story generation request."""
        if not self.guide_path.exists():
            print(f"[GENERATION] [WARNING] Story guide not found at {self.guide_path}; continuing without it")
            return None
        return self.guide_path.read_text(encoding="utf-8")

    def missing_for_generation(self, state: WizardState) -> list[str]:
        missing = super().missing_for_generation(state)
        if not state.inputs.opening_approved:
            missing.append("approved opening")
        if not state.inputs.characters.is_complete():
            missing.append("protagonists")
        return missing

    def build_opening_request(self, state: WizardState) -> LLMRequest:
        return prompt_builders.build_opening_request(state.inputs, state.analysis_result)

    def build_generation_request(self, state: WizardState) -> LLMRequest:
        return prompt_builders.build_story_generation_request(
            state.inputs, state.analysis_result, guide_text=self.load_guide()
        )

    def parse_generation(self, payload: dict | str, source: str) -> GeneratedArtifact:
        if not isinstance(payload, str) or not payload.strip():
            raise LLMRequestError("Expected the story script as plain text")
        return GeneratedArtifact(script=payload.strip(), thumbnail_prompt=None, source=source)


VARIANTS = {
    InstructionalVariant.name: InstructionalVariant,
    StoryVariant.name: StoryVariant,
}


def get_variant(name: str) -> ProductVariant:
    try:
        return VARIANTS[name]()
    except KeyError:
        raise ValueError(f"Unknown product variant: {name}. Choose one of: {', '.join(VARIANTS)}") from None
