"""
Wizard state machine and request orchestration.

All state changes go through apply_update(), which merges the changes into a new
WizardState and writes it through to the settings store before returning.
LLM failures never escape an action: they end up in state.error (or, with the
demo fallback policy, as a result tagged SOURCE_FALLBACK). CredentialMissingError
does escape, before any state change, so the caller can ask for a key.
"""
from dataclasses import replace
from pathlib import Path
from typing import Callable

import demo_payloads
import llm_utils
import utils
from config import FALLBACK_POLICY, VARIANT, config
from llm_utils import CredentialMissingError, LLMRequest, LLMRequestError
from prompt_builders import ValidationError, add_preset_persona, build_title_seo_request
from script_schemas import ANALYSIS_SCHEMAS, OPENING_DRAFT_SCHEMA, TITLE_SEO_SCHEMA, find_schema_violations
from script_types import ProductVariant, StoryVariant, get_variant
from settings_store import SettingsStore
from wizard_state import (
    AnalysisResult,
    Characters,
    MAX_SUPPORTING_CHARACTERS,
    SOURCE_FALLBACK,
    SOURCE_LLM,
    SeoKeywords,
    TONE_LABELS,
    WizardState,
    default_state,
)

FALLBACK_NONE = "none"
FALLBACK_DEMO = "demo"

ANALYSIS_FAILED = "Analysis failed. Please try again."
GENERATION_FAILED = "Script generation failed. Please try again."
OPENING_FAILED = "Opening draft failed. Please try again."
TITLE_SEO_FAILED = "Title keyword analysis failed. Please try again."


class RequestInFlightError(Exception):
    """A request is already outstanding; a second one is refused."""


def _log(msg: str) -> None:
    print(f"[WIZARD] {msg}")


class Wizard:
    """Step-gated flow over one persisted WizardState."""

    def __init__(
        self,
        store: SettingsStore,
        variant: str | None = None,
        fallback_policy: str | None = None,
        request_fn: Callable[..., dict | str] | None = None,
        provider: str | None = None,
        model: str | None = None,
    ):
        self.store = store
        self.fallback_policy = (fallback_policy or FALLBACK_POLICY).lower()
        if self.fallback_policy not in (FALLBACK_NONE, FALLBACK_DEMO):
            raise ValueError(f"Fallback policy must be '{FALLBACK_NONE}' or '{FALLBACK_DEMO}'")
        self._request_fn = request_fn or llm_utils.request_llm
        self.provider = provider
        self.model = model
        self._in_flight: set[str] = set()

        loaded = store.load_state()
        name = variant or (loaded.variant if loaded is not None else VARIANT)
        self.variant: ProductVariant = get_variant(name)
        self.state = self._restore(loaded)

        self.has_credential = store.has_credential()
        self._unsubscribe = store.subscribe(self._on_credential_change)

    def _restore(self, loaded: WizardState | None) -> WizardState:
        if loaded is None:
            return default_state(self.variant.name)
        if loaded.is_loading:
            # The process that issued that request is gone; its answer never arrives
            loaded = replace(loaded, is_loading=False)
        if not self.variant.is_consistent(loaded):
            _log(f"Saved state does not fit the {self.variant.name} flow; starting fresh")
            return default_state(self.variant.name)
        return loaded

    def _on_credential_change(self, present: bool) -> None:
        self.has_credential = present

    def close(self) -> None:
        self._unsubscribe()

    # ---- state merge ----

    def apply_update(self, **changes) -> WizardState:
        """Merge top-level changes into a new state and write it through."""
        self.state = replace(self.state, **changes)
        self.store.save_state(self.state)
        return self.state

    def update_inputs(self, **changes) -> WizardState:
        return self.apply_update(inputs=replace(self.state.inputs, **changes))

    # ---- navigation ----

    @property
    def step_spec(self):
        return self.variant.step_spec(self.state.step)

    @property
    def is_final_step(self) -> bool:
        return self.state.step == self.variant.final_step

    def can_advance(self) -> bool:
        if self.is_final_step or self.state.is_loading:
            return False
        return self.variant.can_enter(self.state.step + 1, self.state)

    def advance(self) -> bool:
        """Move forward one step if the next step's entry predicate holds."""
        if not self.can_advance():
            return False
        self.apply_update(step=self.state.step + 1, error=None)
        return True

    def back(self) -> bool:
        if self.state.step <= 1:
            return False
        self.apply_update(step=self.state.step - 1, error=None)
        return True

    def reset(self, confirmed: bool = False) -> bool:
        """Replace the whole state with defaults. Requires an explicit confirmation."""
        if not confirmed:
            return False
        self.state = default_state(self.variant.name)
        self.store.save_state(self.state)
        _log("Wizard reset")
        return True

    # ---- step 1: reference input ----

    def set_reference_script(self, text: str) -> None:
        self.update_inputs(reference_script=text)

    def load_reference_file(self, path: str | Path) -> None:
        self.set_reference_script(utils.read_text_file(path))

    def set_reference_title(self, title: str) -> None:
        self.update_inputs(reference_title=title.strip())

    def attach_thumbnail(self, path: str | Path, mime_type: str | None = None) -> None:
        self.update_inputs(thumbnail_image=utils.encode_image_data_uri(path, mime_type))

    def remove_thumbnail(self) -> None:
        self.update_inputs(thumbnail_image=None)

    def can_analyze(self) -> bool:
        return (self.state.step == 1 and not self.state.is_loading
                and len(self.state.inputs.reference_script.strip()) >= config.min_script_chars)

    # ---- step 2: settings ----

    def set_tone(self, tone: str) -> None:
        if tone not in TONE_LABELS:
            raise ValidationError(f"Unknown tone: {tone}. Choose one of: {', '.join(TONE_LABELS)}")
        self.update_inputs(tone=tone)

    def set_target_minutes(self, minutes: int) -> None:
        if isinstance(minutes, bool) or not isinstance(minutes, int):
            raise ValidationError("Target length must be a whole number of minutes")
        if minutes not in config.target_length_range:
            raise ValidationError(
                f"Target length must be {config.min_target_minutes}-{config.max_target_minutes} minutes"
            )
        self.update_inputs(target_minutes=minutes)

    # ---- step 3: title and topic ----

    def _clear_opening(self) -> dict:
        return {"opening_30s": "", "opening_2min": "", "opening_approved": False}

    def select_title(self, title: str) -> None:
        """Pick a suggested title (by text) or type your own."""
        title = title.strip()
        if not title:
            raise ValidationError("Title must not be empty")
        changes = {"selected_title": title}
        if title != self.state.inputs.selected_title:
            changes.update(self._clear_opening(), title_seo=None)
        self.update_inputs(**changes)

    def select_topic(self, topic: str) -> None:
        topic = topic.strip()
        if not topic:
            raise ValidationError("Topic must not be empty")
        changes = {"selected_topic": topic}
        if topic != self.state.inputs.selected_topic:
            changes.update(self._clear_opening())
        self.update_inputs(**changes)

    def select_suggestion(self, kind: str, index: int) -> str:
        """Pick suggestion number `index` (1-based) of 'title' or 'topic'."""
        analysis = self.state.analysis_result
        if analysis is None:
            raise ValidationError("Analyze a reference script first")
        options = analysis.suggested_titles if kind == "title" else analysis.suggested_topics
        if not 1 <= index <= len(options):
            raise ValidationError(f"Choose a {kind} between 1 and {len(options)}")
        choice = options[index - 1]
        if kind == "title":
            self.select_title(choice)
        else:
            self.select_topic(choice)
        return choice

    # ---- persona and cast ----

    def set_persona(self, text: str) -> None:
        self.update_inputs(persona=text)

    def add_preset_persona(self, preset: str) -> None:
        self.update_inputs(persona=add_preset_persona(self.state.inputs.persona, preset))

    def set_characters(self, female: str, male: str, supporting: list[str] | None = None) -> None:
        supporting = [s.strip() for s in (supporting or []) if s and s.strip()]
        if len(supporting) > MAX_SUPPORTING_CHARACTERS:
            raise ValidationError(f"At most {MAX_SUPPORTING_CHARACTERS} supporting characters")
        self.update_inputs(characters=Characters(
            female_protagonist=female.strip(),
            male_protagonist=male.strip(),
            supporting=supporting,
        ))

    def approve_opening(self) -> None:
        if not self.state.inputs.opening_30s.strip():
            raise ValidationError("Generate an opening draft first")
        self.update_inputs(opening_approved=True)

    # ---- requests ----

    def _run_request(
        self,
        action: str,
        build: Callable[[], LLMRequest],
        handle: Callable[[dict | str, str], dict],
        failure_message: str,
        fallback: Callable[[], dict | str] | None = None,
    ) -> bool:
        """
        Issue one LLM request for `action` and merge its result.

        Order: refuse overlapping requests, require a credential, build the request
        (local validation), mark loading, call once, merge. Returns True when a
        result (model or fallback) was stored, False when the failure went to
        state.error or the answer belonged to a session that has since been reset.
        """
        if self.state.is_loading or action in self._in_flight:
            raise RequestInFlightError(f"A request is already running; {action} was not started")
        api_key = self.store.get_credential()
        if not api_key:
            raise CredentialMissingError("No API key stored")
        request = build()

        session = self.state.session_id
        self._in_flight.add(action)
        self.apply_update(is_loading=True, error=None)
        try:
            try:
                payload = self._request_fn(
                    request, api_key, provider=self.provider, model=self.model,
                    temperature=config.temperature,
                )
                changes = self._read_answer(action, handle, payload)
            except LLMRequestError as e:
                if self.fallback_policy == FALLBACK_DEMO and fallback is not None:
                    print(f"[FALLBACK] {action} failed ({e}); using the demo payload")
                    changes = handle(fallback(), SOURCE_FALLBACK)
                else:
                    print(f"[WARNING] {action} failed: {e}")
                    if self.state.session_id != session:
                        return False
                    self.apply_update(is_loading=False, error=failure_message)
                    return False
            if self.state.session_id != session:
                _log(f"Discarding {action} result: the wizard was reset while it ran")
                return False
            self.apply_update(is_loading=False, error=None, **changes)
            return True
        finally:
            self._in_flight.discard(action)
            # Anything other than LLMRequestError propagates; do not leave the flag set behind it
            if self.state.is_loading and self.state.session_id == session:
                self.apply_update(is_loading=False)

    @staticmethod
    def _read_answer(action: str, handle: Callable[[dict | str, str], dict], payload: dict | str) -> dict:
        """Run `handle` on a model answer; a shape it cannot read counts as a failed request."""
        try:
            return handle(payload, SOURCE_LLM)
        except (KeyError, TypeError, ValueError) as e:
            raise LLMRequestError(f"{action} answer could not be read: {type(e).__name__}: {e}") from e

    def analyze(self) -> bool:
        """Step 1 action: analyze the reference script (and thumbnail), then move to step 2."""
        if self.state.step != 1:
            raise ValidationError("Analysis starts from step 1")
        kind = self.variant.analysis_kind(self.state)

        def handle(payload, source):
            if not isinstance(payload, dict):
                raise LLMRequestError("Analysis answer is not a JSON object")
            problems = find_schema_violations(payload, ANALYSIS_SCHEMAS[kind])
            if problems:
                raise LLMRequestError(f"Analysis answer has missing or invalid fields: {problems}")
            result = AnalysisResult.from_llm_payload(payload, kind, source=source)
            _log(f"Analysis stored ({source}, {kind})")
            return {
                "analysis_result": result,
                "generated_artifact": None,
                "step": 2,
                "inputs": replace(
                    self.state.inputs,
                    selected_title="", selected_topic="", title_seo=None, **self._clear_opening(),
                ),
            }

        return self._run_request(
            "analysis",
            lambda: self.variant.build_analysis_request(self.state),
            handle,
            ANALYSIS_FAILED,
            fallback=lambda: demo_payloads.analysis_payload(kind),
        )

    def generate_opening(self) -> bool:
        """Story variant, opening step: draft the 0-30s and 0-2min openings."""
        if not isinstance(self.variant, StoryVariant):
            raise ValidationError("Opening drafts belong to the story variant")
        if self.step_spec.key != "opening":
            raise ValidationError("Opening drafts are written on the opening step")
        variant = self.variant

        def handle(payload, source):
            if not isinstance(payload, dict) or find_schema_violations(payload, OPENING_DRAFT_SCHEMA):
                raise LLMRequestError("Opening answer needs opening30sec and opening2min")
            return {"inputs": replace(
                self.state.inputs,
                opening_30s=payload["opening30sec"].strip(),
                opening_2min=payload["opening2min"].strip(),
                opening_approved=False,
            )}

        return self._run_request(
            "opening",
            lambda: variant.build_opening_request(self.state),
            handle,
            OPENING_FAILED,
            fallback=demo_payloads.opening_payload,
        )

    def can_generate(self) -> bool:
        return (self.state.step == self.variant.generation_step and not self.state.is_loading
                and not self.variant.missing_for_generation(self.state))

    def generate(self) -> bool:
        """Generation step action: write the final script and move to the last step."""
        if self.state.step != self.variant.generation_step:
            raise ValidationError(f"Generation starts from step {self.variant.generation_step}")
        missing = self.variant.missing_for_generation(self.state)
        if missing:
            raise ValidationError(f"Still needed before generation: {', '.join(missing)}")

        def handle(payload, source):
            artifact = self.variant.parse_generation(payload, source)
            _log(f"Script stored ({source}, {len(artifact.script)} chars)")
            return {"generated_artifact": artifact, "step": self.variant.final_step}

        return self._run_request(
            "generation",
            lambda: self.variant.build_generation_request(self.state),
            handle,
            GENERATION_FAILED,
            fallback=lambda: demo_payloads.generation_payload(self.variant.name),
        )

    def analyze_title_seo(self) -> bool:
        """Split the chosen title's keywords into large / medium / small tiers."""
        if self.state.analysis_result is None:
            raise ValidationError("Analyze a reference script first")

        def handle(payload, source):
            if not isinstance(payload, dict) or find_schema_violations(payload, TITLE_SEO_SCHEMA):
                raise LLMRequestError("Keyword answer needs large, medium and small")
            seo = SeoKeywords(large=payload["large"], medium=payload["medium"], small=payload["small"])
            return {"inputs": replace(self.state.inputs, title_seo=seo)}

        return self._run_request(
            "title_seo",
            lambda: build_title_seo_request(self.state.inputs.selected_title),
            handle,
            TITLE_SEO_FAILED,
            fallback=demo_payloads.title_seo_payload,
        )

    # ---- final step ----

    def export(self, output_path: str | Path | None = None) -> Path:
        artifact = self.state.generated_artifact
        if artifact is None:
            raise ValidationError("There is no generated script to export yet")
        return utils.export_script(artifact, output_path or utils.DEFAULT_EXPORT_NAME)

    def export_thumbnail_prompt(self, output_path: str | Path) -> Path:
        artifact = self.state.generated_artifact
        if artifact is None:
            raise ValidationError("There is no generated script to export yet")
        return utils.export_thumbnail_prompt(artifact, output_path)
