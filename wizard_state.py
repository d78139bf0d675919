"""
Wizard state: everything the user typed and everything the model answered.

WizardState is the unit of persistence. It round-trips through to_dict()/from_dict();
from_dict() raises on anything that does not look like a snapshot this code wrote,
and settings_store turns that into "no prior state".
"""
import uuid
from dataclasses import dataclass, field, asdict

from config import config
from llm_utils import split_data_uri

# Tone options
TONE_BENCHMARK = "benchmark"
TONE_LOGICAL = "logical"
TONE_CUSTOM = "custom"
TONE_LABELS = {
    TONE_BENCHMARK: "Keep the reference voice (benchmark)",
    TONE_LOGICAL: "Logical / informational emphasis",
    TONE_CUSTOM: "Custom (use my persona rules)",
}

# Where a result came from; demo payloads are never mistaken for model output
SOURCE_LLM = "llm"
SOURCE_FALLBACK = "fallback"

MAX_SUPPORTING_CHARACTERS = 4

PRESET_PERSONAS = [
    "history professor voice",
    "no slang or buzzwords",
    "strict historical accuracy",
    "include two famous quotes",
]


def _expect(value, kind, name: str):
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise TypeError(f"{name}: expected {kind}, got {type(value).__name__}")
    return value


def _expect_str_list(value, name: str) -> list[str]:
    _expect(value, list, name)
    for item in value:
        _expect(item, str, name)
    return list(value)


def _optional_str(value, name: str) -> str | None:
    return None if value is None else _expect(value, str, name)


def _optional_image_uri(value, name: str) -> str | None:
    """Accept only a base64 image data URI; split_data_uri raises ValueError otherwise."""
    value = _optional_str(value, name)
    if value is not None:
        split_data_uri(value)
    return value


@dataclass
class SeoKeywords:
    large: str
    medium: str
    small: str

    @classmethod
    def from_dict(cls, data: dict) -> "SeoKeywords":
        _expect(data, dict, "seo_keywords")
        return cls(
            large=_expect(data["large"], str, "large"),
            medium=_expect(data["medium"], str, "medium"),
            small=_expect(data["small"], str, "small"),
        )


@dataclass
class ThumbnailAnalysis:
    color_scheme: str
    text_layout: str
    visual_elements: str
    recommendations: str

    @classmethod
    def from_dict(cls, data: dict) -> "ThumbnailAnalysis":
        _expect(data, dict, "thumbnail_analysis")
        return cls(**{k: _expect(data[k], str, k) for k in
                      ("color_scheme", "text_layout", "visual_elements", "recommendations")})


@dataclass
class CoherenceCheck:
    title_thumbnail_match: str
    thumbnail_hook_match: str
    overall_synergy: str

    @classmethod
    def from_dict(cls, data: dict) -> "CoherenceCheck":
        _expect(data, dict, "coherence_check")
        return cls(**{k: _expect(data[k], str, k) for k in
                      ("title_thumbnail_match", "thumbnail_hook_match", "overall_synergy")})


@dataclass
class AnalysisResult:
    """Answer to the analysis request. `kind` names the response shape that was asked for."""

    kind: str
    hook_analysis: str
    structure_summary: str
    suggested_titles: list[str]
    suggested_topics: list[str]
    tone_style: str = ""
    cta_pattern: str = ""
    thumbnail_keywords: str = ""
    emotional_flow: str = ""
    viral_elements: list[str] = field(default_factory=list)
    seo_keywords: SeoKeywords | None = None
    thumbnail_analysis: ThumbnailAnalysis | None = None
    coherence_check: CoherenceCheck | None = None
    source: str = SOURCE_LLM

    @classmethod
    def from_llm_payload(cls, data: dict, kind: str, source: str = SOURCE_LLM) -> "AnalysisResult":
        """Build from the model's camelCase JSON (already checked against the kind's schema)."""
        seo = data.get("seoKeywords")
        thumb = data.get("thumbnailAnalysis")
        coherence = data.get("coherenceCheck")
        return cls(
            kind=kind,
            hook_analysis=data["hookAnalysis"],
            structure_summary=data["structureSummary"],
            suggested_titles=list(data["suggestedTitles"])[:3],
            suggested_topics=list(data["suggestedTopics"])[:3],
            tone_style=data.get("toneStyle") or "",
            cta_pattern=data.get("ctaPattern") or "",
            thumbnail_keywords=data.get("thumbnailKeywords") or "",
            emotional_flow=data.get("emotionalFlow") or "",
            viral_elements=list(data.get("viralElements") or []),
            seo_keywords=SeoKeywords(
                large=seo["large"],
                medium=seo["medium"],
                small=seo["small"],
            ) if seo else None,
            thumbnail_analysis=ThumbnailAnalysis(
                color_scheme=thumb["colorScheme"],
                text_layout=thumb["textLayout"],
                visual_elements=thumb["visualElements"],
                recommendations=thumb["recommendations"],
            ) if thumb else None,
            coherence_check=CoherenceCheck(
                title_thumbnail_match=coherence["titleThumbnailMatch"],
                thumbnail_hook_match=coherence["thumbnailHookMatch"],
                overall_synergy=coherence["overallSynergy"],
            ) if coherence else None,
            source=source,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "AnalysisResult":
        _expect(data, dict, "analysis_result")
        return cls(
            kind=_expect(data["kind"], str, "kind"),
            hook_analysis=_expect(data["hook_analysis"], str, "hook_analysis"),
            structure_summary=_expect(data["structure_summary"], str, "structure_summary"),
            suggested_titles=_expect_str_list(data["suggested_titles"], "suggested_titles"),
            suggested_topics=_expect_str_list(data["suggested_topics"], "suggested_topics"),
            tone_style=_expect(data["tone_style"], str, "tone_style"),
            cta_pattern=_expect(data["cta_pattern"], str, "cta_pattern"),
            thumbnail_keywords=_expect(data["thumbnail_keywords"], str, "thumbnail_keywords"),
            emotional_flow=_expect(data["emotional_flow"], str, "emotional_flow"),
            viral_elements=_expect_str_list(data["viral_elements"], "viral_elements"),
            seo_keywords=SeoKeywords.from_dict(data["seo_keywords"]) if data["seo_keywords"] is not None else None,
            thumbnail_analysis=(ThumbnailAnalysis.from_dict(data["thumbnail_analysis"])
                                if data["thumbnail_analysis"] is not None else None),
            coherence_check=(CoherenceCheck.from_dict(data["coherence_check"])
                             if data["coherence_check"] is not None else None),
            source=_expect(data["source"], str, "source"),
        )


@dataclass
class GeneratedArtifact:
    script: str
    thumbnail_prompt: str | None = None
    source: str = SOURCE_LLM

    @classmethod
    def from_dict(cls, data: dict) -> "GeneratedArtifact":
        _expect(data, dict, "generated_artifact")
        return cls(
            script=_expect(data["script"], str, "script"),
            thumbnail_prompt=_optional_str(data["thumbnail_prompt"], "thumbnail_prompt"),
            source=_expect(data["source"], str, "source"),
        )


@dataclass
class Characters:
    """Named cast for the story variant."""

    female_protagonist: str = ""
    male_protagonist: str = ""
    supporting: list[str] = field(default_factory=list)

    def is_complete(self) -> bool:
        return bool(self.female_protagonist.strip() and self.male_protagonist.strip())

    def names(self) -> list[str]:
        named = [self.female_protagonist, self.male_protagonist, *self.supporting]
        return [n.strip() for n in named if n and n.strip()]

    @classmethod
    def from_dict(cls, data: dict) -> "Characters":
        _expect(data, dict, "characters")
        supporting = _expect_str_list(data["supporting"], "supporting")
        if len(supporting) > MAX_SUPPORTING_CHARACTERS:
            raise ValueError(f"At most {MAX_SUPPORTING_CHARACTERS} supporting characters")
        return cls(
            female_protagonist=_expect(data["female_protagonist"], str, "female_protagonist"),
            male_protagonist=_expect(data["male_protagonist"], str, "male_protagonist"),
            supporting=supporting,
        )


@dataclass
class Inputs:
    reference_script: str = ""
    reference_title: str = ""
    thumbnail_image: str | None = None      # data URI
    selected_title: str = ""
    selected_topic: str = ""
    tone: str = TONE_BENCHMARK
    target_minutes: int = config.default_target_minutes
    persona: str = ""
    characters: Characters = field(default_factory=Characters)
    title_seo: SeoKeywords | None = None
    opening_30s: str = ""
    opening_2min: str = ""
    opening_approved: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "Inputs":
        _expect(data, dict, "inputs")
        tone = _expect(data["tone"], str, "tone")
        if tone not in TONE_LABELS:
            raise ValueError(f"Unknown tone: {tone}")
        return cls(
            reference_script=_expect(data["reference_script"], str, "reference_script"),
            reference_title=_expect(data["reference_title"], str, "reference_title"),
            thumbnail_image=_optional_image_uri(data["thumbnail_image"], "thumbnail_image"),
            selected_title=_expect(data["selected_title"], str, "selected_title"),
            selected_topic=_expect(data["selected_topic"], str, "selected_topic"),
            tone=tone,
            target_minutes=_expect(data["target_minutes"], int, "target_minutes"),
            persona=_expect(data["persona"], str, "persona"),
            characters=Characters.from_dict(data["characters"]),
            title_seo=SeoKeywords.from_dict(data["title_seo"]) if data["title_seo"] is not None else None,
            opening_30s=_expect(data["opening_30s"], str, "opening_30s"),
            opening_2min=_expect(data["opening_2min"], str, "opening_2min"),
            opening_approved=_expect(data["opening_approved"], bool, "opening_approved"),
        )


@dataclass
class WizardState:
    step: int = 1
    variant: str = "instructional"
    inputs: Inputs = field(default_factory=Inputs)
    analysis_result: AnalysisResult | None = None
    generated_artifact: GeneratedArtifact | None = None
    is_loading: bool = False
    error: str | None = None
    # Regenerated on reset; answers tagged with an older id are dropped
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "WizardState":
        """Rebuild a snapshot. Raises KeyError/TypeError/ValueError on malformed data."""
        _expect(data, dict, "state")
        step = _expect(data["step"], int, "step")
        if step < 1:
            raise ValueError(f"Invalid step: {step}")
        return cls(
            step=step,
            variant=_expect(data["variant"], str, "variant"),
            inputs=Inputs.from_dict(data["inputs"]),
            analysis_result=(AnalysisResult.from_dict(data["analysis_result"])
                             if data["analysis_result"] is not None else None),
            generated_artifact=(GeneratedArtifact.from_dict(data["generated_artifact"])
                                if data["generated_artifact"] is not None else None),
            is_loading=_expect(data["is_loading"], bool, "is_loading"),
            error=_optional_str(data["error"], "error"),
            session_id=_expect(data["session_id"], str, "session_id"),
        )


def default_state(variant: str = "instructional") -> WizardState:
    """Fresh state with documented defaults."""
    return WizardState(variant=variant)
