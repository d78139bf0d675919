"""
Modular prompt builders for reference analysis and script generation.
Each build_*_request function returns an llm_utils.LLMRequest; the get_*_prompt
helpers return the shared instruction fragments they are assembled from.
"""
from typing import Optional

from config import OUTPUT_LANGUAGE, config
from llm_utils import LLMRequest
from script_schemas import (
    ANALYSIS_INSTRUCTIONAL_THUMBNAIL,
    ANALYSIS_SCHEMAS,
    ANALYSIS_STORY,
    ANALYSIS_STORY_THUMBNAIL,
    OPENING_DRAFT_SCHEMA,
    SCRIPT_WITH_THUMBNAIL_SCHEMA,
    TITLE_SEO_SCHEMA,
)
from wizard_state import (
    AnalysisResult,
    Characters,
    Inputs,
    TONE_BENCHMARK,
    TONE_CUSTOM,
    TONE_LABELS,
    TONE_LOGICAL,
)

NO_TEXT_CONSTRAINT: str = """
CRITICAL: Do NOT include any text, words, letters, numbers, titles, labels, watermarks, or any written content in the image. The image must be completely text-free."""

# Share of the runtime each act takes in the seven-act story template
SEVEN_ACTS = [
    ("Act 1 - Hook", "Open on the most dangerous or shocking moment; who is in trouble and why it matters", 0.05),
    ("Act 2 - Background", "Who the people are, where and when we are, what they want", 0.10),
    ("Act 3 - Rising conflict", "The obstacle appears and grows; plant the secret that pays off later", 0.20),
    ("Act 4 - First turn", "A decision or discovery that changes the direction of the story", 0.15),
    ("Act 5 - Deepening crisis", "Everything goes wrong; the stakes become personal", 0.20),
    ("Act 6 - Climax and reversal", "The truth comes out; the planted secret pays off", 0.20),
    ("Act 7 - Resolution", "Consequences, reconciliation or justice, and the lesson the viewer keeps", 0.10),
]
# Where the two wisdom beats land, as a share of the runtime
WISDOM_BEAT_POSITIONS = (0.35, 0.70)


class ValidationError(ValueError):
    """Local input problem found before anything is sent to the model."""


class InputTooShortError(ValidationError):
    """Reference script is shorter than the minimum the analysis accepts."""


def truncate_reference(text: str, max_chars: int) -> str:
    """Bounded prefix of the reference text sent to the model."""
    return text[:max_chars]


def _mmss(seconds: float) -> str:
    seconds = int(round(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"


def get_language_rule(language: str = OUTPUT_LANGUAGE) -> str:
    return f"Write every answer in {language}. Be concrete and practical, never generic."


def get_hook_rule(seconds: int = config.hook_seconds) -> str:
    """The opening hook rule shared by every generation prompt."""
    return f"""HOOK RULE (CRITICAL):
- The first {seconds} seconds of narration must hook the viewer: name the danger or the payoff, call the viewer directly, and create urgency.
- Never open with greetings, channel introductions, or a summary of what the video will cover."""


def get_tone_instruction(tone: str, persona: str = "") -> str:
    """
    Resolve a tone option to its instruction fragment.

    Raises:
        ValidationError: unknown tone, or custom tone without persona text.
    """
    if tone == TONE_BENCHMARK:
        return ("TONE: Preserve the reference script's voice - its sentence length, pacing, "
                "way of addressing the viewer, and hook style.")
    if tone == TONE_LOGICAL:
        return ("TONE: Emphasize a logical, informational tone - clear cause and effect, "
                "numbered steps, concrete facts over emotion.")
    if tone == TONE_CUSTOM:
        if not persona.strip():
            raise ValidationError("Custom tone needs persona rules")
        return f"TONE: Use this custom persona exactly as described: {persona.strip()}"
    raise ValidationError(f"Unknown tone: {tone}. Choose one of: {', '.join(TONE_LABELS)}")


def get_analysis_fields_prompt(kind: str) -> str:
    """Numbered list of the fields the analysis answer must contain."""
    if kind in (ANALYSIS_STORY, ANALYSIS_STORY_THUMBNAIL):
        return """Analyze and return these fields:
1. hookAnalysis: how the first 0-30 seconds grab the viewer (danger or mystery shown, how the viewer is addressed, urgency)
2. structureSummary: overall story structure (acts, turning points, where secrets are planted and paid off, short/long sentence ratio)
3. toneStyle: narration register and speech style
4. emotionalFlow: how tension and release move through the story
5. viralElements: list of the elements that make this story shareable
6. ctaPattern: how the ending asks for subscriptions, comments, or the next episode
7. suggestedTitles: exactly 3 new titles in the same clickable style
8. suggestedTopics: exactly 3 new story topics that fit this structure
9. seoKeywords: large / medium / small keyword tiers, 4-6 comma separated keywords each"""
    return """Analyze and return these fields:
1. hookAnalysis: the hooking strategy of the first 0-30 seconds (what risk or gain is presented, how the viewer is called, urgency expressions)
2. structureSummary: overall structure (problem -> solution -> bonus pattern?, short/long sentence ratio, conclusion-example-twist structure)
3. toneStyle: speech characteristics (friendliness, expertise, reassurance phrases for older viewers)
4. ctaPattern: closing call-to-action pattern (subscribe prompt, comment prompt, next video teaser)
5. suggestedTitles: exactly 3 SEO-optimized titles using different formulas (risk warning, instant fix, hidden feature)
6. suggestedTopics: exactly 3 new topics that fit this style
7. thumbnailKeywords: the core thumbnail words (4-6 words, two lines)
8. seoKeywords: large / medium / small keyword tiers, 4-6 comma separated keywords each"""


def get_thumbnail_analysis_prompt() -> str:
    return """THUMBNAIL IMAGE ANALYSIS (an image is attached):
- thumbnailAnalysis: colorScheme, textLayout, visualElements, recommendations
- coherenceCheck: titleThumbnailMatch, thumbnailHookMatch, overallSynergy - how well the title, the thumbnail and the first 30 seconds promise the same thing"""


def build_analysis_request(
    script: str,
    kind: str,
    image_data_uri: Optional[str] = None,
    reference_title: str = "",
    max_chars: Optional[int] = None,
) -> LLMRequest:
    """
    Build the structural analysis request for a reference script.

    Raises:
        InputTooShortError: the reference is shorter than config.min_script_chars.
        ValidationError: an image-only kind without an image, or the reverse.
    """
    if len((script or "").strip()) < config.min_script_chars:
        raise InputTooShortError(
            f"Reference script must be at least {config.min_script_chars} characters"
        )
    if kind not in ANALYSIS_SCHEMAS:
        raise ValidationError(f"Unknown analysis kind: {kind}")
    wants_image = kind in (ANALYSIS_INSTRUCTIONAL_THUMBNAIL, ANALYSIS_STORY_THUMBNAIL)
    if wants_image != bool(image_data_uri):
        raise ValidationError(f"Analysis kind {kind} does not match the attached image")

    max_chars = max_chars or config.analysis_max_chars
    parts = [
        "Analyze the YouTube script below. Study its STRUCTURE and RHETORIC, not its subject, "
        "and return the result as JSON.",
        get_analysis_fields_prompt(kind),
    ]
    if wants_image:
        parts.append(get_thumbnail_analysis_prompt())
    if reference_title.strip():
        parts.append(f"Reference video title: {reference_title.strip()}")
    parts.append(f"Script:\n{truncate_reference(script, max_chars)}")
    parts.append(get_language_rule())
    return LLMRequest(
        label="analysis",
        prompt="\n\n".join(parts),
        image_data_uri=image_data_uri if wants_image else None,
        schema=ANALYSIS_SCHEMAS[kind],
    )


def get_instructional_structure_prompt() -> str:
    return """SCRIPT RULES:
- Benchmark the reference script's sentence structure, pace, and hook style, but write about the NEW topic.
- Structure: problem -> step-by-step solution -> bonus tip.
- Register: friendly but information-first, mostly short sentences, with reassurance phrases such as "Don't panic, this is easy to fix."
- Close with the reference script's call-to-action pattern."""


def get_thumbnail_prompt_rules() -> str:
    """Rules for the companion thumbnail prompt handed to an external image generator."""
    return f"""THUMBNAIL IMAGE PROMPT RULES:
- Text is added later in a separate editor, so describe visual elements ONLY.
- Name the subject (e.g. a phone settings screen, a magnified gear icon, a pointing finger, an arrow).
- Describe the composition and a solid background color field (yellow, red, green...).
- Be concrete: "Galaxy phone settings screen, gear icon enlarged, red warning mark in the corner".{NO_TEXT_CONSTRAINT}"""


def build_instructional_generation_request(inputs: Inputs, max_chars: Optional[int] = None) -> LLMRequest:
    """Build the script + thumbnail prompt request for the instructional variant."""
    max_chars = max_chars or config.reference_max_chars
    prompt = f"""Write a YouTube script and a thumbnail image prompt.

Topic: {inputs.selected_topic}
Title: {inputs.selected_title}
Target length: {inputs.target_minutes} minutes
{get_tone_instruction(inputs.tone, inputs.persona)}
Persona / rules: {inputs.persona.strip() or "none"}

{get_hook_rule()}

{get_instructional_structure_prompt()}

{get_thumbnail_prompt_rules()}

Reference script (STRUCTURE EXAMPLE ONLY - never copy its sentences or facts):
{truncate_reference(inputs.reference_script, max_chars)}

Return JSON:
{{
  "script": "the complete script",
  "thumbnailPrompt": "image prompt, visual elements only, no text"
}}

{get_language_rule()}"""
    return LLMRequest(label="generation", prompt=prompt, schema=SCRIPT_WITH_THUMBNAIL_SCHEMA)


def wisdom_beat_offsets(minutes: int) -> list[str]:
    """Timestamps (m:ss) at which the two wisdom beats are inserted."""
    total = config.clamp_minutes(minutes) * 60
    return [_mmss(total * share) for share in WISDOM_BEAT_POSITIONS]


def get_seven_act_template(minutes: int) -> str:
    """Seven-act template with start times and the two wisdom beats for a runtime."""
    total = config.clamp_minutes(minutes) * 60
    lines = ["SEVEN-ACT STRUCTURE (follow in order; start times are narrated time):"]
    start = 0.0
    for title, purpose, share in SEVEN_ACTS:
        lines.append(f"- [{_mmss(start)}] {title}: {purpose}")
        start += total * share
    first, second = wisdom_beat_offsets(minutes)
    lines.append(
        f"- WISDOM BEATS: at about {first} and again at about {second}, an elder or narrator "
        "delivers a short piece of old wisdom (a proverb or teaching) that comments on the story. "
        "Exactly two, no more."
    )
    return "\n".join(lines)


def get_period_register_prompt() -> str:
    return """NARRATION REGISTER (CRITICAL):
- Period-drama storytelling voice throughout.
- Dialogue uses archaic sentence-final forms (in Korean: -하오, -하옵니다, -이옵니다, -느니라, -하게).
- Modern diction is forbidden: no loanwords, slang, modern institutions, or modern measurements.
- Narration may be slightly more plain than dialogue, but never modern or casual."""


def get_characters_prompt(characters: Characters) -> str:
    lines = [
        "CHARACTERS (use these names, do not invent other main characters):",
        f"- Female protagonist: {characters.female_protagonist.strip()}",
        f"- Male protagonist: {characters.male_protagonist.strip()}",
    ]
    for i, name in enumerate(n for n in characters.supporting if n.strip()):
        lines.append(f"- Supporting {i + 1}: {name.strip()}")
    return "\n".join(lines)


def _analysis_summary(analysis: Optional[AnalysisResult]) -> str:
    if analysis is None:
        return ""
    parts = [
        f"Hook pattern of the reference: {analysis.hook_analysis}",
        f"Structure of the reference: {analysis.structure_summary}",
    ]
    if analysis.emotional_flow:
        parts.append(f"Emotional flow of the reference: {analysis.emotional_flow}")
    return "\n".join(parts)


def build_opening_request(
    inputs: Inputs, analysis: Optional[AnalysisResult], max_chars: Optional[int] = None
) -> LLMRequest:
    """Story variant: draft the 0-30 second and 0-2 minute openings for user approval."""
    max_chars = max_chars or config.opening_reference_max_chars
    prompt = f"""Draft the opening of a narrated period-drama YouTube story.

Title: {inputs.selected_title}
Topic: {inputs.selected_topic}
{_analysis_summary(analysis)}

{get_hook_rule()}

{get_period_register_prompt()}

Return JSON with two fields:
- opening30sec: narration for 0-30 seconds (the hook alone)
- opening2min: narration for 0-2 minutes, starting with the same hook and continuing into the setup

Reference script (STRUCTURE EXAMPLE ONLY - never copy its sentences):
{truncate_reference(inputs.reference_script, max_chars)}

{get_language_rule()}"""
    return LLMRequest(label="opening", prompt=prompt, schema=OPENING_DRAFT_SCHEMA)


def build_story_generation_request(
    inputs: Inputs,
    analysis: Optional[AnalysisResult],
    guide_text: Optional[str] = None,
    max_chars: Optional[int] = None,
) -> LLMRequest:
    """Story variant: full plain-text script continuing the approved opening."""
    max_chars = max_chars or config.reference_max_chars
    minutes = config.clamp_minutes(inputs.target_minutes)
    target_chars = config.target_chars(minutes)
    sections = [
        "Write the complete narration script of a period-drama YouTube story.",
        f"Title: {inputs.selected_title}\nTopic: {inputs.selected_topic}\n"
        f"Target length: {minutes} minutes, about {target_chars} characters in total",
        get_tone_instruction(inputs.tone, inputs.persona),
        f"Persona / rules: {inputs.persona.strip() or 'none'}",
        get_characters_prompt(inputs.characters),
        _analysis_summary(analysis),
        get_hook_rule(),
        get_seven_act_template(minutes),
        get_period_register_prompt(),
        "APPROVED OPENING (keep it word for word as the start of the script, then continue):\n"
        f"{inputs.opening_2min.strip() or inputs.opening_30s.strip()}",
    ]
    if guide_text and guide_text.strip():
        sections.append(f"WRITING GUIDE:\n{guide_text.strip()}")
    sections.append(
        "Reference script (STRUCTURE EXAMPLE ONLY - never copy its sentences or plot):\n"
        f"{truncate_reference(inputs.reference_script, max_chars)}"
    )
    sections.append("Return only the script text. No headings, no JSON, no commentary.")
    sections.append(get_language_rule())
    return LLMRequest(
        label="generation",
        prompt="\n\n".join(s for s in sections if s),
    )


def build_title_seo_request(title: str) -> LLMRequest:
    """Split a title's search keywords into large / medium / small tiers."""
    if not title.strip():
        raise ValidationError("Choose a title first")
    prompt = f"""Extract the SEO keywords of this YouTube title.

Title: "{title.strip()}"

KEYWORD TIERS:
- large: the highest-volume generic keywords (e.g. smartphone, Galaxy, settings)
- medium: topic or category keywords (e.g. security, scam, translation, AI features)
- small: long-tail, feature-specific keywords (e.g. lock screen, file transfer, live translation)

List 4-6 comma separated keywords per tier.

{get_language_rule()}"""
    return LLMRequest(label="title_seo", prompt=prompt, schema=TITLE_SEO_SCHEMA)


def add_preset_persona(persona: str, preset: str) -> str:
    """Append a preset rule to the persona text."""
    persona = persona.strip()
    return f"{persona}, {preset}" if persona else preset
