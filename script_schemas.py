"""
JSON schemas for the structured answers the wizard asks for.
Pass these to llm_utils.request_llm via LLMRequest(schema=...) for structured output.

Each analysis kind is one explicit response shape. The request builder and the
decoder look up the same kind, so a response is checked against exactly the
fields that were asked for.
"""

# Analysis kinds (one per product variant, with or without a thumbnail image)
ANALYSIS_INSTRUCTIONAL = "instructional"
ANALYSIS_INSTRUCTIONAL_THUMBNAIL = "instructional_thumbnail"
ANALYSIS_STORY = "story"
ANALYSIS_STORY_THUMBNAIL = "story_thumbnail"

_STRING = {"type": "string"}

SEO_KEYWORDS_SCHEMA = {
    "type": "object",
    "title": "seo_keywords",
    "properties": {
        "large": {"type": "string", "description": "4-6 high-volume generic keywords, comma separated"},
        "medium": {"type": "string", "description": "4-6 category/topic keywords, comma separated"},
        "small": {"type": "string", "description": "4-6 long-tail, feature-specific keywords, comma separated"},
    },
    "required": ["large", "medium", "small"],
}

_THUMBNAIL_ANALYSIS = {
    "type": "object",
    "properties": {
        "colorScheme": _STRING,
        "textLayout": _STRING,
        "visualElements": _STRING,
        "recommendations": _STRING,
    },
    "required": ["colorScheme", "textLayout", "visualElements", "recommendations"],
}

_COHERENCE_CHECK = {
    "type": "object",
    "properties": {
        "titleThumbnailMatch": _STRING,
        "thumbnailHookMatch": _STRING,
        "overallSynergy": _STRING,
    },
    "required": ["titleThumbnailMatch", "thumbnailHookMatch", "overallSynergy"],
}

_THREE_STRINGS = {"type": "array", "items": _STRING, "minItems": 3, "maxItems": 3}

# --- Instructional variant: problem -> stepwise solution -> bonus tip videos ---
INSTRUCTIONAL_ANALYSIS_SCHEMA = {
    "type": "object",
    "title": "instructional_analysis",
    "properties": {
        "hookAnalysis": {"type": "string", "description": "How the first 30 seconds hook the viewer"},
        "structureSummary": {"type": "string", "description": "Overall structure and sentence rhythm"},
        "toneStyle": _STRING,
        "ctaPattern": _STRING,
        "suggestedTitles": {**_THREE_STRINGS, "description": "Exactly 3 SEO-optimized titles"},
        "suggestedTopics": {**_THREE_STRINGS, "description": "Exactly 3 new topics that fit this style"},
        "thumbnailKeywords": {"type": "string", "description": "4-6 words for a two-line thumbnail"},
        "seoKeywords": {k: v for k, v in SEO_KEYWORDS_SCHEMA.items() if k != "title"},
    },
    "required": [
        "hookAnalysis", "structureSummary", "toneStyle", "ctaPattern",
        "suggestedTitles", "suggestedTopics", "thumbnailKeywords", "seoKeywords",
    ],
}

# --- Story variant: narrated drama with a viral-pattern breakdown ---
STORY_ANALYSIS_SCHEMA = {
    "type": "object",
    "title": "story_analysis",
    "properties": {
        "hookAnalysis": _STRING,
        "structureSummary": _STRING,
        "toneStyle": _STRING,
        "emotionalFlow": {"type": "string", "description": "How tension and release move through the story"},
        "viralElements": {"type": "array", "items": _STRING},
        "ctaPattern": _STRING,
        "suggestedTitles": _THREE_STRINGS,
        "suggestedTopics": _THREE_STRINGS,
        "seoKeywords": {k: v for k, v in SEO_KEYWORDS_SCHEMA.items() if k != "title"},
    },
    "required": [
        "hookAnalysis", "structureSummary", "toneStyle", "emotionalFlow", "viralElements",
        "ctaPattern", "suggestedTitles", "suggestedTopics", "seoKeywords",
    ],
}


def _with_thumbnail(schema: dict, title: str) -> dict:
    """Extend an analysis schema with the image-only fields."""
    return {
        **schema,
        "title": title,
        "properties": {
            **schema["properties"],
            "thumbnailAnalysis": _THUMBNAIL_ANALYSIS,
            "coherenceCheck": _COHERENCE_CHECK,
        },
        "required": [*schema["required"], "thumbnailAnalysis", "coherenceCheck"],
    }


INSTRUCTIONAL_THUMBNAIL_ANALYSIS_SCHEMA = _with_thumbnail(
    INSTRUCTIONAL_ANALYSIS_SCHEMA, "instructional_thumbnail_analysis"
)
STORY_THUMBNAIL_ANALYSIS_SCHEMA = _with_thumbnail(STORY_ANALYSIS_SCHEMA, "story_thumbnail_analysis")

ANALYSIS_SCHEMAS = {
    ANALYSIS_INSTRUCTIONAL: INSTRUCTIONAL_ANALYSIS_SCHEMA,
    ANALYSIS_INSTRUCTIONAL_THUMBNAIL: INSTRUCTIONAL_THUMBNAIL_ANALYSIS_SCHEMA,
    ANALYSIS_STORY: STORY_ANALYSIS_SCHEMA,
    ANALYSIS_STORY_THUMBNAIL: STORY_THUMBNAIL_ANALYSIS_SCHEMA,
}

# --- Instructional generation: script plus a text-free thumbnail image prompt ---
SCRIPT_WITH_THUMBNAIL_SCHEMA = {
    "type": "object",
    "title": "script_with_thumbnail",
    "properties": {
        "script": {"type": "string", "description": "The complete script"},
        "thumbnailPrompt": {
            "type": "string",
            "description": "Purely visual image prompt (subject, composition, background color). No text.",
        },
    },
    "required": ["script", "thumbnailPrompt"],
}

# --- Story variant: opening drafts the user approves before the full script ---
OPENING_DRAFT_SCHEMA = {
    "type": "object",
    "title": "opening_draft",
    "properties": {
        "opening30sec": {"type": "string", "description": "Narration for 0-30 seconds"},
        "opening2min": {"type": "string", "description": "Narration for 0-2 minutes, continuing the 30 second hook"},
    },
    "required": ["opening30sec", "opening2min"],
}

TITLE_SEO_SCHEMA = SEO_KEYWORDS_SCHEMA


def analysis_kind(variant: str, with_image: bool) -> str:
    """Return the analysis kind for a product variant."""
    if variant == "story":
        return ANALYSIS_STORY_THUMBNAIL if with_image else ANALYSIS_STORY
    if variant == "instructional":
        return ANALYSIS_INSTRUCTIONAL_THUMBNAIL if with_image else ANALYSIS_INSTRUCTIONAL
    raise ValueError(f"Unknown product variant: {variant}")


def _type_ok(value, spec: dict) -> bool:
    expected = spec.get("type")
    if expected == "string":
        return isinstance(value, str)
    if expected == "array":
        if not isinstance(value, list):
            return False
        item_spec = spec.get("items", {})
        if not all(_type_ok(v, item_spec) for v in value):
            return False
        if "minItems" in spec and len(value) < spec["minItems"]:
            return False
        return True
    if expected == "object":
        return isinstance(value, dict) and not find_schema_violations(value, spec)
    return True


def find_schema_violations(data: dict, schema: dict) -> list[str]:
    """
    Check a decoded answer against the required fields of a schema.

    Only what the wizard relies on is checked: required keys present and of the
    declared type (string, string array, nested object of strings). Extra keys
    are ignored. Returns a list of field names that failed; empty when valid.
    """
    problems = []
    properties = schema.get("properties", {})
    for name in schema.get("required", []):
        if name not in data or data[name] is None:
            problems.append(name)
            continue
        if not _type_ok(data[name], properties.get(name, {})):
            problems.append(name)
    return problems
