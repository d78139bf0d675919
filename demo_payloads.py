"""
Static example answers used only when SCRIPT_MATCH_FALLBACK=demo.
They keep the wizard walkable without a working key. Results built from these
are tagged SOURCE_FALLBACK so they are never mistaken for model output.
"""
import copy

from script_schemas import (
    ANALYSIS_INSTRUCTIONAL,
    ANALYSIS_INSTRUCTIONAL_THUMBNAIL,
    ANALYSIS_STORY,
    ANALYSIS_STORY_THUMBNAIL,
)

_SEO = {
    "large": "YouTube, video, content, tips",
    "medium": "production, editing, planning, marketing",
    "small": "thumbnail, script, SEO, views",
}

_THUMBNAIL = {
    "thumbnailAnalysis": {
        "colorScheme": "Yellow background with black type and one red accent",
        "textLayout": "Two lines, 4-6 words, largest word on the first line",
        "visualElements": "Close-up of a phone screen with an arrow on the key setting",
        "recommendations": "Enlarge the warning mark and drop the secondary icon",
    },
    "coherenceCheck": {
        "titleThumbnailMatch": "Both promise the same hidden setting",
        "thumbnailHookMatch": "The first line of the hook names the warning shown on the thumbnail",
        "overallSynergy": "Strong; the payoff arrives within 30 seconds",
    },
}

INSTRUCTIONAL_ANALYSIS = {
    "hookAnalysis": "Opens with a direct warning that one default setting leaks personal data, "
                    "calls the viewer by age group, and promises a fix in under a minute.",
    "structureSummary": "Problem -> three numbered steps -> bonus tip. Mostly short sentences, "
                        "each step ends with a reassurance line.",
    "toneStyle": "Friendly expert, patient, repeats key words for older viewers.",
    "ctaPattern": "Asks for a comment with the viewer's phone model, then teases the next video.",
    "suggestedTitles": [
        "Turn this off now: the phone setting that leaks your photos",
        "Fix it in 10 seconds: the hidden battery drain on every phone",
        "The secret button on your lock screen most people never use",
    ],
    "suggestedTopics": [
        "Stopping scam text messages before they arrive",
        "Making phone text larger without losing layout",
        "Backing up family photos automatically",
    ],
    "thumbnailKeywords": "Turn this off / right now",
    "seoKeywords": _SEO,
}

STORY_ANALYSIS = {
    "hookAnalysis": "Starts at the night the heroine is accused, before any background is given.",
    "structureSummary": "Seven acts with a planted secret in act 3 that pays off at the climax.",
    "toneStyle": "Period narration with archaic dialogue endings.",
    "emotionalFlow": "Injustice -> endurance -> reversal -> earned justice.",
    "viralElements": ["unjust accusation", "hidden identity", "elder's wisdom", "satisfying reversal"],
    "ctaPattern": "Asks viewers to guess the next story's twist in the comments.",
    "suggestedTitles": [
        "The servant girl who saved the minister's house",
        "The mother-in-law's secret ledger",
        "The scholar who refused the king's gold",
    ],
    "suggestedTopics": [
        "A falsely accused daughter-in-law clears her name",
        "A poor scholar repays a stranger's kindness",
        "A merchant's widow outwits a corrupt magistrate",
    ],
    "seoKeywords": _SEO,
}

ANALYSIS_PAYLOADS = {
    ANALYSIS_INSTRUCTIONAL: INSTRUCTIONAL_ANALYSIS,
    ANALYSIS_INSTRUCTIONAL_THUMBNAIL: {**INSTRUCTIONAL_ANALYSIS, **_THUMBNAIL},
    ANALYSIS_STORY: STORY_ANALYSIS,
    ANALYSIS_STORY_THUMBNAIL: {**STORY_ANALYSIS, **_THUMBNAIL},
}

INSTRUCTIONAL_SCRIPT = {
    "script": "[0-30s] Stop. If your phone still has this one setting on, strangers can see where "
              "your photos were taken. Don't panic, it takes ten seconds to fix.\n\n"
              "[Step 1] Open Settings...\n[Step 2] Tap Privacy...\n[Step 3] Turn off Location tags...\n\n"
              "[Bonus tip] Check your shared albums once a month.",
    "thumbnailPrompt": "Smartphone settings screen in close-up, gear icon enlarged, red warning mark "
                       "in the corner, solid yellow background",
}

STORY_SCRIPT = (
    "That night the lanterns of the minister's house burned late, and no one knew "
    "the servant girl held the ledger that would save them all..."
)

OPENING_DRAFT = {
    "opening30sec": "\"Seize her!\" The cry rang through the courtyard, and the girl did not lower her eyes.",
    "opening2min": "\"Seize her!\" The cry rang through the courtyard, and the girl did not lower her eyes. "
                   "Three days earlier, she had found the ledger hidden beneath the floor...",
}


def analysis_payload(kind: str) -> dict:
    return copy.deepcopy(ANALYSIS_PAYLOADS[kind])


def generation_payload(variant: str) -> dict | str:
    if variant == "story":
        return STORY_SCRIPT
    return copy.deepcopy(INSTRUCTIONAL_SCRIPT)


def opening_payload() -> dict:
    return copy.deepcopy(OPENING_DRAFT)


def title_seo_payload() -> dict:
    return copy.deepcopy(_SEO)
