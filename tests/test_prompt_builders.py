"""
Unit tests for prompt_builders.py functions.
"""

import unittest
import sys
from pathlib import Path

# Add parent directory to path so we can import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

import prompt_builders
from prompt_builders import InputTooShortError, ValidationError
from script_schemas import (
    ANALYSIS_INSTRUCTIONAL,
    ANALYSIS_INSTRUCTIONAL_THUMBNAIL,
    ANALYSIS_SCHEMAS,
    ANALYSIS_STORY,
    OPENING_DRAFT_SCHEMA,
    SCRIPT_WITH_THUMBNAIL_SCHEMA,
)
from wizard_state import AnalysisResult, Characters, Inputs, TONE_BENCHMARK, TONE_CUSTOM, TONE_LOGICAL

PNG_URI = "data:image/png;base64,iVBORw0KGgo="


def _inputs(**overrides) -> Inputs:
    values = dict(
        reference_script="REF " * 1000,
        selected_title="Turn this off now",
        selected_topic="Scam text messages",
        tone=TONE_BENCHMARK,
        target_minutes=5,
        persona="friendly, short sentences",
    )
    values.update(overrides)
    return Inputs(**values)


class TestAnalysisRequest(unittest.TestCase):
    """Test cases for build_analysis_request."""

    def test_nine_characters_rejected(self):
        with self.assertRaises(InputTooShortError):
            prompt_builders.build_analysis_request("a" * 9, kind=ANALYSIS_INSTRUCTIONAL)

    def test_ten_characters_accepted(self):
        request = prompt_builders.build_analysis_request("a" * 10, kind=ANALYSIS_INSTRUCTIONAL)
        self.assertIn("a" * 10, request.prompt)

    def test_whitespace_does_not_count(self):
        with self.assertRaises(InputTooShortError):
            prompt_builders.build_analysis_request("   abc    \n\n   ", kind=ANALYSIS_INSTRUCTIONAL)

    def test_reference_is_truncated(self):
        script = "x" * 3000 + "TAIL_MARKER"
        request = prompt_builders.build_analysis_request(script, kind=ANALYSIS_INSTRUCTIONAL)
        self.assertNotIn("TAIL_MARKER", request.prompt)

    def test_schema_matches_kind(self):
        request = prompt_builders.build_analysis_request("a" * 20, kind=ANALYSIS_STORY)
        self.assertIs(request.schema, ANALYSIS_SCHEMAS[ANALYSIS_STORY])
        self.assertEqual(request.label, "analysis")
        self.assertIsNone(request.image_data_uri)

    def test_thumbnail_kind_attaches_image(self):
        request = prompt_builders.build_analysis_request(
            "a" * 20, kind=ANALYSIS_INSTRUCTIONAL_THUMBNAIL, image_data_uri=PNG_URI
        )
        self.assertEqual(request.image_data_uri, PNG_URI)
        self.assertIn("thumbnailAnalysis", request.prompt)
        self.assertIn("coherenceCheck", request.prompt)

    def test_kind_and_image_must_agree(self):
        with self.assertRaises(ValidationError):
            prompt_builders.build_analysis_request("a" * 20, kind=ANALYSIS_INSTRUCTIONAL, image_data_uri=PNG_URI)
        with self.assertRaises(ValidationError):
            prompt_builders.build_analysis_request("a" * 20, kind=ANALYSIS_INSTRUCTIONAL_THUMBNAIL)

    def test_reference_title_included(self):
        request = prompt_builders.build_analysis_request(
            "a" * 20, kind=ANALYSIS_STORY, reference_title="The minister's ledger"
        )
        self.assertIn("The minister's ledger", request.prompt)


class TestToneInstruction(unittest.TestCase):

    def test_three_fragments_differ(self):
        benchmark = prompt_builders.get_tone_instruction(TONE_BENCHMARK)
        logical = prompt_builders.get_tone_instruction(TONE_LOGICAL)
        custom = prompt_builders.get_tone_instruction(TONE_CUSTOM, "grumpy grandpa")
        self.assertIn("reference", benchmark.lower())
        self.assertIn("logical", logical.lower())
        self.assertIn("grumpy grandpa", custom)

    def test_custom_without_persona(self):
        with self.assertRaises(ValidationError):
            prompt_builders.get_tone_instruction(TONE_CUSTOM, "  ")

    def test_unknown_tone(self):
        with self.assertRaises(ValidationError):
            prompt_builders.get_tone_instruction("shouty")


class TestInstructionalGenerationRequest(unittest.TestCase):

    def test_contents(self):
        request = prompt_builders.build_instructional_generation_request(_inputs())
        self.assertIs(request.schema, SCRIPT_WITH_THUMBNAIL_SCHEMA)
        self.assertIn("Turn this off now", request.prompt)
        self.assertIn("Scam text messages", request.prompt)
        self.assertIn("5 minutes", request.prompt)
        self.assertIn("problem -> step-by-step solution -> bonus tip", request.prompt)
        self.assertIn("30 seconds", request.prompt)
        self.assertIn("text-free", request.prompt)
        self.assertIn("STRUCTURE EXAMPLE ONLY", request.prompt)

    def test_reference_truncated_to_exemplar_length(self):
        inputs = _inputs(reference_script="r" * 1500 + "TAIL_MARKER")
        request = prompt_builders.build_instructional_generation_request(inputs)
        self.assertNotIn("TAIL_MARKER", request.prompt)


class TestSevenActTemplate(unittest.TestCase):

    def test_seven_acts_and_two_wisdom_beats(self):
        template = prompt_builders.get_seven_act_template(10)
        self.assertEqual(template.count("- ["), 7)
        self.assertIn("Act 7", template)
        self.assertIn("Exactly two", template)

    def test_wisdom_beat_offsets(self):
        self.assertEqual(prompt_builders.wisdom_beat_offsets(10), ["3:30", "7:00"])
        self.assertEqual(prompt_builders.wisdom_beat_offsets(1), ["0:21", "0:42"])

    def test_act_shares_sum_to_one(self):
        self.assertAlmostEqual(sum(share for _, _, share in prompt_builders.SEVEN_ACTS), 1.0)


class TestStoryRequests(unittest.TestCase):

    def setUp(self):
        self.analysis = AnalysisResult(
            kind=ANALYSIS_STORY,
            hook_analysis="Opens on the accusation",
            structure_summary="Seven acts",
            suggested_titles=["a", "b", "c"],
            suggested_topics=["d", "e", "f"],
            emotional_flow="injustice to justice",
        )
        self.inputs = _inputs(
            target_minutes=12,
            characters=Characters("Seol", "Do-hyun", ["Madam Han"]),
            opening_30s="\"Seize her!\"",
            opening_2min="\"Seize her!\" The cry rang through the courtyard.",
            opening_approved=True,
        )

    def test_opening_request(self):
        request = prompt_builders.build_opening_request(self.inputs, self.analysis)
        self.assertIs(request.schema, OPENING_DRAFT_SCHEMA)
        self.assertIn("Opens on the accusation", request.prompt)
        self.assertIn("archaic", request.prompt)

    def test_generation_request(self):
        request = prompt_builders.build_story_generation_request(
            self.inputs, self.analysis, guide_text="GUIDE_MARKER"
        )
        self.assertIsNone(request.schema)
        self.assertFalse(request.structured)
        self.assertIn("3000 characters", request.prompt)
        self.assertIn("Seol", request.prompt)
        self.assertIn("Madam Han", request.prompt)
        self.assertIn("The cry rang through the courtyard", request.prompt)
        self.assertIn("GUIDE_MARKER", request.prompt)
        self.assertIn("Modern diction is forbidden", request.prompt)
        self.assertIn("SEVEN-ACT STRUCTURE", request.prompt)

    def test_generation_without_guide(self):
        request = prompt_builders.build_story_generation_request(self.inputs, self.analysis)
        self.assertNotIn("WRITING GUIDE", request.prompt)


class TestTitleSeoRequest(unittest.TestCase):

    def test_title_in_prompt(self):
        request = prompt_builders.build_title_seo_request("Turn this off now")
        self.assertIn('"Turn this off now"', request.prompt)
        self.assertEqual(request.label, "title_seo")

    def test_empty_title(self):
        with self.assertRaises(ValidationError):
            prompt_builders.build_title_seo_request(" ")


class TestAddPresetPersona(unittest.TestCase):

    def test_sets_when_empty(self):
        self.assertEqual(prompt_builders.add_preset_persona("", "no slang"), "no slang")

    def test_appends_with_comma(self):
        self.assertEqual(prompt_builders.add_preset_persona("calm", "no slang"), "calm, no slang")


if __name__ == "__main__":
    unittest.main()
