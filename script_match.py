"""
Command line wizard: re-purpose a reference video script into a new script on a new topic.

Every sub-command is one user gesture. State is saved after each one, so the
wizard can be continued across runs.
"""
import argparse
import getpass
import os
import sys

import llm_utils
from config import SCRIPT_MATCH_HOME, config
from llm_utils import CredentialMissingError
from prompt_builders import ValidationError, wisdom_beat_offsets
from settings_store import SettingsStore
from wizard import FALLBACK_DEMO, FALLBACK_NONE, RequestInFlightError, Wizard
from wizard_state import PRESET_PERSONAS, SOURCE_FALLBACK, TONE_LABELS

ENV_KEY_NAMES = ("GEMINI_API_KEY", "GOOGLE_API_KEY", "OPENAI_API_KEY")


# ------------- VIEW -------------

def print_status(wizard: Wizard) -> None:
    state = wizard.state
    spec = wizard.step_spec
    inputs = state.inputs
    print(f"[STATUS] Variant: {wizard.variant.name} | Model: {llm_utils.get_text_model_display(wizard.provider)}")
    print(f"[STATUS] API key: {'set' if wizard.has_credential else 'NOT SET (run: key set)'}")
    print(f"[STATUS] Step {state.step}/{wizard.variant.final_step}: {spec.title}")
    if state.is_loading:
        print("[STATUS] A request is running...")
    if state.error:
        print(f"[ERROR] {state.error}")

    if spec.key == "reference":
        print(f"  Reference script: {len(inputs.reference_script)} chars"
              f" (minimum {config.min_script_chars})")
        if inputs.reference_title:
            print(f"  Reference title: {inputs.reference_title}")
        print(f"  Thumbnail: {'attached' if inputs.thumbnail_image else 'none'}")
        print(f"  Ready to analyze: {'yes' if wizard.can_analyze() else 'no'}")

    analysis = state.analysis_result
    if analysis is not None and spec.key in ("analysis", "selection"):
        marker = " [DEMO DATA]" if analysis.source == SOURCE_FALLBACK else ""
        print(f"  Analysis report{marker}:")
        print(f"    Hook: {analysis.hook_analysis}")
        print(f"    Structure: {analysis.structure_summary}")
        if analysis.tone_style:
            print(f"    Tone: {analysis.tone_style}")
        if analysis.emotional_flow:
            print(f"    Emotional flow: {analysis.emotional_flow}")
        if analysis.thumbnail_analysis is not None:
            print(f"    Thumbnail: {analysis.thumbnail_analysis.recommendations}")
        if analysis.coherence_check is not None:
            print(f"    Coherence: {analysis.coherence_check.overall_synergy}")
        if analysis.seo_keywords is not None:
            print(f"    SEO: large={analysis.seo_keywords.large} | medium={analysis.seo_keywords.medium}"
                  f" | small={analysis.seo_keywords.small}")
        print(f"  Tone: {TONE_LABELS[inputs.tone]} | Length: {inputs.target_minutes} min")

    if analysis is not None and spec.key == "selection":
        for i, title in enumerate(analysis.suggested_titles, 1):
            mark = "*" if title == inputs.selected_title else " "
            print(f"  {mark} title {i}: {title}")
        for i, topic in enumerate(analysis.suggested_topics, 1):
            mark = "*" if topic == inputs.selected_topic else " "
            print(f"  {mark} topic {i}: {topic}")
        if inputs.title_seo is not None:
            print(f"  Title keywords: {inputs.title_seo.large} / {inputs.title_seo.medium} / {inputs.title_seo.small}")

    if spec.key == "opening":
        print(f"  Title: {inputs.selected_title} | Topic: {inputs.selected_topic}")
        if inputs.opening_30s:
            print(f"  0-30s:\n{inputs.opening_30s}\n  0-2min:\n{inputs.opening_2min}")
            print(f"  Approved: {'yes' if inputs.opening_approved else 'no (run: approve)'}")

    if spec.key in ("persona", "cast"):
        print(f"  Persona: {inputs.persona or '(none)'}")
        for i, preset in enumerate(PRESET_PERSONAS, 1):
            print(f"    preset {i}: {preset}")
        if spec.key == "cast":
            names = inputs.characters.names()
            print(f"  Characters: {', '.join(names) if names else '(none)'}")
            print(f"  Length: {inputs.target_minutes} min, about {config.target_chars(inputs.target_minutes)} chars;"
                  f" wisdom beats at {' and '.join(wisdom_beat_offsets(inputs.target_minutes))}")
        print(f"  Ready to generate: {'yes' if wizard.can_generate() else 'no'}")

    artifact = state.generated_artifact
    if artifact is not None and spec.key == "result":
        if artifact.source == SOURCE_FALLBACK:
            print("  [DEMO DATA] This script is the built-in example, not a model answer.")
        print(artifact.script)
        if artifact.thumbnail_prompt:
            print(f"\n  Thumbnail prompt: {artifact.thumbnail_prompt}")


# ------------- COMMANDS -------------

def cmd_status(wizard: Wizard, args) -> int:
    print_status(wizard)
    return 0


def cmd_key(wizard: Wizard, args) -> int:
    if args.action == "clear":
        wizard.store.clear_credential()
        return 0
    if args.action == "status":
        print(f"[KEY] {'set' if wizard.has_credential else 'not set'}")
        return 0
    value = args.value
    if args.from_env:
        value = next((os.getenv(name) for name in ENV_KEY_NAMES if os.getenv(name)), None)
        if not value:
            print(f"[ERROR] None of {', '.join(ENV_KEY_NAMES)} is set")
            return 2
    if not value:
        value = getpass.getpass("API key: ")
    wizard.store.set_credential(value)
    return 0


def cmd_input(wizard: Wizard, args) -> int:
    if args.file:
        wizard.load_reference_file(args.file)
    elif args.text is not None:
        wizard.set_reference_script(args.text)
    if args.title is not None:
        wizard.set_reference_title(args.title)
    if args.no_thumbnail:
        wizard.remove_thumbnail()
    elif args.thumbnail:
        wizard.attach_thumbnail(args.thumbnail)
    print_status(wizard)
    return 0


def cmd_analyze(wizard: Wizard, args) -> int:
    print("[ANALYSIS] Analyzing the reference script...")
    ok = wizard.analyze()
    print_status(wizard)
    return 0 if ok else 1


def cmd_settings(wizard: Wizard, args) -> int:
    if args.tone:
        wizard.set_tone(args.tone)
    if args.length is not None:
        wizard.set_target_minutes(args.length)
    print_status(wizard)
    return 0


def cmd_select(wizard: Wizard, args) -> int:
    if args.title_index is not None:
        wizard.select_suggestion("title", args.title_index)
    elif args.title:
        wizard.select_title(args.title)
    if args.topic_index is not None:
        wizard.select_suggestion("topic", args.topic_index)
    elif args.topic:
        wizard.select_topic(args.topic)
    print_status(wizard)
    return 0


def cmd_seo(wizard: Wizard, args) -> int:
    ok = wizard.analyze_title_seo()
    print_status(wizard)
    return 0 if ok else 1


def cmd_opening(wizard: Wizard, args) -> int:
    print("[GENERATION] Drafting the opening...")
    ok = wizard.generate_opening()
    print_status(wizard)
    return 0 if ok else 1


def cmd_approve(wizard: Wizard, args) -> int:
    wizard.approve_opening()
    print_status(wizard)
    return 0


def cmd_persona(wizard: Wizard, args) -> int:
    if args.text is not None:
        wizard.set_persona(args.text)
    for index in args.preset or []:
        if not 1 <= index <= len(PRESET_PERSONAS):
            raise ValidationError(f"Preset must be between 1 and {len(PRESET_PERSONAS)}")
        wizard.add_preset_persona(PRESET_PERSONAS[index - 1])
    print_status(wizard)
    return 0


def cmd_cast(wizard: Wizard, args) -> int:
    wizard.set_characters(args.female, args.male, args.supporting)
    if args.length is not None:
        wizard.set_target_minutes(args.length)
    print_status(wizard)
    return 0


def cmd_next(wizard: Wizard, args) -> int:
    if not wizard.advance():
        print("[WIZARD] This step is not complete yet")
        print_status(wizard)
        return 1
    print_status(wizard)
    return 0


def cmd_back(wizard: Wizard, args) -> int:
    wizard.back()
    print_status(wizard)
    return 0


def cmd_generate(wizard: Wizard, args) -> int:
    print("[GENERATION] Writing the script...")
    ok = wizard.generate()
    print_status(wizard)
    return 0 if ok else 1


def cmd_export(wizard: Wizard, args) -> int:
    path = wizard.export(args.output)
    print(f"[EXPORT] Script written to {path}")
    if args.thumbnail_prompt:
        path = wizard.export_thumbnail_prompt(args.thumbnail_prompt)
        print(f"[EXPORT] Thumbnail prompt written to {path}")
    return 0


def cmd_reset(wizard: Wizard, args) -> int:
    confirmed = args.yes
    if not confirmed:
        answer = input("Clear everything and start over? [y/N] ")
        confirmed = answer.strip().lower() in ("y", "yes")
    if not wizard.reset(confirmed=confirmed):
        print("[WIZARD] Reset cancelled")
        return 1
    print_status(wizard)
    return 0


def prompt_for_credential(store: SettingsStore) -> None:
    """Route a missing-key failure to key entry. The user re-runs the action afterwards."""
    print("[KEY] No API key is stored.")
    if not sys.stdin.isatty():
        print("[KEY] Run: python script_match.py key set")
        return
    value = getpass.getpass("API key (leave empty to skip): ")
    if value.strip():
        store.set_credential(value)
        print("[KEY] Saved. Run the command again.")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Re-purpose a reference video script into a new script on a new topic",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Store the API key once
  python script_match.py key set

  # Instructional flow
  python script_match.py input --file reference.txt
  python script_match.py analyze
  python script_match.py settings --tone logical --length 7
  python script_match.py next
  python script_match.py select --title-index 1 --topic-index 2
  python script_match.py next
  python script_match.py persona --preset 2 --text "explain it for a ten-year-old"
  python script_match.py generate
  python script_match.py export my_script.txt

  # Story flow (6 steps)
  python script_match.py --variant story input --file story.txt --thumbnail thumb.png
  python script_match.py opening && python script_match.py approve && python script_match.py next
  python script_match.py cast --female "Seol" --male "Do-hyun" --supporting "Madam Han"
        """
    )
    parser.add_argument("--variant", choices=["instructional", "story"],
                        help="Product variant (default: SCRIPT_MATCH_VARIANT or the saved state's)")
    parser.add_argument("--home", default=None,
                        help=f"Settings directory (default: {SCRIPT_MATCH_HOME})")
    parser.add_argument("--fallback", choices=[FALLBACK_NONE, FALLBACK_DEMO], default=None,
                        help="On LLM failure: report the error (none) or use built-in demo data (demo)")
    parser.add_argument("--provider", choices=["google", "openai"], default=None,
                        help="LLM provider (default: TEXT_PROVIDER from .env)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("status", help="Show the current step")
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("key", help="Manage the stored API key")
    p.add_argument("action", choices=["set", "clear", "status"])
    p.add_argument("value", nargs="?", help="Key value (prompted when omitted)")
    p.add_argument("--from-env", action="store_true", help=f"Copy the key from {' / '.join(ENV_KEY_NAMES)}")
    p.set_defaults(func=cmd_key)

    p = sub.add_parser("input", help="Step 1: reference script, title and thumbnail")
    src = p.add_mutually_exclusive_group()
    src.add_argument("--file", help="Plain-text file with the reference script")
    src.add_argument("--text", help="Reference script text")
    p.add_argument("--title", help="Reference video title")
    img = p.add_mutually_exclusive_group()
    img.add_argument("--thumbnail", help="Reference thumbnail image (png, jpeg, webp, gif)")
    img.add_argument("--no-thumbnail", action="store_true", help="Remove the attached thumbnail")
    p.set_defaults(func=cmd_input)

    p = sub.add_parser("analyze", help="Step 1: analyze the reference")
    p.set_defaults(func=cmd_analyze)

    p = sub.add_parser("settings", help="Step 2: tone and target length")
    p.add_argument("--tone", choices=list(TONE_LABELS))
    p.add_argument("--length", type=int, help=f"Target minutes ({config.min_target_minutes}-{config.max_target_minutes})")
    p.set_defaults(func=cmd_settings)

    p = sub.add_parser("select", help="Step 3: choose a title and topic")
    p.add_argument("--title-index", type=int, help="Suggested title number")
    p.add_argument("--title", help="Your own title")
    p.add_argument("--topic-index", type=int, help="Suggested topic number")
    p.add_argument("--topic", help="Your own topic")
    p.set_defaults(func=cmd_select)

    p = sub.add_parser("seo", help="Keyword tiers for the chosen title")
    p.set_defaults(func=cmd_seo)

    p = sub.add_parser("opening", help="Story step 4: draft the opening")
    p.set_defaults(func=cmd_opening)

    p = sub.add_parser("approve", help="Story step 4: approve the opening draft")
    p.set_defaults(func=cmd_approve)

    p = sub.add_parser("persona", help="Persona and style rules")
    p.add_argument("--text", help="Replace the persona text")
    p.add_argument("--preset", type=int, action="append", help="Append preset number N (repeatable)")
    p.set_defaults(func=cmd_persona)

    p = sub.add_parser("cast", help="Story step 5: characters")
    p.add_argument("--female", required=True, help="Female protagonist")
    p.add_argument("--male", required=True, help="Male protagonist")
    p.add_argument("--supporting", nargs="*", default=[], help="Up to 4 supporting characters")
    p.add_argument("--length", type=int, help="Target minutes")
    p.set_defaults(func=cmd_cast)

    p = sub.add_parser("next", help="Go to the next step")
    p.set_defaults(func=cmd_next)

    p = sub.add_parser("back", help="Go to the previous step")
    p.set_defaults(func=cmd_back)

    p = sub.add_parser("generate", help="Write the final script")
    p.set_defaults(func=cmd_generate)

    p = sub.add_parser("export", help="Save the final script as a text file")
    p.add_argument("output", nargs="?", help="Output file (default: generated_script.txt)")
    p.add_argument("--thumbnail-prompt", help="Also save the thumbnail prompt to this file")
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("reset", help="Clear everything and start over (keeps the API key)")
    p.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    p.set_defaults(func=cmd_reset)

    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    store = SettingsStore(args.home)
    wizard = Wizard(store, variant=args.variant, fallback_policy=args.fallback, provider=args.provider)
    try:
        return args.func(wizard, args)
    except CredentialMissingError:
        prompt_for_credential(store)
        return 3
    except (ValueError, OSError) as e:
        print(f"[ERROR] {e}")
        return 2
    except RequestInFlightError as e:
        print(f"[ERROR] {e}")
        return 4
    finally:
        wizard.close()


# ------------- ENTRY POINT -------------

if __name__ == "__main__":
    sys.exit(main())
