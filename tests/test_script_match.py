"""
Tests for the script_match command line: one sub-command per call, state carried in --home.
llm_utils.request_llm is patched so nothing reaches a real provider.
"""

import io
import shutil
import tempfile
import unittest
import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent))

import demo_payloads
import llm_utils
import script_match
from llm_utils import LLMRequestError
from script_schemas import ANALYSIS_INSTRUCTIONAL
from settings_store import SettingsStore

REFERENCE = "Stop! If your phone still has this setting on, strangers can see your photos. " * 5


class TestScriptMatchCli(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.store = SettingsStore(self.temp_dir)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def run_cli(self, *args, fallback="none"):
        argv = ["--home", self.temp_dir, "--variant", "instructional", "--fallback", fallback, *args]
        with patch("sys.stdout", new_callable=io.StringIO) as out:
            code = script_match.main(argv)
        return code, out.getvalue()

    def test_key_set_and_status(self):
        code, _ = self.run_cli("key", "set", "test-key")
        self.assertEqual(code, 0)
        self.assertEqual(self.store.get_credential(), "test-key")
        _, out = self.run_cli("key", "status")
        self.assertIn("[KEY] set", out)
        self.run_cli("key", "clear")
        self.assertFalse(self.store.has_credential())

    def test_key_from_env(self):
        with patch.dict("os.environ", {"GEMINI_API_KEY": "env-key"}):
            code, _ = self.run_cli("key", "set", "--from-env")
        self.assertEqual(code, 0)
        self.assertEqual(self.store.get_credential(), "env-key")

    def test_status_on_fresh_home(self):
        code, out = self.run_cli("status")
        self.assertEqual(code, 0)
        self.assertIn("Step 1/5", out)
        self.assertIn("NOT SET", out)

    def test_analyze_without_key(self):
        self.run_cli("input", "--text", REFERENCE)
        with patch.object(llm_utils, "request_llm") as mock_request, \
                patch("sys.stdin") as mock_stdin:
            mock_stdin.isatty.return_value = False
            code, out = self.run_cli("analyze")
        self.assertEqual(code, 3)
        mock_request.assert_not_called()
        self.assertIn("key set", out)
        self.assertEqual(self.store.load_state().step, 1)

    def test_short_reference_rejected(self):
        self.store.set_credential("test-key")
        self.run_cli("input", "--text", "too short")
        with patch.object(llm_utils, "request_llm") as mock_request:
            code, out = self.run_cli("analyze")
        self.assertEqual(code, 2)
        self.assertIn("at least 10 characters", out)
        mock_request.assert_not_called()

    def test_next_refused_on_incomplete_step(self):
        code, out = self.run_cli("next")
        self.assertEqual(code, 1)
        self.assertIn("not complete", out)

    def test_instructional_run(self):
        self.store.set_credential("test-key")
        reference = Path(self.temp_dir) / "reference.txt"
        reference.write_text(REFERENCE, encoding="utf-8")
        self.assertEqual(self.run_cli("input", "--file", str(reference))[0], 0)

        with patch.object(llm_utils, "request_llm",
                          return_value=demo_payloads.analysis_payload(ANALYSIS_INSTRUCTIONAL)) as mock_request:
            code, out = self.run_cli("analyze")
        self.assertEqual(code, 0)
        self.assertEqual(mock_request.call_args[0][1], "test-key")
        self.assertIn("Analysis report", out)

        self.assertEqual(self.run_cli("settings", "--tone", "logical", "--length", "7")[0], 0)
        self.assertEqual(self.run_cli("next")[0], 0)
        code, out = self.run_cli("select", "--title-index", "1", "--topic-index", "2")
        self.assertEqual(code, 0)
        self.assertEqual(self.run_cli("next")[0], 0)
        self.run_cli("persona", "--preset", "2", "--text", "explain it simply")
        self.assertEqual(self.store.load_state().inputs.persona, "explain it simply, no slang or buzzwords")

        with patch.object(llm_utils, "request_llm",
                          return_value=demo_payloads.generation_payload("instructional")):
            code, out = self.run_cli("generate")
        self.assertEqual(code, 0)
        self.assertIn("Step 5/5", out)

        output = Path(self.temp_dir) / "script.txt"
        code, _ = self.run_cli("export", str(output))
        self.assertEqual(code, 0)
        self.assertEqual(output.read_bytes(),
                         demo_payloads.INSTRUCTIONAL_SCRIPT["script"].strip().encode("utf-8"))

    def test_failure_reported(self):
        self.store.set_credential("test-key")
        self.run_cli("input", "--text", REFERENCE)
        with patch.object(llm_utils, "request_llm", side_effect=LLMRequestError("timeout")):
            code, out = self.run_cli("analyze")
        self.assertEqual(code, 1)
        self.assertIn("[ERROR] Analysis failed", out)

    def test_demo_fallback_marked(self):
        self.store.set_credential("test-key")
        self.run_cli("input", "--text", REFERENCE)
        with patch.object(llm_utils, "request_llm", side_effect=LLMRequestError("timeout")):
            code, out = self.run_cli("analyze", fallback="demo")
        self.assertEqual(code, 0)
        self.assertIn("[DEMO DATA]", out)

    def test_reset(self):
        self.store.set_credential("test-key")
        self.run_cli("input", "--text", REFERENCE)
        with patch("builtins.input", return_value="n"):
            code, _ = self.run_cli("reset")
        self.assertEqual(code, 1)
        self.assertEqual(self.store.load_state().inputs.reference_script, REFERENCE)

        code, _ = self.run_cli("reset", "--yes")
        self.assertEqual(code, 0)
        self.assertEqual(self.store.load_state().inputs.reference_script, "")
        self.assertEqual(self.store.get_credential(), "test-key")

    def test_unwritable_settings_reported(self):
        with patch.object(SettingsStore, "save_state", side_effect=PermissionError("read-only")):
            code, out = self.run_cli("input", "--text", REFERENCE)
        self.assertEqual(code, 2)
        self.assertIn("[ERROR] read-only", out)

    def test_bad_preset(self):
        code, out = self.run_cli("persona", "--preset", "9")
        self.assertEqual(code, 2)
        self.assertIn("Preset must be", out)


if __name__ == "__main__":
    unittest.main()
