"""
Tests for llm_utils: provider dispatch, image attachments, JSON decoding, error normalization.
Mocks OpenAI/Google clients so tests do not hit real APIs.
"""

import base64
import unittest
import sys
from pathlib import Path
from unittest.mock import patch, MagicMock

sys.path.insert(0, str(Path(__file__).parent.parent))

import llm_utils
from llm_utils import CredentialMissingError, LLMRequest, LLMRequestError

PNG_URI = "data:image/png;base64," + base64.b64encode(b"\x89PNG\r\n\x1a\nfake").decode("ascii")


def _openai_response(content):
    resp = MagicMock()
    resp.choices = [MagicMock()]
    resp.choices[0].message.content = content
    return resp


class TestCleanJsonResponse(unittest.TestCase):
    """Test cases for clean_json_response function."""

    def test_plain_json(self):
        self.assertEqual(llm_utils.clean_json_response('{"key": "value"}'), '{"key": "value"}')

    def test_json_with_json_code_block(self):
        self.assertEqual(llm_utils.clean_json_response('```json\n{"key": "value"}\n```'), '{"key": "value"}')

    def test_json_with_code_block(self):
        self.assertEqual(llm_utils.clean_json_response('```\n{"key": "value"}\n```'), '{"key": "value"}')

    def test_json_with_whitespace(self):
        self.assertEqual(llm_utils.clean_json_response('   ```json\n{"key": "value"}\n```   '), '{"key": "value"}')


class TestDecodeJsonResponse(unittest.TestCase):
    """decode_json_response strips fences then decodes, failing uniformly."""

    def test_fenced_object(self):
        self.assertEqual(llm_utils.decode_json_response('```json\n{"script": "hi"}\n```'), {"script": "hi"})

    def test_malformed_raises(self):
        with self.assertRaises(LLMRequestError):
            llm_utils.decode_json_response('{"script": "hi"')

    def test_empty_raises(self):
        with self.assertRaises(LLMRequestError):
            llm_utils.decode_json_response("   ")

    def test_array_raises(self):
        with self.assertRaises(LLMRequestError):
            llm_utils.decode_json_response('["a", "b"]')


class TestSplitDataUri(unittest.TestCase):

    def test_splits_png(self):
        mime, data = llm_utils.split_data_uri(PNG_URI)
        self.assertEqual(mime, "image/png")
        self.assertTrue(data.startswith(b"\x89PNG"))

    def test_rejects_non_image(self):
        with self.assertRaises(ValueError):
            llm_utils.split_data_uri("data:text/plain;base64,aGVsbG8=")

    def test_rejects_plain_string(self):
        with self.assertRaises(ValueError):
            llm_utils.split_data_uri("not a data uri")


class TestGenerateText(unittest.TestCase):
    """Test generate_text dispatch; mock underlying API."""

    @patch("openai.OpenAI")
    def test_openai_uses_explicit_key(self, mock_openai_class):
        mock_client = MagicMock()
        mock_openai_class.return_value = mock_client
        mock_client.chat.completions.create.return_value = _openai_response("Hello, world.")

        result = llm_utils.generate_text(
            messages=[{"role": "user", "content": "Hi"}],
            api_key="sk-test",
            provider="openai",
        )
        self.assertEqual(result, "Hello, world.")
        mock_openai_class.assert_called_once_with(api_key="sk-test")

    @patch("openai.OpenAI")
    def test_openai_with_schema_and_image(self, mock_openai_class):
        mock_client = MagicMock()
        mock_openai_class.return_value = mock_client
        mock_client.chat.completions.create.return_value = _openai_response('{"name": "test"}')

        schema = {"type": "object", "properties": {"name": {"type": "string"}}, "required": ["name"]}
        llm_utils.generate_text(
            messages=[{"role": "user", "content": "Hi"}],
            api_key="sk-test",
            provider="openai",
            image_data_uri=PNG_URI,
            response_json_schema=schema,
        )
        call_kw = mock_client.chat.completions.create.call_args[1]
        rf = call_kw["response_format"]
        self.assertEqual(rf["type"], "json_schema")
        self.assertTrue(rf["json_schema"]["strict"])
        self.assertFalse(rf["json_schema"]["schema"]["additionalProperties"])
        content = call_kw["messages"][-1]["content"]
        self.assertEqual(content[0], {"type": "text", "text": "Hi"})
        self.assertEqual(content[1]["image_url"]["url"], PNG_URI)

    @patch("google.genai.Client")
    def test_google_with_schema_and_image(self, mock_client_class):
        mock_client = MagicMock()
        mock_client_class.return_value = mock_client
        mock_resp = MagicMock()
        mock_resp.text = '{"name": "test"}'
        mock_client.models.generate_content.return_value = mock_resp

        schema = {"type": "object", "properties": {"name": {"type": "string"}}, "required": ["name"]}
        result = llm_utils.generate_text(
            messages=[{"role": "user", "content": "Hi"}],
            api_key="g-key",
            provider="google",
            image_data_uri=PNG_URI,
            response_json_schema=schema,
        )
        self.assertEqual(result, '{"name": "test"}')
        mock_client_class.assert_called_once_with(api_key="g-key")
        call_kw = mock_client.models.generate_content.call_args[1]
        self.assertEqual(call_kw["config"].response_mime_type, "application/json")
        self.assertEqual(len(call_kw["contents"]), 2)
        self.assertEqual(call_kw["contents"][0], "Hi")

    @patch("google.genai.Client")
    def test_google_empty_text_raises(self, mock_client_class):
        mock_client = MagicMock()
        mock_client_class.return_value = mock_client
        mock_resp = MagicMock()
        mock_resp.text = ""
        mock_client.models.generate_content.return_value = mock_resp
        with self.assertRaises(RuntimeError):
            llm_utils.generate_text([{"role": "user", "content": "Hi"}], api_key="g-key", provider="google")

    def test_invalid_provider_raises(self):
        with self.assertRaises(ValueError) as ctx:
            llm_utils.generate_text([{"role": "user", "content": "Hi"}], api_key="k", provider="invalid")
        self.assertIn("google", str(ctx.exception).lower())
        self.assertIn("openai", str(ctx.exception).lower())

    @patch.dict("os.environ", {"OPENAI_API_KEY": "sk-env", "GOOGLE_API_KEY": "g-env"}, clear=False)
    def test_environment_key_is_not_used(self):
        with self.assertRaises(CredentialMissingError):
            llm_utils.generate_text([{"role": "user", "content": "Hi"}], api_key="", provider="openai")


class TestRequestLlm(unittest.TestCase):
    """request_llm normalizes every failure into LLMRequestError."""

    def test_missing_key_raises_before_call(self):
        with patch.object(llm_utils, "generate_text") as mock_generate:
            with self.assertRaises(CredentialMissingError):
                llm_utils.request_llm(LLMRequest(label="analysis", prompt="x"), None)
            mock_generate.assert_not_called()

    def test_structured_returns_dict(self):
        request = LLMRequest(label="generation", prompt="x", schema={"type": "object"})
        with patch.object(llm_utils, "generate_text", return_value='```json\n{"script": "s"}\n```'):
            self.assertEqual(llm_utils.request_llm(request, "k", provider="google"), {"script": "s"})

    def test_plain_returns_text(self):
        request = LLMRequest(label="generation", prompt="x")
        with patch.object(llm_utils, "generate_text", return_value="Once upon a time"):
            self.assertEqual(llm_utils.request_llm(request, "k", provider="google"), "Once upon a time")

    def test_transport_error_is_wrapped(self):
        request = LLMRequest(label="analysis", prompt="x", schema={"type": "object"})
        with patch.object(llm_utils, "generate_text", side_effect=ConnectionError("offline")):
            with self.assertRaises(LLMRequestError) as ctx:
                llm_utils.request_llm(request, "k", provider="google")
        self.assertIn("analysis", str(ctx.exception))
        self.assertIsInstance(ctx.exception.__cause__, ConnectionError)

    def test_malformed_json_is_wrapped(self):
        request = LLMRequest(label="analysis", prompt="x", schema={"type": "object"})
        with patch.object(llm_utils, "generate_text", return_value="Sure! Here is your analysis"):
            with self.assertRaises(LLMRequestError):
                llm_utils.request_llm(request, "k", provider="google")

    def test_empty_plain_text_raises(self):
        with patch.object(llm_utils, "generate_text", return_value="  "):
            with self.assertRaises(LLMRequestError):
                llm_utils.request_llm(LLMRequest(label="generation", prompt="x"), "k", provider="google")

    def test_single_call_no_retry(self):
        request = LLMRequest(label="analysis", prompt="x")
        with patch.object(llm_utils, "generate_text", side_effect=TimeoutError("slow")) as mock_generate:
            with self.assertRaises(LLMRequestError):
                llm_utils.request_llm(request, "k", provider="openai")
        self.assertEqual(mock_generate.call_count, 1)


class TestGetTextModelDisplay(unittest.TestCase):

    def test_returns_provider_and_model(self):
        out = llm_utils.get_text_model_display("google")
        provider, model = [p.strip() for p in out.split("/", 1)]
        self.assertEqual(provider, "google")
        self.assertEqual(model, llm_utils.TEXT_MODEL_GOOGLE)


if __name__ == "__main__":
    unittest.main()
