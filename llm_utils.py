"""
Unified LLM utilities for analysis and script generation.
Dispatches to Google (Gemini) or OpenAI based on .env TEXT_PROVIDER.

.env variables:
  TEXT_PROVIDER      - "google" or "openai" (default: google)
  TEXT_MODEL_GOOGLE  - Gemini model (default: gemini-2.0-flash)
  TEXT_MODEL_OPENAI  - OpenAI chat model (default: gpt-4o)

The API key is never read from the environment here. Callers fetch it from
the settings store and pass it in explicitly.
"""

import os
import json
import base64
import binascii
from dataclasses import dataclass
from typing import Any

from dotenv import load_dotenv

load_dotenv()

TEXT_PROVIDER = os.getenv("TEXT_PROVIDER", "google").lower()
TEXT_MODEL_GOOGLE = os.getenv("TEXT_MODEL_GOOGLE", "gemini-2.0-flash")
TEXT_MODEL_OPENAI = os.getenv("TEXT_MODEL_OPENAI", "gpt-4o")


class CredentialMissingError(Exception):
    """No API key is stored; the user has to enter one before any request."""


class LLMRequestError(Exception):
    """Transport failure, non-success response, or an unparseable answer."""


@dataclass
class LLMRequest:
    """Everything the adapter needs for one call.

    label: short name used in logs and error messages ("analysis", "generation", ...)
    prompt: the full instruction text
    image_data_uri: optional "data:<mime>;base64,<payload>" attachment
    schema: optional JSON schema; when set the answer is decoded into a dict
    expects_json: decode the answer as JSON even without a schema
    """

    label: str
    prompt: str
    image_data_uri: str | None = None
    schema: dict | None = None
    expects_json: bool = False

    @property
    def structured(self) -> bool:
        return self.schema is not None or self.expects_json


def _log(msg: str) -> None:
    print(f"[LLM] {msg}")


def get_text_model_display(provider: str | None = None) -> str:
    """Return a short string for logging: provider / model (e.g. 'google / gemini-2.0-flash')."""
    prov = (provider or TEXT_PROVIDER).lower()
    model = TEXT_MODEL_OPENAI if prov == "openai" else TEXT_MODEL_GOOGLE
    return f"{prov} / {model}"


def _ensure_openai_schema(schema: dict) -> dict:
    """Ensure schema has additionalProperties: false for OpenAI Structured Outputs."""
    if schema.get("type") != "object":
        return schema
    result = dict(schema)
    if "additionalProperties" not in result:
        result["additionalProperties"] = False
    if "properties" in result:
        result["properties"] = {
            k: _ensure_openai_schema(v) if isinstance(v, dict) else v
            for k, v in result["properties"].items()
        }
    if "items" in result and isinstance(result["items"], dict):
        result["items"] = _ensure_openai_schema(result["items"])
    return result


def split_data_uri(data_uri: str) -> tuple[str, bytes]:
    """Split 'data:image/png;base64,....' into (mime_type, raw bytes)."""
    if not data_uri.startswith("data:") or "," not in data_uri:
        raise ValueError("Image attachment must be a base64 data URI")
    header, payload = data_uri.split(",", 1)
    mime_type = header[len("data:"):].split(";")[0]
    if not mime_type.startswith("image/"):
        raise ValueError(f"Unsupported attachment type: {mime_type or 'unknown'}")
    try:
        return mime_type, base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Attachment is not valid base64: {e}") from e


def clean_json_response(content: str) -> str:
    """Remove markdown code blocks from JSON response."""
    content = content.strip()
    if content.startswith("```json"):
        content = content[7:]
    elif content.startswith("```"):
        content = content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return content.strip()


def decode_json_response(content: str) -> dict:
    """
    Strip known wrapping markers, then decode a JSON object.

    Raises:
        LLMRequestError: if the text is empty, not JSON, or not a JSON object.
    """
    cleaned = clean_json_response(content or "")
    if not cleaned:
        raise LLMRequestError("Model returned an empty answer")
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise LLMRequestError(f"Model answer is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise LLMRequestError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def generate_text(
    messages: list[dict[str, str]],
    api_key: str,
    model: str | None = None,
    provider: str | None = None,
    temperature: float = 0.7,
    image_data_uri: str | None = None,
    response_json_schema: dict | None = None,
    **kwargs: Any,
) -> str:
    """
    Generate text from messages using Google Gemini or OpenAI.

    Args:
        messages: List of {"role": "user"|"system", "content": str} (OpenAI shape).
        api_key: Credential for the selected provider.
        model: Model name; if None, use env TEXT_MODEL_GOOGLE or TEXT_MODEL_OPENAI.
        provider: "google" or "openai"; if None, use env TEXT_PROVIDER.
        temperature: Sampling temperature.
        image_data_uri: Optional image attached to the last user message.
        response_json_schema: Optional JSON schema for structured output. Passed in
            the API config, not the prompt.
        **kwargs: Passed through to the underlying API.

    Returns:
        The assistant reply as a single string.
    """
    prov = (provider or TEXT_PROVIDER).lower()
    if prov not in ("openai", "google"):
        raise ValueError(
            f"TEXT_PROVIDER must be 'google' or 'openai'. Got: {prov}. "
            "Set TEXT_PROVIDER in .env or pass provider=."
        )
    if not api_key:
        raise CredentialMissingError("No API key stored. Run 'script_match.py key set' first.")

    image: tuple[str, bytes] | None = split_data_uri(image_data_uri) if image_data_uri else None

    if prov == "openai":
        from openai import OpenAI
        client = OpenAI(api_key=api_key)
        model_name = model or TEXT_MODEL_OPENAI
        openai_messages: list[dict[str, Any]] = [dict(m) for m in messages]
        if image is not None:
            last = openai_messages[-1]
            last["content"] = [
                {"type": "text", "text": last.get("content") or ""},
                {"type": "image_url", "image_url": {"url": image_data_uri}},
            ]
        req: dict[str, Any] = {
            "model": model_name,
            "messages": openai_messages,
            "temperature": temperature,
            **kwargs,
        }
        if response_json_schema is not None:
            openai_schema = _ensure_openai_schema(response_json_schema)
            req["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": openai_schema.get("title", "response"),
                    "strict": True,
                    "schema": openai_schema,
                },
            }
        response = client.chat.completions.create(**req)
        return response.choices[0].message.content or ""

    # Google Gemini (google.genai SDK)
    from google import genai
    from google.genai import types
    client = genai.Client(api_key=api_key)
    model_name = model or TEXT_MODEL_GOOGLE
    system_parts: list[str] = []
    user_parts: list[str] = []
    for m in messages:
        role = (m.get("role") or "user").lower()
        content = (m.get("content") or "").strip()
        if not content:
            continue
        if role == "system":
            system_parts.append(content)
        else:
            user_parts.append(content)
    config_kw: dict[str, Any] = {"temperature": temperature}
    if system_parts:
        config_kw["system_instruction"] = "\n\n".join(system_parts)
    if response_json_schema is not None:
        config_kw["response_mime_type"] = "application/json"
        config_kw["response_json_schema"] = response_json_schema
    config = types.GenerateContentConfig(**config_kw)
    contents: list[Any] = ["\n\n".join(user_parts)]
    if image is not None:
        mime_type, data = image
        contents.append(types.Part.from_bytes(data=data, mime_type=mime_type))
    response = client.models.generate_content(
        model=model_name,
        contents=contents,
        config=config,
        **kwargs,
    )
    if not response:
        raise RuntimeError("Google Gemini returned no response.")
    text = getattr(response, "text", None) or ""
    if not text:
        raise RuntimeError("Google Gemini returned empty text. The model may have blocked the response.")
    return text


def request_llm(
    request: LLMRequest,
    api_key: str | None,
    provider: str | None = None,
    model: str | None = None,
    temperature: float = 0.7,
) -> dict | str:
    """
    Perform exactly one call for a request descriptor and normalize the result.

    Returns the decoded dict for structured requests, raw text otherwise.

    Raises:
        CredentialMissingError: no api_key given (checked before any work).
        LLMRequestError: any transport, API, or decode failure. Never retried.
    """
    if not api_key:
        raise CredentialMissingError("No API key stored. Run 'script_match.py key set' first.")

    prov = (provider or TEXT_PROVIDER).lower()
    if prov not in ("openai", "google"):
        raise ValueError(f"TEXT_PROVIDER must be 'google' or 'openai'. Got: {prov}.")
    if request.image_data_uri:
        split_data_uri(request.image_data_uri)

    _log(f"{request.label}: {get_text_model_display(prov)}"
         f"{' + image' if request.image_data_uri else ''}"
         f"{' (structured)' if request.structured else ''}")
    try:
        text = generate_text(
            messages=[{"role": "user", "content": request.prompt}],
            api_key=api_key,
            model=model,
            provider=prov,
            temperature=temperature,
            image_data_uri=request.image_data_uri,
            response_json_schema=request.schema,
        )
    except CredentialMissingError:
        raise
    except Exception as e:
        raise LLMRequestError(f"{request.label} request failed: {e}") from e

    if not request.structured:
        if not text.strip():
            raise LLMRequestError(f"{request.label} request returned empty text")
        return text
    return decode_json_response(text)
