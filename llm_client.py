"""
LLM Client Abstraction Layer
==============================
Narrative generator for feedback text: Anthropic Claude API.
Scoring never depends on this module; callers fall back to template text on failure.
"""

import json
import logging
import re

from config import ANTHROPIC_API_KEY, ANTHROPIC_MODEL, FLOW_TOKENS, LOGGER_NAME, MAX_TOKENS, TEMPERATURE


class LLMClient:
    """
    Unified LLM interface.
    - anthropic: Claude Messages API
    """

    def __init__(self, backend="anthropic", api_key=None):
        self.backend = backend
        if backend == "anthropic":
            import anthropic
            self.client = anthropic.Anthropic(api_key=api_key or ANTHROPIC_API_KEY)
        else:
            raise ValueError(f"Unknown backend: {backend}")

    # ------------------------------------------------------------------
    #  JSON repair utilities
    # ------------------------------------------------------------------
    @staticmethod
    def _strip_fences(text: str) -> str:
        """Remove ```json ... ``` wrappers."""
        s = text.strip()
        s = re.sub(r"^```(?:json)?\s*", "", s)
        s = re.sub(r"\s*```$", "", s)
        return s.strip()

    @staticmethod
    def _repair_json(text: str) -> str:
        """Best-effort repair of common JSON issues in model output."""
        s = text
        # 0. Strip control characters (except \n \r \t) that break json.loads
        s = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f]', '', s)
        # 1. Trailing commas before } or ]
        s = re.sub(r",\s*([}\]])", r"\1", s)
        # 2. Single-quoted keys → double-quoted
        s = re.sub(r"(?<=[\{,\[])\s*'([^']+?)'\s*:", r' "\1":', s)
        return s

    @staticmethod
    def _unwrap_list(parsed):
        """If the model returned a JSON array, unwrap the first dict element."""
        if isinstance(parsed, list) and len(parsed) > 0 and isinstance(parsed[0], dict):
            return parsed[0]
        return parsed

    @staticmethod
    def _extract_json_object(text: str) -> str:
        """Extract the first complete top-level JSON object from text."""
        start = text.find("{")
        if start == -1:
            return text
        depth = 0
        for i in range(start, len(text)):
            if text[i] == "{":
                depth += 1
            elif text[i] == "}":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        # Unclosed: return from start to end and append closing braces
        return text[start:] + "}" * depth if depth > 0 else text[start:]

    # ------------------------------------------------------------------
    #  Public API: query()
    # ------------------------------------------------------------------
    def query(self, system_prompt: str, user_message: str, temperature: float = None,
              flow: str = None) -> str:
        """Send a query and return the text response."""
        temp = temperature if temperature is not None else TEMPERATURE
        max_tokens = FLOW_TOKENS.get(flow, MAX_TOKENS)

        response = self.client.messages.create(
            model=ANTHROPIC_MODEL,
            max_tokens=max_tokens,
            temperature=temp,
            system=system_prompt,
            messages=[{"role": "user", "content": user_message}],
        )
        blocks = [b.text for b in response.content if getattr(b, "type", "text") == "text"]
        return blocks[0] if blocks else ""

    # ------------------------------------------------------------------
    #  Public API: query_text(), plain text only, no JSON parsing
    # ------------------------------------------------------------------
    def query_text(self, system_prompt: str, user_message: str, temperature: float = None,
                   flow: str = None) -> str:
        """Send a query and return the stripped text response (narratives)."""
        return self.query(system_prompt, user_message, temperature, flow=flow).strip()

    # ------------------------------------------------------------------
    #  Public API: query_json()
    # ------------------------------------------------------------------
    def query_json(self, system_prompt: str, user_message: str, temperature: float = None,
                   flow: str = None) -> dict:
        """Send a query and parse the response as JSON.

        Robustness strategy:
          1. Strip fences → parse
          2. Extract first JSON object → parse
          3. Repair extracted text → parse
          4. On all failures: return empty dict (callers use template fallbacks)
        """
        raw = self.query(system_prompt, user_message, temperature, flow=flow)
        text = self._strip_fences(raw)

        for candidate in (text, self._extract_json_object(text)):
            try:
                parsed = self._unwrap_list(json.loads(candidate, strict=False))
                if isinstance(parsed, dict):
                    return parsed
            except json.JSONDecodeError:
                pass

        repaired = self._repair_json(self._extract_json_object(text))
        try:
            parsed = self._unwrap_list(json.loads(repaired, strict=False))
            if isinstance(parsed, dict):
                return parsed
            last_error = f"non-object JSON ({type(parsed).__name__})"
        except json.JSONDecodeError as e:
            last_error = e

        logging.getLogger(LOGGER_NAME).warning(
            f"query_json failed: {last_error}. Raw[:200]: {raw[:200]}"
        )
        return {}
