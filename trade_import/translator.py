# trade_import/translator.py
"""
Remote translation of non-English headers and categorical values.

Translation is strictly best-effort: every failure (no key, network, HTTP,
bad JSON, wrong shape, timeout) degrades to an empty result and the import
carries on with the deterministic mapping.

Requires (for GroqTranslator):
    GROQ_API_KEY=<your_key_here>
"""

import json
import logging
import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeout
from typing import Any, Dict, List, Optional, Tuple

import requests

from .config import GROQ_CHAT_URL, ImportSettings
from .models import ColumnMatch
from .normalizers import CATEGORICAL_FIELDS, NormalizationTable, fold, is_ascii
from .schema import ENUM_VALUES

logger = logging.getLogger(__name__)


class Translator:
    """Capability interface; implementations must never raise for service errors."""

    def translate_headers(self, headers: List[str]) -> Dict[str, str]:
        """Return {original header: English gloss}."""
        raise NotImplementedError

    def translate_values(self, fields: Dict[str, List[str]]) -> Dict[str, Dict[str, str]]:
        """Return {field: {raw value: canonical value}}."""
        raise NotImplementedError


class NullTranslator(Translator):
    """Translator used when no AI service is configured."""

    def translate_headers(self, headers: List[str]) -> Dict[str, str]:
        return {}

    def translate_values(self, fields: Dict[str, List[str]]) -> Dict[str, Dict[str, str]]:
        return {}


# ---------- Response parsing ----------

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def strip_code_fences(text: str) -> str:
    """Remove a ```json ... ``` wrapper the model sometimes adds."""
    return _FENCE_RE.sub("", text.strip()).strip()


def parse_json_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    if not text:
        return None
    cleaned = strip_code_fences(text)
    try:
        parsed = json.loads(cleaned)
    except ValueError:
        # tolerate prose around the object
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start < 0 or end <= start:
            return None
        try:
            parsed = json.loads(cleaned[start:end + 1])
        except ValueError:
            return None
    return parsed if isinstance(parsed, dict) else None


def accept_header_glosses(headers: List[str], glosses: Any) -> Dict[str, str]:
    """Keep glosses that are non-empty strings different from the original header."""
    if not isinstance(glosses, dict):
        return {}
    accepted: Dict[str, str] = {}
    for header in headers:
        gloss = glosses.get(header)
        if not isinstance(gloss, str):
            continue
        gloss = gloss.strip()
        if gloss and fold(gloss) != fold(header):
            accepted[header] = gloss
    return accepted


def accept_value_translations(
    fields: Dict[str, List[str]],
    translations: Any,
) -> Dict[str, Dict[str, str]]:
    """Keep translations of requested values whose target is an allowed canonical value."""
    if not isinstance(translations, dict):
        return {}
    accepted: Dict[str, Dict[str, str]] = {}
    for field, requested in fields.items():
        entries = translations.get(field)
        allowed = ENUM_VALUES.get(field)
        if not isinstance(entries, dict) or not allowed:
            continue
        by_key = {fold(v): v for v in requested}
        canonical_by_key = {fold(a): a for a in allowed}
        for raw, target in entries.items():
            original = by_key.get(fold(raw))
            if original is None or not isinstance(target, str):
                continue
            canonical = canonical_by_key.get(fold(target))
            if canonical is None:
                logger.debug("Dropping %s translation %r -> %r (not in %s)", field, raw, target, allowed)
                continue
            accepted.setdefault(field, {})[original] = canonical
    return accepted


# ---------- Groq ----------

HEADER_SYSTEM_PROMPT = (
    "You translate CSV column headers from a trading journal export into short English "
    "field names (e.g. 'date', 'symbol', 'direction', 'result', 'risk %', 'notes').\n"
    "- Translate every header you are given, keep its meaning, do not explain.\n"
    "- Output JSON: {\"headers\": {\"<original>\": \"<english>\"}} and nothing else."
)

VALUE_SYSTEM_PROMPT = (
    "You map raw values from a trading journal export to canonical values.\n"
    "- direction: Long or Short\n"
    "- trade_outcome: Win, Lose or BE\n"
    "- be_final_result: Win or Lose\n"
    "- Omit a value if you are not sure.\n"
    "- Output JSON: {\"fields\": {\"<field>\": {\"<raw>\": \"<canonical>\"}}} and nothing else."
)


class GroqTranslator(Translator):
    """Translator backed by the Groq chat-completions API."""

    def __init__(
        self,
        api_key: str,
        model: str = "llama-3.1-8b-instant",
        url: str = GROQ_CHAT_URL,
        timeout: float = 20.0,
        max_tokens: int = 512,
        temperature: float = 0.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.url = url
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.session = session or requests.Session()

    def _call_chat(self, system_prompt: str, user_prompt: str) -> Optional[str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        try:
            resp = self.session.post(self.url, headers=headers, json=payload, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
            return data["choices"][0]["message"]["content"]
        except Exception as e:
            logger.warning("Groq translation call failed: %s", e)
            logger.debug("Groq call failure detail", exc_info=True)
            return None

    def translate_headers(self, headers: List[str]) -> Dict[str, str]:
        if not headers:
            return {}
        text = self._call_chat(HEADER_SYSTEM_PROMPT, json.dumps({"headers": headers}, ensure_ascii=False))
        parsed = parse_json_object(text)
        if parsed is None:
            return {}
        return accept_header_glosses(headers, parsed.get("headers", parsed))

    def translate_values(self, fields: Dict[str, List[str]]) -> Dict[str, Dict[str, str]]:
        if not fields:
            return {}
        text = self._call_chat(VALUE_SYSTEM_PROMPT, json.dumps({"fields": fields}, ensure_ascii=False))
        parsed = parse_json_object(text)
        if parsed is None:
            return {}
        return accept_value_translations(fields, parsed.get("fields", parsed))


def build_translator(settings: ImportSettings) -> Translator:
    if settings.translation_enabled:
        return GroqTranslator(
            api_key=settings.groq_api_key,
            model=settings.llm_model,
            url=settings.llm_url,
            timeout=settings.request_timeout_seconds,
        )
    return NullTranslator()


# ---------- When to translate ----------

def headers_needing_translation(matches: List[ColumnMatch]) -> List[str]:
    """Non-ASCII headers that neither header nor value matching could place."""
    return [m.csv_header for m in matches if not m.db_field and not is_ascii(m.csv_header)]


def values_needing_translation(
    table: NormalizationTable,
    field_values: Dict[str, List[str]],
) -> Dict[str, List[str]]:
    """
    Unresolved values per categorical field, for fields where at least one
    unresolved value is non-ASCII. All unresolved values of such a field are
    sent together.
    """
    out: Dict[str, List[str]] = {}
    for field, values in field_values.items():
        if field not in CATEGORICAL_FIELDS:
            continue
        unresolved = table.unresolved(field, values)
        if any(not is_ascii(v) for v in unresolved):
            out[field] = unresolved
    return out


def enrich_concurrently(
    translator: Translator,
    headers: List[str],
    fields: Dict[str, List[str]],
    timeout: float = 20.0,
) -> Tuple[Dict[str, str], Dict[str, Dict[str, str]]]:
    """
    Run header and value translation side by side.

    A call that raises or is still running after timeout seconds counts as
    an empty result. Results are filtered through the acceptance rules
    whatever translator produced them.

    Returns:
        (header glosses, value translations)
    """
    results: Dict[str, Any] = {"headers": {}, "values": {}}
    if not headers and not fields:
        return {}, {}

    ex = ThreadPoolExecutor(max_workers=2)
    futures = {}
    if headers:
        futures[ex.submit(translator.translate_headers, list(headers))] = "headers"
    if fields:
        futures[ex.submit(translator.translate_values, dict(fields))] = "values"
    try:
        for fut in as_completed(futures, timeout=timeout):
            kind = futures[fut]
            try:
                results[kind] = fut.result() or {}
            except Exception as e:
                logger.warning("%s translation failed: %s", kind, e)
                logger.debug("translation failure detail", exc_info=True)
    except FuturesTimeout:
        logger.warning("Translation timed out after %.1fs; continuing without it", timeout)
    finally:
        # don't block on a hung request
        ex.shutdown(wait=False, cancel_futures=True)

    return (
        accept_header_glosses(list(headers), results["headers"]),
        accept_value_translations(dict(fields), results["values"]),
    )
