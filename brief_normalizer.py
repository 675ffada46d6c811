"""
Brief Normalizer
================

Turns a raw, untyped brief (camelCase wire keys, snake_case keys or the legacy
form aliases) into an immutable ``GenerationRequest``. Pure: no I/O, no
logging side effects beyond debug output.
"""

import logging
import math
import uuid
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from config import config
from errors import ValidationError
from models import (
    BrandArchetype,
    GenerationRequest,
    GradeLevel,
    HumanizationRates,
    KeywordRequirement,
    LanguageVariant,
    RequiredSource,
    Tone,
    WritingStyle,
)

logger = logging.getLogger(__name__)


def _aliases(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class RawBrief(BaseModel):
    """Loose view over the incoming brief; values are validated in ``normalize_brief``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    request_id: Optional[str] = Field(default=None, validation_alias=_aliases("requestId", "request_id"))
    user_id: Optional[str] = Field(default=None, validation_alias=_aliases("userId", "user_id"))
    content_type: Any = Field(default=None, validation_alias=_aliases("contentType", "content_type", "type"))
    prompt: Any = None
    preferred_headline: Optional[str] = Field(
        default=None, validation_alias=_aliases("preferredHeadline", "preferred_headline")
    )
    tone: Any = None
    writing_style: Any = Field(default=None, validation_alias=_aliases("writingStyle", "writing_style"))
    brand_archetype: Any = Field(default=None, validation_alias=_aliases("brandArchetype", "brand_archetype"))
    grade_level: Any = Field(
        default=None, validation_alias=_aliases("gradeLevel", "grade_level", "readingLevel", "reading_level")
    )
    target_word_count: Any = Field(
        default=None, validation_alias=_aliases("targetWordCount", "target_word_count", "wordCount", "word_count")
    )
    word_count_tolerance: Any = Field(
        default=None, validation_alias=_aliases("wordCountTolerance", "word_count_tolerance")
    )
    required_keywords: Any = Field(
        default=None, validation_alias=_aliases("requiredKeywords", "required_keywords", "keywords")
    )
    keyword_frequency: Any = Field(
        default=None, validation_alias=_aliases("keywordFrequency", "keyword_frequency")
    )
    required_sections: Any = Field(
        default=None, validation_alias=_aliases("requiredSections", "required_sections", "sections")
    )
    include_citations: Any = Field(default=None, validation_alias=_aliases("includeCitations", "include_citations"))
    required_sources: Any = Field(default=None, validation_alias=_aliases("requiredSources", "required_sources"))
    anti_ai_detection: Any = Field(
        default=None, validation_alias=_aliases("antiAIDetection", "antiAiDetection", "anti_ai_detection")
    )
    humanization_rates: Any = Field(
        default=None, validation_alias=_aliases("humanizationRates", "humanization_rates")
    )
    typos_percentage: Any = Field(default=None, validation_alias=_aliases("typosPercentage", "typos_percentage"))
    grammar_mistakes_percentage: Any = Field(
        default=None, validation_alias=_aliases("grammarMistakesPercentage", "grammar_mistakes_percentage")
    )
    misc_errors_percentage: Any = Field(
        default=None,
        validation_alias=_aliases("humanMisErrorsPercentage", "miscErrorsPercentage", "misc_errors_percentage"),
    )
    language_variant: Any = Field(
        default=None, validation_alias=_aliases("languageVariant", "englishVariant", "language_variant")
    )
    revision_rounds: Any = Field(default=None, validation_alias=_aliases("revisionRounds", "revision_rounds"))
    max_iterations: Any = Field(default=None, validation_alias=_aliases("maxIterations", "max_iterations"))
    concise_style: Any = Field(default=None, validation_alias=_aliases("conciseStyle", "concise_style"))
    region_focus: Optional[str] = Field(default=None, validation_alias=_aliases("regionFocus", "region_focus"))
    generate_seo: Any = Field(
        default=None,
        validation_alias=_aliases("generateSeo", "generateSEO", "generate_seo", "generateKeywords", "generateHashtags"),
    )


def normalize_brief(raw: Mapping[str, Any]) -> GenerationRequest:
    """
    Validate and canonicalize a raw brief.

    Raises:
        ValidationError: naming the offending wire field (camelCase).
    """
    if not isinstance(raw, Mapping):
        raise ValidationError("brief", "must be a JSON object")

    try:
        brief = RawBrief.model_validate(dict(raw))
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = str(first["loc"][0]) if first.get("loc") else "brief"
        raise ValidationError(field, first.get("msg", "invalid value")) from exc

    content_type = _required_text(brief.content_type, "contentType")
    prompt = _required_text(brief.prompt, "prompt")
    target_word_count = _parse_word_count(brief.target_word_count)
    tolerance = _parse_tolerance(brief.word_count_tolerance)
    keywords = _parse_keywords(brief.required_keywords, brief.keyword_frequency)

    try:
        request = _build_request(brief, content_type, prompt, target_word_count, tolerance, keywords)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = _camel_case(str(first["loc"][0])) if first.get("loc") else "brief"
        raise ValidationError(field, first.get("msg", "invalid value")) from exc
    logger.debug(
        "Normalized brief %s: %d words, %d keywords, %d sections",
        request.request_id,
        request.target_word_count,
        len(request.required_keywords),
        len(request.required_sections),
    )
    return request


def _camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _build_request(
    brief: RawBrief,
    content_type: str,
    prompt: str,
    target_word_count: int,
    tolerance: float,
    keywords: Tuple[KeywordRequirement, ...],
) -> GenerationRequest:
    return GenerationRequest(
        request_id=(brief.request_id or "").strip() or uuid.uuid4().hex,
        user_id=brief.user_id,
        content_type=content_type,
        prompt=prompt,
        preferred_headline=(brief.preferred_headline or "").strip(),
        tone=_enum_or_default(Tone, brief.tone, Tone(config.DEFAULT_TONE)),
        writing_style=_enum_or_default(WritingStyle, brief.writing_style, WritingStyle(config.DEFAULT_WRITING_STYLE)),
        brand_archetype=_enum_or_default(
            BrandArchetype, brief.brand_archetype, BrandArchetype(config.DEFAULT_BRAND_ARCHETYPE)
        ),
        grade_level=_enum_or_default(GradeLevel, brief.grade_level, None),
        target_word_count=target_word_count,
        word_count_tolerance=tolerance,
        required_keywords=keywords,
        required_sections=_parse_sections(brief.required_sections),
        include_citations=_parse_bool(brief.include_citations, "includeCitations"),
        required_sources=_parse_sources(brief.required_sources),
        anti_ai_detection=_parse_bool(brief.anti_ai_detection, "antiAIDetection"),
        humanization_rates=_parse_rates(brief),
        language_variant=_parse_variant(brief.language_variant),
        revision_rounds=_parse_int(brief.revision_rounds, "revisionRounds", default=0, minimum=0),
        max_iterations=_parse_optional_int(brief.max_iterations, "maxIterations", minimum=1, maximum=10),
        concise_style=_parse_bool(brief.concise_style, "conciseStyle"),
        region_focus=(brief.region_focus or "").strip(),
        generate_seo=_parse_bool(brief.generate_seo, "generateSeo"),
    )


def _required_text(value: Any, field: str) -> str:
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(field, "is required")
    return value.strip()


def _coerce_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(field, "must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValidationError(field, "must be an integer")


def _coerce_float(value: Any, field: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(field, "must be a number")
    number = None
    if isinstance(value, (int, float, str)):
        try:
            number = float(value.strip() if isinstance(value, str) else value)
        except (ValueError, OverflowError):
            pass
    if number is None:
        raise ValidationError(field, "must be a number")
    # nan and inf slip past every range comparison
    if not math.isfinite(number):
        raise ValidationError(field, "must be a finite number")
    return number


def _parse_word_count(value: Any) -> int:
    field = "targetWordCount"
    if value is None:
        raise ValidationError(field, "is required")
    count = _coerce_int(value, field)
    if count < config.MIN_WORD_COUNT or count > config.MAX_WORD_COUNT:
        raise ValidationError(
            field, f"must be between {config.MIN_WORD_COUNT} and {config.MAX_WORD_COUNT} (got {count})"
        )
    return count


def _parse_tolerance(value: Any) -> float:
    if value is None:
        return config.DEFAULT_WORD_COUNT_TOLERANCE
    tolerance = _coerce_float(value, "wordCountTolerance")
    if tolerance < 0.01 or tolerance > 0.5:
        raise ValidationError("wordCountTolerance", "must be between 0.01 and 0.5")
    return tolerance


def _parse_frequency_preset(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, str) and not value.strip().isdigit():
        preset = config.KEYWORD_FREQUENCY_PRESETS.get(value.strip().lower())
        if preset is None:
            allowed = ", ".join(sorted(config.KEYWORD_FREQUENCY_PRESETS))
            raise ValidationError("keywordFrequency", f"must be one of: {allowed}")
        return preset
    occurrences = _coerce_int(value, "keywordFrequency")
    if occurrences < 1:
        raise ValidationError("keywordFrequency", "must be at least 1")
    return occurrences


def _parse_keywords(value: Any, frequency: Any) -> Tuple[KeywordRequirement, ...]:
    field = "requiredKeywords"
    default_occurrences = _parse_frequency_preset(frequency)

    if value is None:
        value = []
    elif isinstance(value, str):
        value = [part for part in value.split(",")]
    if not isinstance(value, (list, tuple)):
        raise ValidationError(field, "must be a list")

    merged: Dict[str, KeywordRequirement] = {}
    for entry in value:
        keyword, occurrences = _keyword_entry(entry, default_occurrences or 1)
        keyword = keyword.strip()
        if not keyword:
            raise ValidationError(field, "keywords must be non-empty")
        if occurrences < 1 or occurrences > config.MAX_KEYWORD_OCCURRENCES:
            raise ValidationError(
                field, f"occurrences for '{keyword}' must be between 1 and {config.MAX_KEYWORD_OCCURRENCES}"
            )
        key = keyword.lower()
        existing = merged.get(key)
        if existing is None:
            merged[key] = KeywordRequirement(keyword=keyword, min_occurrences=occurrences)
        elif occurrences > existing.min_occurrences:
            merged[key] = KeywordRequirement(keyword=existing.keyword, min_occurrences=occurrences)

    if default_occurrences is not None and not merged:
        raise ValidationError(field, "at least one keyword is required when keywordFrequency is set")

    return tuple(merged.values())


def _keyword_entry(entry: Any, default_occurrences: int) -> Tuple[str, int]:
    field = "requiredKeywords"
    if isinstance(entry, str):
        return entry, default_occurrences
    if isinstance(entry, Mapping):
        keyword = entry.get("keyword", entry.get("term"))
        if not isinstance(keyword, str):
            raise ValidationError(field, "each keyword entry needs a 'keyword' string")
        raw = entry.get("minOccurrences", entry.get("min_occurrences", entry.get("occurrences")))
        occurrences = default_occurrences if raw is None else _coerce_int(raw, field)
        return keyword, occurrences
    if isinstance(entry, (list, tuple)) and len(entry) == 2 and isinstance(entry[0], str):
        return entry[0], _coerce_int(entry[1], field)
    raise ValidationError(field, "entries must be strings, objects or [keyword, count] pairs")


def _parse_sections(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = value.split("\n")
    if not isinstance(value, (list, tuple)):
        raise ValidationError("requiredSections", "must be a list of headings")
    sections: List[str] = []
    for entry in value:
        if not isinstance(entry, str):
            raise ValidationError("requiredSections", "headings must be strings")
        heading = entry.strip()
        if heading:
            sections.append(heading)
    return tuple(sections)


def _parse_sources(value: Any) -> Tuple[RequiredSource, ...]:
    field = "requiredSources"
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        raise ValidationError(field, "must be a list")
    sources: List[RequiredSource] = []
    for entry in value:
        if isinstance(entry, str):
            label, url, priority = entry, None, 3
        elif isinstance(entry, Mapping):
            label = entry.get("label", entry.get("source", entry.get("name")))
            url = entry.get("url") or None
            priority = _coerce_int(entry.get("priority", 3), field)
        else:
            raise ValidationError(field, "entries must be strings or objects")
        if not isinstance(label, str) or not label.strip():
            raise ValidationError(field, "each source needs a label")
        if priority < 1 or priority > 5:
            raise ValidationError(field, "priority must be between 1 and 5")
        sources.append(RequiredSource(label=label.strip(), url=url, priority=priority))
    return tuple(sources)


def _parse_rates(brief: RawBrief) -> HumanizationRates:
    nested = brief.humanization_rates if isinstance(brief.humanization_rates, Mapping) else {}
    if brief.humanization_rates is not None and not isinstance(brief.humanization_rates, Mapping):
        raise ValidationError("humanizationRates", "must be an object")

    def pick(flat: Any, *keys: str) -> Any:
        for key in keys:
            if key in nested:
                return nested[key]
        return flat

    typos = pick(brief.typos_percentage, "typos")
    grammar = pick(brief.grammar_mistakes_percentage, "grammarMistakes", "grammar_mistakes")
    misc = pick(brief.misc_errors_percentage, "miscErrors", "misc_errors", "humanMisErrors")

    return HumanizationRates(
        typos=_clamp_rate(typos, "typosPercentage"),
        grammar_mistakes=_clamp_rate(grammar, "grammarMistakesPercentage"),
        misc_errors=_clamp_rate(misc, "humanMisErrorsPercentage"),
    )


def _clamp_rate(value: Any, field: str) -> float:
    if value is None:
        rate = config.DEFAULT_HUMANIZATION_RATE
    else:
        rate = _coerce_float(value, field)
    return min(max(rate, 0.0), config.MAX_HUMANIZATION_RATE)


def _parse_variant(value: Any) -> LanguageVariant:
    if value is None or value == "":
        return LanguageVariant.US
    if isinstance(value, str):
        normalized = value.strip().upper()
        if normalized in ("US", "UK"):
            return LanguageVariant(normalized)
    raise ValidationError("languageVariant", "must be 'US' or 'UK'")


def _parse_bool(value: Any, field: str) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false", "1", "0", "yes", "no"):
        return value.strip().lower() in ("true", "1", "yes")
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise ValidationError(field, "must be a boolean")


def _parse_int(value: Any, field: str, *, default: int, minimum: int) -> int:
    if value is None:
        return default
    parsed = _coerce_int(value, field)
    if parsed < minimum:
        raise ValidationError(field, f"must be at least {minimum}")
    return parsed


def _parse_optional_int(value: Any, field: str, *, minimum: int, maximum: int) -> Optional[int]:
    if value is None:
        return None
    parsed = _coerce_int(value, field)
    if parsed < minimum or parsed > maximum:
        raise ValidationError(field, f"must be between {minimum} and {maximum}")
    return parsed


def _enum_or_default(enum_cls, value: Any, default):
    if not isinstance(value, str):
        return default
    candidate = value.strip().lower().replace("_", "-")
    for member in enum_cls:
        if member.value.lower() == candidate:
            return member
    return default
