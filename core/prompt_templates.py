"""
Prompt templates for content generation and targeted repair.

Every builder here is a pure function of its arguments: the same request
always renders to byte-identical prompts.
"""

import re
from typing import List, Tuple

import json_utils
from models import (
    BrandArchetype,
    ConstraintReport,
    ConstraintResult,
    GenerationRequest,
    GradeLevel,
    LanguageVariant,
    PromptPayload,
    Tone,
    WritingStyle,
)
from word_count_utils import build_word_count_instructions, calculate_word_count_range

TONE_DESCRIPTIONS = {
    Tone.PROFESSIONAL: "formal, authoritative, and credible",
    Tone.CASUAL: "relaxed, conversational, and approachable",
    Tone.PERSUASIVE: "convincing, compelling, and motivational",
    Tone.INFORMATIVE: "educational, clear, and objective",
    Tone.HUMOROUS: "light-hearted, entertaining, and witty",
    Tone.FORMAL: "sophisticated, serious, and structured",
    Tone.ACADEMIC: "precise, evidence-based, and measured",
    Tone.ENTHUSIASTIC: "energetic, upbeat, and positive",
    Tone.AUTHORITATIVE: "confident, expert, and decisive",
    Tone.CONVERSATIONAL: "natural, friendly, and direct",
    Tone.TECHNICAL: "exact, detailed, and unambiguous",
    Tone.COMPASSIONATE: "warm, understanding, and kind",
    Tone.INSPIRING: "uplifting, hopeful, and motivating",
}
DEFAULT_TONE_DESCRIPTION = "balanced and appropriate"

ARCHETYPE_DESCRIPTIONS = {
    BrandArchetype.SAGE: "wise, thoughtful, and insightful",
    BrandArchetype.HERO: "courageous, triumphant, and inspiring",
    BrandArchetype.OUTLAW: "rebellious, disruptive, and revolutionary",
    BrandArchetype.EXPLORER: "adventurous, independent, and pioneering",
    BrandArchetype.CREATOR: "innovative, artistic, and imaginative",
    BrandArchetype.RULER: "authoritative, structured, and commanding",
    BrandArchetype.CAREGIVER: "nurturing, supportive, and empathetic",
    BrandArchetype.INNOCENT: "optimistic, pure, and straightforward",
    BrandArchetype.EVERYMAN: "relatable, authentic, and down-to-earth",
    BrandArchetype.JESTER: "playful, entertaining, and humorous",
    BrandArchetype.LOVER: "passionate, indulgent, and appreciative",
    BrandArchetype.MAGICIAN: "transformative, visionary, and charismatic",
}
DEFAULT_ARCHETYPE_DESCRIPTION = "authentic and engaging"

STYLE_DESCRIPTIONS = {
    WritingStyle.INFORMATIVE: "explain the topic clearly with facts and examples",
    WritingStyle.CONVERSATIONAL: "address the reader directly as in a natural conversation",
    WritingStyle.NARRATIVE: "carry the points through a story with a clear arc",
    WritingStyle.TECHNICAL: "use precise terminology and step-by-step detail",
    WritingStyle.ACADEMIC: "argue from evidence with a formal, structured register",
    WritingStyle.PROMOTIONAL: "highlight benefits and close with a call to action",
    WritingStyle.ANALYTICAL: "break the subject into parts and weigh trade-offs",
    WritingStyle.DESCRIPTIVE: "use vivid, concrete sensory detail",
    WritingStyle.JOURNALISTIC: "lead with the key facts, then add context",
    WritingStyle.EDUCATIONAL: "teach progressively from basics to advanced points",
    WritingStyle.PERSUASIVE: "build a reasoned case toward a clear position",
    WritingStyle.TUTORIAL: "walk the reader through concrete steps",
}

GRADE_DESCRIPTIONS = {
    GradeLevel.GRADE_4_6: "Simple, clear, accessible writing (grade 4-6 level)",
    GradeLevel.GRADE_7_10: "Intermediate complexity for general audiences (grade 7-10 level)",
    GradeLevel.GRADE_11_12: "Advanced writing for professional or academic use (grade 11-12 level)",
    GradeLevel.COLLEGE: "High-level content with complex vocabulary and structure",
}

SPELLING_DIRECTIVES = {
    LanguageVariant.US: "Use American English spelling and vocabulary (color, organize, center).",
    LanguageVariant.UK: "Use British English spelling and vocabulary (colour, organise, centre).",
}

WRITING_CONSTRAINTS = """CONSTRAINTS:
- Do not include placeholder text or lorem ipsum
- Do not include meta-commentary about the content itself
- Do not mention that you are an AI unless explicitly asked to do so
- Do not start with phrases like "Here's a..." or "Below is..."
- Output only the finished content, nothing before or after it"""


def compile_prompt(request: GenerationRequest) -> PromptPayload:
    """Render a request into the instruction payload sent to the engine."""
    return PromptPayload(
        system_prompt=build_system_prompt(request),
        user_prompt=build_user_prompt(request),
    )


def build_system_prompt(request: GenerationRequest) -> str:
    tone_description = TONE_DESCRIPTIONS.get(request.tone, DEFAULT_TONE_DESCRIPTION)
    archetype_description = ARCHETYPE_DESCRIPTIONS.get(request.brand_archetype, DEFAULT_ARCHETYPE_DESCRIPTION)
    style_description = STYLE_DESCRIPTIONS[request.writing_style]

    sections: List[str] = [
        "You are a professional content creator with expertise in creating high-quality, engaging content.",
        "",
        "CONTENT REQUIREMENTS:",
        f"- Content type: {request.content_type}",
        f"- Write in a {request.tone.value} tone ({tone_description})",
        f"- Use a {request.writing_style.value} writing style: {style_description}",
        f"- Embody the {request.brand_archetype.value} brand archetype ({archetype_description})",
        f"- {SPELLING_DIRECTIVES[request.language_variant]}",
    ]
    if request.grade_level is not None:
        sections.append(f"- Reading level: {GRADE_DESCRIPTIONS[request.grade_level]}")
    if request.region_focus:
        sections.append(f"- Focus examples, data and references on: {request.region_focus}")

    sections.extend(["", build_word_count_instructions(request.target_word_count, request.word_count_tolerance)])

    keyword_block = _keyword_block(request)
    if keyword_block:
        sections.extend(["", keyword_block])

    sections.extend(["", _structure_block(request)])

    citation_block = _citation_block(request)
    if citation_block:
        sections.extend(["", citation_block])

    if request.revision_rounds:
        sections.extend([
            "",
            f"DELIVERY: The client may request up to {request.revision_rounds} revision round(s) after delivery. "
            "Deliver a complete, final-quality piece now.",
        ])

    sections.extend(["", WRITING_CONSTRAINTS])
    return "\n".join(sections)


def build_user_prompt(request: GenerationRequest) -> str:
    lines = [f"Write a {request.content_type} based on the following brief.", "", request.prompt]
    if request.preferred_headline:
        lines.extend(["", f"Use this headline: {request.preferred_headline}"])
    return "\n".join(lines)


def _keyword_block(request: GenerationRequest) -> str:
    if not request.required_keywords:
        return ""
    lines = ["REQUIRED KEYWORDS (exact phrase, case-insensitive, minimum occurrences):"]
    for requirement in request.required_keywords:
        lines.append(f'- "{requirement.keyword}": at least {requirement.min_occurrences} time(s)')
    lines.append("- Work every keyword in naturally; do not alter, hyphenate or split the phrases")
    return "\n".join(lines)


def _structure_block(request: GenerationRequest) -> str:
    lines = ["CONTENT STRUCTURE:"]
    if request.preferred_headline:
        lines.append(f"- Title the piece exactly: {request.preferred_headline}")
    else:
        lines.append("- Include a compelling headline/title")
    if request.required_sections:
        lines.append("- Use exactly these section headings, in this order, each on its own line as a markdown '## ' heading:")
        for position, heading in enumerate(request.required_sections, start=1):
            lines.append(f"  {position}. {heading}")
    else:
        lines.append("- Organize with clear sections and subheadings where appropriate")
    lines.append("- Maintain a logical flow of ideas with varied sentence structure")
    return "\n".join(lines)


def _citation_block(request: GenerationRequest) -> str:
    if not request.include_citations and not request.required_sources:
        return ""
    lines = ["CITATIONS:"]
    if request.include_citations:
        lines.append("- Support factual claims with numbered citations like [1] and list them under a 'References:' line at the end")
    if request.required_sources:
        lines.append("- Cite each of these sources by name (highest priority first):")
        ordered = sorted(request.required_sources, key=lambda source: source.priority)
        for source in ordered:
            url = f" ({source.url})" if source.url else ""
            lines.append(f"  - {source.label}{url} [priority {source.priority}]")
    return "\n".join(lines)


def describe_failure(result: ConstraintResult, request: GenerationRequest) -> str:
    """One repair instruction for a failing constraint, including its measured distance."""
    detail = result.detail
    if result.kind == "word_count":
        minimum, maximum = calculate_word_count_range(request.target_word_count, request.word_count_tolerance)
        actual = detail.get("actual", 0)
        gap = request.target_word_count - actual
        action = f"expand by about {gap} words" if gap > 0 else f"cut about {-gap} words"
        return (
            f"- WORD COUNT: the draft has {actual} words ({result.distance:+.0%} from target). "
            f"Target is {request.target_word_count} words (allowed {minimum}-{maximum}); {action}."
        )
    if result.kind == "keyword":
        missing = int(result.distance)
        return (
            f'- KEYWORD "{detail.get("keyword")}": found {detail.get("actual")} time(s), '
            f'needs at least {detail.get("required")}. Add {missing} more natural occurrence(s).'
        )
    if result.kind == "sections":
        ordered = " > ".join(request.required_sections)
        missing = ", ".join(detail.get("missing", []))
        return f"- SECTIONS: headings must appear in this order: {ordered}. Missing or out of order: {missing}."
    if result.kind == "reading_level":
        direction = "simplify" if result.distance > 0 else "raise the sophistication of"
        return (
            f"- READING LEVEL: measured {detail.get('measured')} (Flesch-Kincaid {detail.get('fk_grade')}), "
            f"target {detail.get('target')}; {direction} sentences and vocabulary."
        )
    if result.kind == "citations":
        missing = ", ".join(detail.get("missing", []))
        return f"- CITATIONS: add the missing citation items: {missing}."
    return f"- {result.name.upper()}: not satisfied (distance {result.distance:+.2f})."


def build_repair_prompt(
    request: GenerationRequest,
    base_payload: PromptPayload,
    draft: str,
    report: ConstraintReport,
) -> PromptPayload:
    """Targeted revision prompt listing only the failing constraints of ``report``."""
    failures = [describe_failure(result, request) for result in report.failing()]
    user_prompt = "\n".join([
        "Revise the draft below so that it satisfies the following requirements:",
        "",
        *failures,
        "",
        "Preserve everything else: keep the passing requirements intact, keep the section headings, "
        "tone and structure, and do not remove existing keyword occurrences.",
        "Return the complete revised text only.",
        "",
        "ORIGINAL BRIEF:",
        request.prompt,
        "",
        "CURRENT DRAFT:",
        draft,
    ])
    return PromptPayload(system_prompt=base_payload.system_prompt, user_prompt=user_prompt)


SEO_CONTENT_LIMIT = 4000
SEO_MAX_KEYWORDS = 15

SEO_SYSTEM_PROMPT = (
    "You are an expert SEO specialist. Extract 10-15 search keywords and hashtags for the content "
    "you are given: mix primary keywords, long-tail phrases and trending hashtags. "
    "Hashtags start with #. "
    'Respond ONLY with a JSON object of the form {"keywords": ["keyword", "#hashtag"]}.'
)

_QUOTED = re.compile(r'"([^"\n]{1,80})"')
_HASHTAG = re.compile(r"#\w+")


def build_seo_prompt(content: str) -> PromptPayload:
    """Keyword/hashtag extraction prompt; long content is cut to its first 4000 characters."""
    excerpt = content if len(content) <= SEO_CONTENT_LIMIT else content[:SEO_CONTENT_LIMIT] + "..."
    user_prompt = "\n".join([
        "Generate SEO keywords and hashtags for the following content:",
        "",
        excerpt,
    ])
    return PromptPayload(system_prompt=SEO_SYSTEM_PROMPT, user_prompt=user_prompt)


def parse_seo_keywords(text: str) -> Tuple[List[str], List[str]]:
    """
    Split an engine reply into ``(keywords, hashtags)``.

    Accepts a JSON list or an object with a ``keywords`` list; a reply that is not
    JSON at all falls back to quoted strings and bare #hashtags found in the text.
    Duplicates are dropped case-insensitively and at most 15 entries are kept.
    """
    entries: List[str] = []
    try:
        parsed = json_utils.loads(text.strip())
    except json_utils.JSONDecodeError:
        entries = _QUOTED.findall(text) + _HASHTAG.findall(text)
    else:
        if isinstance(parsed, dict):
            parsed = parsed.get("keywords")
        if isinstance(parsed, list):
            entries = [item for item in parsed if isinstance(item, str)]

    keywords: List[str] = []
    hashtags: List[str] = []
    seen = set()
    for entry in entries:
        cleaned = entry.strip()
        if not cleaned or cleaned.lower() in seen or cleaned.lower() == "keywords":
            continue
        seen.add(cleaned.lower())
        (hashtags if cleaned.startswith("#") else keywords).append(cleaned)
        if len(seen) >= SEO_MAX_KEYWORDS:
            break
    return keywords, hashtags
