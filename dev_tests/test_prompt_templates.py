"""
Tests for core/prompt_templates.py - prompt compilation, repair and SEO prompts.
"""

from constraint_evaluator import ConstraintEvaluator
from core.prompt_templates import (
    build_repair_prompt,
    build_seo_prompt,
    compile_prompt,
    describe_failure,
    parse_seo_keywords,
)
from models import GradeLevel, LanguageVariant, RequiredSource, Tone


class TestCompilePrompt:
    """Tests for compile_prompt()."""

    def test_same_request_same_payload(self, request_factory):
        request = request_factory(keywords={"solar panels": 3}, required_sections=("Intro", "Benefits"))
        first = compile_prompt(request)
        second = compile_prompt(request)
        assert first == second
        assert first.fingerprint() == second.fingerprint()

    def test_word_count_and_style_directives(self, request_factory):
        request = request_factory(tone=Tone.CASUAL, grade_level=GradeLevel.GRADE_4_6, region_focus="Texas")
        system = compile_prompt(request).system_prompt

        assert "Exactly 500 words" in system
        assert "450-550" in system
        assert "casual tone (relaxed, conversational, and approachable)" in system
        assert "grade 4-6" in system
        assert "Texas" in system
        assert "American English" in system

    def test_tone_without_description_uses_default(self, request_factory):
        system = compile_prompt(request_factory(tone=Tone.SERIOUS)).system_prompt
        assert "serious tone (balanced and appropriate)" in system

    def test_uk_spelling(self, request_factory):
        system = compile_prompt(request_factory(language_variant=LanguageVariant.UK)).system_prompt
        assert "British English" in system
        assert "American English" not in system

    def test_keywords_and_sections_are_listed_in_order(self, request_factory):
        request = request_factory(
            keywords={"solar panels": 3, "net metering": 1},
            required_sections=("Intro", "Benefits", "Conclusion"),
        )
        system = compile_prompt(request).system_prompt

        assert '"solar panels": at least 3 time(s)' in system
        assert '"net metering": at least 1 time(s)' in system
        intro = system.index("1. Intro")
        benefits = system.index("2. Benefits")
        conclusion = system.index("3. Conclusion")
        assert intro < benefits < conclusion

    def test_sources_are_sorted_by_priority(self, request_factory):
        request = request_factory(
            include_citations=True,
            required_sources=(
                RequiredSource(label="IEA", priority=4),
                RequiredSource(label="NREL", url="https://www.nrel.gov", priority=1),
            ),
        )
        system = compile_prompt(request).system_prompt
        assert "[1]" in system
        assert system.index("NREL (https://www.nrel.gov)") < system.index("IEA")

    def test_no_citation_block_when_not_requested(self, request_factory):
        assert "CITATIONS:" not in compile_prompt(request_factory()).system_prompt

    def test_user_prompt_carries_brief_and_headline(self, request_factory):
        request = request_factory(preferred_headline="Go Solar Today")
        payload = compile_prompt(request)
        assert request.prompt in payload.user_prompt
        assert "Use this headline: Go Solar Today" in payload.user_prompt
        assert "Title the piece exactly: Go Solar Today" in payload.system_prompt

    def test_revision_rounds(self, request_factory):
        assert "2 revision round(s)" in compile_prompt(request_factory(revision_rounds=2)).system_prompt
        assert "revision round" not in compile_prompt(request_factory()).system_prompt


class TestRepairPrompt:
    """Tests for build_repair_prompt() and describe_failure()."""

    def test_repair_lists_only_failing_constraints(self, request_factory, build_article):
        request = request_factory(
            keywords={"solar panels": 3},
            required_sections=("Introduction", "Benefits", "Conclusion"),
        )
        draft = build_article(total_words=500, keywords={"solar panels": 1})
        report = ConstraintEvaluator().evaluate(draft, request)
        base = compile_prompt(request)

        repair = build_repair_prompt(request, base, draft, report)

        assert repair.system_prompt == base.system_prompt
        assert 'KEYWORD "solar panels": found 1 time(s), needs at least 3' in repair.user_prompt
        assert "Add 2 more" in repair.user_prompt
        assert "WORD COUNT" not in repair.user_prompt
        assert "SECTIONS" not in repair.user_prompt
        assert repair.user_prompt.endswith(draft)

    def test_word_count_failure_gives_direction(self, request_factory, build_article):
        request = request_factory(target_word_count=500)
        report = ConstraintEvaluator().evaluate(build_article(total_words=400), request)
        text = describe_failure(report.get("word_count"), request)
        assert "400 words" in text
        assert "expand by about 100 words" in text

        report = ConstraintEvaluator().evaluate(build_article(total_words=600), request)
        assert "cut about 100 words" in describe_failure(report.get("word_count"), request)

    def test_section_failure_names_missing_heading(self, request_factory, build_article):
        request = request_factory(required_sections=("Introduction", "Costs", "Conclusion"))
        report = ConstraintEvaluator().evaluate(build_article(), request)
        text = describe_failure(report.get("sections"), request)
        assert "Introduction > Costs > Conclusion" in text
        assert "Missing or out of order: Costs" in text

    def test_reading_level_failure(self, request_factory, build_article):
        request = request_factory(grade_level=GradeLevel.COLLEGE)
        report = ConstraintEvaluator().evaluate(build_article(), request)
        text = describe_failure(report.get("reading_level"), request)
        assert "target college" in text
        assert "raise the sophistication" in text


class TestSeoPrompt:

    def test_short_content_is_sent_whole(self):
        payload = build_seo_prompt("Solar panels cut bills.")
        assert payload.user_prompt.endswith("Solar panels cut bills.")
        assert "JSON" in payload.system_prompt
        assert build_seo_prompt("Solar panels cut bills.") == payload

    def test_long_content_is_truncated(self):
        content = "x" * 5000
        payload = build_seo_prompt(content)
        assert payload.user_prompt.endswith("x" * 4000 + "...")
        assert "x" * 4001 not in payload.user_prompt


class TestParseSeoKeywords:

    def test_object_reply_splits_hashtags(self):
        keywords, hashtags = parse_seo_keywords('{"keywords": ["solar panels", "#SolarPower", "net metering"]}')
        assert keywords == ["solar panels", "net metering"]
        assert hashtags == ["#SolarPower"]

    def test_bare_list_reply(self):
        assert parse_seo_keywords('["home energy", "#GoGreen"]') == (["home energy"], ["#GoGreen"])

    def test_prose_reply_falls_back_to_quoted_strings_and_hashtags(self):
        """
        Given: A reply that is not valid JSON
        When: It is parsed
        Then: Quoted phrases and bare hashtags are still recovered
        """
        text = 'Sure! Try "solar panels", "rooftop solar" and also #CleanEnergy #Solar'
        keywords, hashtags = parse_seo_keywords(text)
        assert keywords == ["solar panels", "rooftop solar"]
        assert hashtags == ["#CleanEnergy", "#Solar"]

    def test_duplicates_dropped_and_capped_at_fifteen(self):
        entries = ", ".join(f'"keyword {index}"' for index in range(20))
        keywords, hashtags = parse_seo_keywords(f'["Solar", "solar", {entries}]')
        assert keywords[0] == "Solar"
        assert "solar" not in keywords
        assert len(keywords) + len(hashtags) == 15

    def test_unusable_reply_is_empty(self):
        assert parse_seo_keywords("I cannot help with that.") == ([], [])
        assert parse_seo_keywords('{"keywords": "solar"}') == ([], [])
