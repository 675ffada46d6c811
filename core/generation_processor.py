"""
Generation pipeline: the refinement loop and the public entry points.

Init -> Generating -> Evaluating -> {Accepted | Repairing | Regenerating | Exhausted}
with terminal Failed / Cancelled states. Humanization runs once, after the
loop has produced the final draft.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Mapping, Optional

from ai_service import GenerationEngine, generate_with_retries, get_engine
from brief_normalizer import normalize_brief
from config import RefinementSettings, config
from constraint_evaluator import ConstraintEvaluator
from errors import (
    ConstraintUnsatisfiable,
    EngineUnavailable,
    GenerationCancelled,
    GenerationError,
)
from humanizer import Humanizer
from logging_utils import Phase, PhaseLogger, create_phase_logger
from models import (
    ConstraintReport,
    GenerationRequest,
    GenerationResult,
    HumanizationSummary,
    PromptPayload,
    RefinementState,
    SamplingConfig,
    SeoKeywords,
)
from phrase_cleanup import remove_redundant_phrases
from usage_tracking import UsageTracker

from .analytics import GenerationMetrics, MetricsSink
from .decision_engine import (
    ACCEPT,
    EXHAUST,
    REGENERATE,
    ScoredDraft,
    decide,
    is_soft_acceptable,
    select_best_draft,
)
from .prompt_templates import build_repair_prompt, compile_prompt
from .result_assembler import assemble_result
from .seo_processor import generate_seo_keywords

logger = logging.getLogger(__name__)

USAGE_PHASE_GENERATION = "generation"
USAGE_PHASE_REPAIR = "repair"
USAGE_PHASE_REGENERATION = "regeneration"


@dataclass(frozen=True)
class RefinementOutcome:
    text: str
    report: Optional[ConstraintReport]
    iteration_count: int
    final_state: RefinementState
    partial: bool = False
    soft_accepted: bool = False
    removed_phrases: int = 0


def max_tokens_for(request: GenerationRequest) -> int:
    return max(config.ENGINE_MAX_TOKENS, int(request.target_word_count * config.ENGINE_TOKENS_PER_WORD))


def _raise_if_cancelled(cancel_event: Optional[asyncio.Event], iteration: int) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise GenerationCancelled(iteration_count=iteration)


class RefinementController:
    """
    Runs the generate / evaluate / decide loop for one request.

    Owns every draft it produces; nothing survives past ``run``.
    """

    def __init__(
        self,
        engine: GenerationEngine,
        evaluator: Optional[ConstraintEvaluator] = None,
        settings: Optional[RefinementSettings] = None,
        *,
        max_attempts: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
        call_timeout: Optional[float] = None,
        wall_clock_budget: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        phase_logger: Optional[PhaseLogger] = None,
    ):
        self.engine = engine
        self.evaluator = evaluator or ConstraintEvaluator()
        self.settings = settings or config.REFINEMENT
        self.max_attempts = max_attempts or config.ENGINE_MAX_ATTEMPTS
        self.retry_base_delay = config.ENGINE_RETRY_BASE_DELAY if retry_base_delay is None else retry_base_delay
        self.call_timeout = call_timeout or config.ENGINE_TIMEOUT_SECONDS
        self.wall_clock_budget = wall_clock_budget or config.WALL_CLOCK_BUDGET_SECONDS
        self.sleep = sleep
        self.clock = clock
        self.phase_logger = phase_logger

    def _log(self, request: GenerationRequest) -> PhaseLogger:
        if self.phase_logger is None:
            self.phase_logger = create_phase_logger(request.request_id, config.VERBOSE, config.EXTRA_VERBOSE)
        return self.phase_logger

    def _next_temperature(self, temperature: float) -> float:
        adjusted = temperature + self.settings.regeneration_temperature_step
        return min(max(adjusted, self.settings.min_temperature), self.settings.max_temperature)

    async def run(
        self,
        request: GenerationRequest,
        *,
        usage: Optional[UsageTracker] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RefinementOutcome:
        phase_logger = self._log(request)
        usage = usage if usage is not None else UsageTracker()
        max_iterations = request.max_iterations or config.MAX_ITERATIONS
        deadline = self.clock() + self.wall_clock_budget

        _raise_if_cancelled(cancel_event, 0)
        with phase_logger.phase(Phase.COMPILE):
            base_payload = compile_prompt(request)
            phase_logger.debug(f"Prompt fingerprint {base_payload.fingerprint()[:12]}")

        payload: PromptPayload = base_payload
        usage_phase = USAGE_PHASE_GENERATION
        temperature = config.ENGINE_TEMPERATURE
        drafts: List[ScoredDraft] = []
        removed_phrases = 0
        iteration = 0

        while iteration < max_iterations:
            _raise_if_cancelled(cancel_event, iteration)
            remaining = deadline - self.clock()
            if remaining <= 0:
                phase_logger.warning(f"Wall-clock budget of {self.wall_clock_budget:.0f}s spent after {iteration} iteration(s)")
                break

            phase_logger.set_iteration(iteration + 1)
            sampling = SamplingConfig(temperature=temperature, max_tokens=max_tokens_for(request))
            phase_name = {
                USAGE_PHASE_REPAIR: Phase.REPAIR,
                USAGE_PHASE_REGENERATION: Phase.REGENERATION,
            }.get(usage_phase, Phase.GENERATION)

            with phase_logger.phase(phase_name):
                phase_logger.log_prompt(
                    getattr(self.engine, "model", "engine"),
                    payload.system_prompt,
                    payload.user_prompt,
                    temperature=sampling.temperature,
                    max_tokens=sampling.max_tokens,
                )
                try:
                    response = await generate_with_retries(
                        self.engine,
                        payload,
                        sampling,
                        timeout=self.call_timeout,
                        max_attempts=self.max_attempts,
                        base_delay=self.retry_base_delay,
                        sleep=self.sleep,
                        deadline=deadline,
                        clock=self.clock,
                    )
                except EngineUnavailable as exc:
                    if drafts and (exc.deadline_reached or self.clock() >= deadline):
                        phase_logger.warning("Wall-clock budget ran out during an engine call; keeping best draft")
                        break
                    exc.iteration_count = iteration
                    raise
                except GenerationError as exc:
                    exc.iteration_count = iteration
                    phase_logger.error(f"Engine rejected the request: {exc.message}")
                    raise

            iteration += 1
            usage.record(phase=usage_phase, iteration=iteration, usage=response.usage, model=response.model)
            phase_logger.log_response(response.model or "engine", response.text, {"finish_reason": response.finish_reason})

            text = response.text
            if request.concise_style:
                text, removed = remove_redundant_phrases(text, concise_style=True)
                removed_phrases += len(removed)

            _raise_if_cancelled(cancel_event, iteration)
            with phase_logger.phase(Phase.EVALUATION):
                try:
                    report = self.evaluator.evaluate(text, request)
                except Exception:
                    logger.exception("Constraint evaluation failed on iteration %d; regenerating", iteration)
                    payload, usage_phase = base_payload, USAGE_PHASE_REGENERATION
                    continue

                for result in report.results.values():
                    phase_logger.log_constraint_result(result.name, result.passed, result.distance)
                drafts.append(ScoredDraft(iteration=iteration, text=text, report=report))
                decision = decide(report, iteration, max_iterations, self.settings)
                phase_logger.log_decision(decision.action, decision.reason)

            if decision.action == ACCEPT:
                return RefinementOutcome(
                    text=text,
                    report=report,
                    iteration_count=iteration,
                    final_state=RefinementState.ACCEPTED,
                    removed_phrases=removed_phrases,
                )
            if decision.action == EXHAUST:
                break
            if decision.action == REGENERATE:
                payload, usage_phase = base_payload, USAGE_PHASE_REGENERATION
                temperature = self._next_temperature(temperature)
            else:
                payload, usage_phase = build_repair_prompt(request, base_payload, text, report), USAGE_PHASE_REPAIR

        best = select_best_draft(drafts, self.settings)
        if best is None:
            raise EngineUnavailable(
                "No usable draft was produced within the refinement budget",
                iteration_count=iteration,
            )

        if is_soft_acceptable(best.report, self.settings):
            phase_logger.info(f"Soft-accepting draft from iteration {best.iteration}")
            return RefinementOutcome(
                text=best.text,
                report=best.report,
                iteration_count=iteration,
                final_state=RefinementState.ACCEPTED,
                soft_accepted=True,
                removed_phrases=removed_phrases,
            )

        failing = ", ".join(item.name for item in best.report.failing())
        phase_logger.warning(f"Refinement exhausted; best draft from iteration {best.iteration} still fails: {failing}")
        return RefinementOutcome(
            text=best.text,
            report=best.report,
            iteration_count=iteration,
            final_state=RefinementState.EXHAUSTED,
            partial=True,
            removed_phrases=removed_phrases,
        )


def _status_for(result: GenerationResult) -> str:
    if result.partial:
        return "partial"
    if result.soft_accepted:
        return "soft_accepted"
    return "accepted"


def _record_metrics(
    metrics_sink: Optional[MetricsSink],
    request: GenerationRequest,
    usage: UsageTracker,
    *,
    status: str,
    iteration_count: int,
    processing_time_ms: int,
    error_code: Optional[str] = None,
) -> None:
    if metrics_sink is None:
        return
    totals = usage.total()
    metrics_sink.record(
        GenerationMetrics(
            request_id=request.request_id,
            user_id=request.user_id,
            status=status,
            error_code=error_code,
            iteration_count=iteration_count,
            engine_calls=usage.call_count,
            processing_time_ms=processing_time_ms,
            prompt_tokens=totals.prompt_tokens,
            completion_tokens=totals.completion_tokens,
            total_tokens=totals.total_tokens,
            cost_usd=usage.total_cost(),
        )
    )


async def process_generation(
    request: GenerationRequest,
    *,
    engine: Optional[GenerationEngine] = None,
    evaluator: Optional[ConstraintEvaluator] = None,
    humanizer: Optional[Humanizer] = None,
    cancel_event: Optional[asyncio.Event] = None,
    metrics_sink: Optional[MetricsSink] = None,
    strict: bool = False,
    controller: Optional[RefinementController] = None,
) -> GenerationResult:
    """
    Run the full pipeline for a normalized request.

    Raises:
        EngineUnavailable: transient backend failure after retries (retryable)
        EngineRejected: backend refusal, never retried
        GenerationCancelled: ``cancel_event`` was set
        ConstraintUnsatisfiable: only when ``strict`` and the result is partial
    """
    started = time.perf_counter()
    usage = UsageTracker()
    phase_logger = create_phase_logger(request.request_id, config.VERBOSE, config.EXTRA_VERBOSE)
    if controller is None:
        controller = RefinementController(
            engine or get_engine(),
            evaluator or ConstraintEvaluator(),
            phase_logger=phase_logger,
        )
    iteration_count = 0

    def elapsed_ms() -> int:
        return int((time.perf_counter() - started) * 1000)

    try:
        outcome = await controller.run(request, usage=usage, cancel_event=cancel_event)
        iteration_count = outcome.iteration_count

        text = outcome.text
        humanization = HumanizationSummary()
        if request.anti_ai_detection:
            _raise_if_cancelled(cancel_event, iteration_count)
            with phase_logger.phase(Phase.HUMANIZATION):
                try:
                    humanized = (humanizer or Humanizer()).humanize(text, request)
                except Exception as exc:
                    logger.exception("Humanization failed for %s", request.request_id)
                    raise EngineUnavailable(
                        "Post-processing failed; please retry the generation",
                        iteration_count=iteration_count,
                        cause=exc,
                    ) from exc
                phase_logger.info(
                    f"{humanized.typos_applied} typos, {humanized.grammar_applied} grammar, "
                    f"{humanized.misc_applied} misc edits (seed {humanized.seed})"
                )
            text = humanized.text
            humanization = HumanizationSummary(
                applied=True,
                seed=humanized.seed,
                typos=humanized.typos_applied,
                grammar_mistakes=humanized.grammar_applied,
                misc_errors=humanized.misc_applied,
                words_removed=humanized.words_removed,
            )

        seo: Optional[SeoKeywords] = None
        if request.generate_seo:
            _raise_if_cancelled(cancel_event, iteration_count)
            with phase_logger.phase(Phase.SEO):
                try:
                    seo = await generate_seo_keywords(
                        text, engine=engine or getattr(controller, "engine", None), usage=usage
                    )
                except GenerationError as exc:
                    phase_logger.warning(f"SEO suggestions skipped: {exc.message}")
                else:
                    phase_logger.info(f"{len(seo.keywords)} keywords, {len(seo.hashtags)} hashtags")

        _raise_if_cancelled(cancel_event, iteration_count)
        with phase_logger.phase(Phase.COMPLETION):
            result = assemble_result(
                request,
                text,
                iteration_count=outcome.iteration_count,
                processing_time_ms=elapsed_ms(),
                usage=usage,
                final_state=outcome.final_state,
                report=outcome.report,
                partial=outcome.partial,
                soft_accepted=outcome.soft_accepted,
                humanization=humanization,
                removed_phrases=outcome.removed_phrases,
                seo=seo,
            )
            phase_logger.info(
                f"{result.word_count} words after {result.iteration_count} iteration(s) in {result.processing_time_ms} ms"
            )
        phase_logger.log_timing_summary()
    except GenerationError as exc:
        status = "cancelled" if isinstance(exc, GenerationCancelled) else "failed"
        _record_metrics(
            metrics_sink, request, usage,
            status=status,
            iteration_count=exc.iteration_count,
            processing_time_ms=elapsed_ms(),
            error_code=exc.code,
        )
        raise
    except Exception as exc:
        logger.exception("Unexpected pipeline failure for %s", request.request_id)
        _record_metrics(
            metrics_sink, request, usage,
            status="failed",
            iteration_count=iteration_count,
            processing_time_ms=elapsed_ms(),
            error_code=EngineUnavailable.code,
        )
        raise EngineUnavailable(
            "Internal pipeline failure; please retry the generation",
            iteration_count=iteration_count,
            cause=exc,
        ) from exc

    _record_metrics(
        metrics_sink, request, usage,
        status=_status_for(result),
        iteration_count=result.iteration_count,
        processing_time_ms=result.processing_time_ms,
    )
    if strict and result.partial:
        raise ConstraintUnsatisfiable(result)
    return result


async def generate_from_brief(raw: Mapping[str, Any], **kwargs) -> GenerationResult:
    """Normalize a raw brief and run the pipeline; see ``process_generation``."""
    request = normalize_brief(raw)
    return await process_generation(request, **kwargs)
