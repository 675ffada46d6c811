"""
Phase Logging for the Ghostli Content Engine
============================================

Coloured console logging for one generation run. Every line carries the
request id and, inside the refinement loop, the iteration number; each
phase is timed so a run can print where its wall-clock time went.
IMPORTANT: No emojis in console output (Windows encoding issues).
"""

import logging
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple

from colorama import Fore, Style, init

# Initialize colorama for Windows
init(autoreset=True)


class Phase:
    """Pipeline phases, in the order a run normally visits them"""
    NORMALIZE = "BRIEF_NORMALIZATION"
    COMPILE = "PROMPT_COMPILATION"
    GENERATION = "CONTENT_GENERATION"
    EVALUATION = "CONSTRAINT_EVALUATION"
    REPAIR = "TARGETED_REPAIR"
    REGENERATION = "REGENERATION"
    HUMANIZATION = "HUMANIZATION"
    SEO = "SEO_KEYWORDS"
    COMPLETION = "COMPLETION"


# (colour, text tag) per phase; text tags only, no emojis
PHASE_STYLES: Dict[str, Tuple[str, str]] = {
    Phase.NORMALIZE: (Fore.CYAN, "[BRF]"),
    Phase.COMPILE: (Fore.CYAN, "[CMP]"),
    Phase.GENERATION: (Fore.GREEN, "[GEN]"),
    Phase.EVALUATION: (Fore.BLUE, "[EVL]"),
    Phase.REPAIR: (Fore.YELLOW, "[FIX]"),
    Phase.REGENERATION: (Fore.MAGENTA, "[RGN]"),
    Phase.HUMANIZATION: (Fore.WHITE, "[HUM]"),
    Phase.SEO: (Fore.CYAN, "[SEO]"),
    Phase.COMPLETION: (Fore.GREEN + Style.BRIGHT, "[END]"),
}
_UNKNOWN_STYLE = (Fore.WHITE, "[---]")

DECISION_COLORS = {
    "accept": Fore.GREEN + Style.BRIGHT,
    "repair": Fore.YELLOW,
    "regenerate": Fore.MAGENTA,
    "exhaust": Fore.RED + Style.BRIGHT,
}


class PhaseLogger:
    """
    Request-scoped logger for the refinement pipeline.

    Usage:
        phase_logger = create_phase_logger("req-abc123", verbose=True)
        phase_logger.set_iteration(2)
        with phase_logger.phase(Phase.REPAIR):
            phase_logger.log_constraint_result("word_count", False, -0.18)
            phase_logger.log_decision("repair", "1 of 4 constraints failing")

    ``verbose`` adds per-constraint lines and phase durations;
    ``extra_verbose`` also dumps prompts, drafts and a timing table.
    """

    def __init__(
        self,
        request_id: str,
        verbose: bool = False,
        extra_verbose: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        self.request_id = request_id
        self.verbose = verbose or extra_verbose
        self.extra_verbose = extra_verbose
        self.logger = logger or logging.getLogger(__name__)
        self.iteration: Optional[int] = None
        self._active: List[str] = []
        self._durations: Dict[str, List[float]] = {}

    @property
    def current_phase(self) -> Optional[str]:
        return self._active[-1] if self._active else None

    def set_iteration(self, iteration: int):
        self.iteration = iteration

    def _tag(self) -> str:
        tag = f"[{self.request_id[:12]}]"
        if self.iteration:
            tag += f" [it {self.iteration}]"
        return tag

    @contextmanager
    def phase(self, phase_name: str, detail: Optional[str] = None) -> Iterator["PhaseLogger"]:
        """Time a phase and announce it; phases may nest."""
        color, icon = PHASE_STYLES.get(phase_name, _UNKNOWN_STYLE)
        suffix = f" - {detail}" if detail else ""
        self.logger.info(
            f"{color}{icon} {self._tag()} {phase_name}{suffix} "
            f"[{datetime.now().strftime('%H:%M:%S')}]{Style.RESET_ALL}"
        )
        self._active.append(phase_name)
        started = time.perf_counter()
        try:
            yield self
        finally:
            elapsed = time.perf_counter() - started
            self._durations.setdefault(phase_name, []).append(elapsed)
            self._active.pop()
            if self.verbose:
                self.logger.info(f"{color}{icon} {self._tag()} {phase_name} took {elapsed:.2f}s{Style.RESET_ALL}")

    def info(self, message: str):
        if self.current_phase is None:
            self.logger.info(f"{self._tag()} {message}")
            return
        color, icon = PHASE_STYLES.get(self.current_phase, _UNKNOWN_STYLE)
        self.logger.info(f"{color}{icon}{Style.RESET_ALL} {self._tag()} {message}")

    def debug(self, message: str):
        if self.verbose:
            self.logger.debug(f"{Style.DIM}{self._tag()} {message}{Style.RESET_ALL}")

    def warning(self, message: str):
        self.logger.warning(f"{Fore.YELLOW}[WARN] {self._tag()} {message}{Style.RESET_ALL}")

    def error(self, message: str):
        self.logger.error(f"{Fore.RED}{Style.BRIGHT}[ERROR] {self._tag()} {message}{Style.RESET_ALL}")

    def _dump(self, color: str, title: str, sections: List[Tuple[str, str]], fields: Dict[str, Any]):
        rule = "~" * 60
        self.logger.info(f"{color}{rule}{Style.RESET_ALL}")
        self.logger.info(f"{color}[EXTRA_VERBOSE] {title} {self._tag()}{Style.RESET_ALL}")
        for key, value in fields.items():
            self.logger.info(f"  {key}: {value}")
        for label, body in sections:
            if body:
                self.logger.info(f"{color}[{label}]{Style.RESET_ALL}")
                self.logger.info(body)
        self.logger.info(f"{color}{rule}{Style.RESET_ALL}")

    def log_prompt(self, model: str, system_prompt: Optional[str], user_prompt: str, **sampling):
        """Dump the prompt sent to the engine (extra_verbose only)."""
        if self.extra_verbose:
            self._dump(
                Fore.CYAN,
                f"PROMPT -> {model}",
                [("SYSTEM PROMPT", system_prompt or ""), ("USER PROMPT", user_prompt)],
                sampling,
            )

    def log_response(self, model: str, response: str, metadata: Optional[Dict[str, Any]] = None):
        """Dump the draft returned by the engine (extra_verbose only)."""
        if self.extra_verbose:
            self._dump(Fore.GREEN, f"DRAFT <- {model}", [("DRAFT", response)], metadata or {})

    def log_constraint_result(self, name: str, passed: bool, distance: float):
        if not self.verbose:
            return
        color, mark = (Fore.GREEN, "PASS") if passed else (Fore.RED, "FAIL")
        self.logger.info(f"{color}  {mark} {name} (distance {distance:+.2f}){Style.RESET_ALL}")

    def log_decision(self, decision: str, reason: Optional[str] = None):
        color = DECISION_COLORS.get(decision.lower(), Fore.WHITE)
        because = f": {reason}" if reason else ""
        self.logger.info(f"{color}{self._tag()} DECISION {decision.upper()}{because}{Style.RESET_ALL}")

    def phase_durations(self) -> Dict[str, float]:
        """Total seconds spent per phase so far."""
        return {name: sum(values) for name, values in self._durations.items()}

    def log_timing_summary(self):
        """Print the per-phase timing table (extra_verbose only)."""
        if not self.extra_verbose or not self._durations:
            return
        rule = "=" * 60
        self.logger.info(f"{Style.BRIGHT}{rule}{Style.RESET_ALL}")
        self.logger.info(f"{Style.BRIGHT}TIMINGS {self._tag()}{Style.RESET_ALL}")
        for name, values in self._durations.items():
            color, _ = PHASE_STYLES.get(name, _UNKNOWN_STYLE)
            self.logger.info(f"{color}{name:26s} x{len(values):<3d} {sum(values):8.2f}s{Style.RESET_ALL}")
        total = sum(self.phase_durations().values())
        self.logger.info(f"{Style.BRIGHT}{'TOTAL':26s}      {total:8.2f}s{Style.RESET_ALL}")
        self.logger.info(f"{Style.BRIGHT}{rule}{Style.RESET_ALL}")


def create_phase_logger(request_id: str, verbose: bool = False, extra_verbose: bool = False) -> PhaseLogger:
    return PhaseLogger(request_id=request_id, verbose=verbose, extra_verbose=extra_verbose)
