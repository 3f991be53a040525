"""
Cheap heuristics that filter out naive bots before any network call.

Three independent checks, applied in order:
  • honeypot  – the hidden "subject"/"phone" fields must stay empty
  • timing    – at least 3 seconds between form load and submit
  • math      – the answer must equal the sum of the echoed operands

Challenges are never stored: the client echoes the operands back and the
expected answer is recomputed here.
"""

from __future__ import annotations

import logging
import re
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass

from portfolio.models import AntiBotData, FormInitialData, MathChallenge

logger = logging.getLogger(__name__)

MIN_FORM_TIME_MS = 3000

# ASCII digits only; int() would also take "1_0" and other scripts' digits.
_ANSWER_PATTERN = re.compile(r"-?[0-9]+")


@dataclass(frozen=True)
class AntiBotValidationResult:
    is_valid: bool
    reason: str | None = None


def _now_ms() -> int:
    return int(time.time() * 1000)


class AntiBotService:
    def __init__(self, clock: Callable[[], int] = _now_ms) -> None:
        self._clock = clock

    # ── Issuance ───────────────────────────────────────────────────────

    @staticmethod
    def generate_math_challenge() -> MathChallenge:
        num1 = secrets.randbelow(9) + 1
        num2 = secrets.randbelow(9) + 1
        return MathChallenge(
            num1=num1,
            num2=num2,
            question=f"What is {num1} + {num2}?",
            correct_answer=num1 + num2,
        )

    def create_form_initial_data(self) -> FormInitialData:
        challenge = self.generate_math_challenge()
        return FormInitialData(
            form_load_time=self._clock(),
            math_num1=challenge.num1,
            math_num2=challenge.num2,
            question=challenge.question,
        )

    # ── Verification ───────────────────────────────────────────────────

    def validate(self, data: AntiBotData) -> AntiBotValidationResult:
        if data.subject.strip() or data.phone.strip():
            return AntiBotValidationResult(False, "Backup field detected")

        elapsed = self._clock() - data.form_load_time
        if elapsed < MIN_FORM_TIME_MS:
            logger.debug("Form submitted after %d ms", elapsed)
            return AntiBotValidationResult(False, "Form submitted too quickly")

        answer = data.math_answer.strip()
        if not _ANSWER_PATTERN.fullmatch(answer):
            return AntiBotValidationResult(False, "Incorrect math answer")
        if int(answer) != data.math_num1 + data.math_num2:
            return AntiBotValidationResult(False, "Incorrect math answer")

        return AntiBotValidationResult(True)
