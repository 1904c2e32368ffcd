"""
DocSeal Password Strength
=========================

Rubric-based scoring of master passwords.  Key generation and rotation
refuse passwords that are not rated strong unless the caller explicitly
overrides the gate.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List

from docseal.config import STRONG_PASSWORD_SCORE
from docseal.errors import WeakPasswordError

COMMON_PATTERNS = ("password", "12345", "qwerty", "abc")
WEAK_PATTERN_CAP = 50

_SPECIAL = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")


@dataclass(frozen=True)
class StrengthReport:
    score: int
    feedback: List[str] = field(default_factory=list)

    @property
    def is_strong(self) -> bool:
        return self.score >= STRONG_PASSWORD_SCORE


def evaluate(password: str) -> StrengthReport:
    """
    Score *password* from 0 to 100.

    ====================================  ======
    Criterion                             Points
    ====================================  ======
    length >= 12 (8-11 earns 10)          25
    uppercase letter                      15
    lowercase letter                      15
    digit                                 15
    special character                     15
    no common pattern                     15
    ====================================  ======

    A password containing a common pattern is capped at 50.
    """
    feedback: List[str] = []
    score = 0

    if len(password) >= 12:
        score += 25
    elif len(password) >= 8:
        score += 10
    else:
        feedback.append("Password should be at least 12 characters")

    if re.search(r"[A-Z]", password):
        score += 15
    else:
        feedback.append("Add uppercase letters")

    if re.search(r"[a-z]", password):
        score += 15
    else:
        feedback.append("Add lowercase letters")

    if re.search(r"\d", password):
        score += 15
    else:
        feedback.append("Add numbers")

    if _SPECIAL.search(password):
        score += 15
    else:
        feedback.append("Add special characters")

    lowered = password.lower()
    if any(pattern in lowered for pattern in COMMON_PATTERNS):
        feedback.append("Avoid common patterns")
        score = min(score, WEAK_PATTERN_CAP)
    else:
        score += 15

    return StrengthReport(score=score, feedback=feedback)


def require_strong(password: str) -> StrengthReport:
    """Return the report for *password* or raise :class:`WeakPasswordError`."""
    report = evaluate(password)
    if not report.is_strong:
        raise WeakPasswordError(report)
    return report
