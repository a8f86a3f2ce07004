"""Validators for agent submissions: votes, debate entries, proposals, registrations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from data.models import VoteChoice
from orchestration.exceptions import ValidationError

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Outcome of a validation check."""

    valid: bool
    issues: list[str]

    def __bool__(self) -> bool:
        return self.valid

    def raise_for_issues(self, hint: str | None = None) -> None:
        if not self.valid:
            raise ValidationError(self.issues, hint=hint)


def _blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


class SubmissionValidator:
    """Validates agent input against configurable rules."""

    def __init__(
        self,
        min_proposal_length: int = 10,
        max_proposal_length: int = 500,
        max_rationale_length: int = 2000,
        max_argument_length: int = 2000,
    ) -> None:
        self.min_proposal_length = min_proposal_length
        self.max_proposal_length = max_proposal_length
        self.max_rationale_length = max_rationale_length
        self.max_argument_length = max_argument_length

    def validate_vote(self, round_id: Any, choice: Any, rationale: Any) -> ValidationResult:
        issues: list[str] = []

        if _blank(round_id):
            issues.append("round_id required")
        if choice is None or (isinstance(choice, str) and not choice.strip()):
            issues.append("vote required")
        elif choice not in (VoteChoice.YES, VoteChoice.NO, "YES", "NO"):
            issues.append("vote must be YES or NO")
        if _blank(rationale):
            issues.append("rationale required")
        elif len(rationale.strip()) > self.max_rationale_length:
            issues.append(
                f"rationale too long ({len(rationale.strip())} chars, "
                f"maximum {self.max_rationale_length})"
            )

        return self._result("vote", issues)

    def validate_debate(self, round_id: Any, message: Any) -> ValidationResult:
        issues: list[str] = []

        if _blank(round_id):
            issues.append("round_id required")
        if _blank(message):
            issues.append("message required")
        elif len(message.strip()) > self.max_argument_length:
            issues.append(
                f"message too long ({len(message.strip())} chars, "
                f"maximum {self.max_argument_length})"
            )

        return self._result("debate", issues)

    def validate_proposal(self, text: Any) -> ValidationResult:
        issues: list[str] = []

        if _blank(text):
            issues.append("text required")
        else:
            length = len(text.strip())
            if length < self.min_proposal_length:
                issues.append(
                    f"text too short ({length} chars, minimum {self.min_proposal_length})"
                )
            if length > self.max_proposal_length:
                issues.append(
                    f"text too long ({length} chars, maximum {self.max_proposal_length})"
                )

        return self._result("proposal", issues)

    def validate_registration(self, name: Any, description: Any) -> ValidationResult:
        issues: list[str] = []

        if _blank(name):
            issues.append("name required")
        if _blank(description):
            issues.append("description required")

        return self._result("registration", issues)

    def _result(self, kind: str, issues: list[str]) -> ValidationResult:
        if issues:
            logger.debug("Rejected %s: %s", kind, "; ".join(issues))
        return ValidationResult(valid=len(issues) == 0, issues=issues)
