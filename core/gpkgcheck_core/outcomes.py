"""
Rule outcomes and the runner that turns exceptions into outcomes.
"""

import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Optional

from .errors import Inapplicable, InfrastructureError, Violation

logger = logging.getLogger(__name__)


class Status(str, Enum):
    PASS = 'pass'
    SKIP = 'skip'
    FAIL = 'fail'
    ERROR = 'error'


@dataclass
class Outcome:
    rule_id: str
    subject: Optional[str]
    status: Status
    kind: Optional[str] = None
    detail: str = ''

    def to_dict(self):
        d = asdict(self)
        d['status'] = self.status.value
        return d


@dataclass
class ConformanceReport:
    """In-memory outcome sink."""
    package: Optional[str] = None
    outcomes: list = field(default_factory=list)

    def record(self, outcome):
        self.outcomes.append(outcome)

    def by_status(self, status):
        return [o for o in self.outcomes if o.status == status]

    @property
    def failures(self):
        return self.by_status(Status.FAIL)

    @property
    def errors(self):
        return self.by_status(Status.ERROR)

    @property
    def ok(self):
        return not self.failures and not self.errors

    def counts(self):
        return {s.value: len(self.by_status(s)) for s in Status}

    def for_rule(self, rule_id):
        return [o for o in self.outcomes if o.rule_id == rule_id]

    def to_dict(self):
        return {
            'package': self.package,
            'ok': self.ok,
            'counts': self.counts(),
            'outcomes': [o.to_dict() for o in self.outcomes],
        }


class RuleRunner:
    """Evaluates one rule at a time and records its outcome in ``sink``."""

    def __init__(self, sink):
        self.sink = sink

    def skip(self, rule_id, reason, subject=None):
        self.sink.record(Outcome(rule_id, subject, Status.SKIP, 'Inapplicable', reason))

    def _capture(self, rule_id, subject, func, args, kwargs):
        """Return (result, outcome); outcome is None when ``func`` succeeded."""
        try:
            return func(*args, **kwargs), None
        except Inapplicable as e:
            return None, Outcome(rule_id, subject, Status.SKIP, 'Inapplicable', str(e))
        except Violation as e:
            return None, Outcome(rule_id, subject, Status.FAIL, e.kind, e.detail)
        except InfrastructureError as e:
            if e.fatal:
                raise
            logger.warning("Rule %s (%s) aborted: %s", rule_id, subject, e)
            return None, Outcome(rule_id, subject, Status.ERROR, 'InfrastructureError', str(e))

    def evaluate(self, rule_id, subject, func, *args, **kwargs):
        """Run ``func``; record pass, skip, fail or error.

        Returns the recorded Outcome. Fatal InfrastructureError propagates.
        """
        _, outcome = self._capture(rule_id, subject, func, args, kwargs)
        if outcome is None:
            outcome = Outcome(rule_id, subject, Status.PASS)
        self.sink.record(outcome)
        return outcome

    def prerequisite(self, rule_id, subject, func, *args, **kwargs):
        """Run a data-gathering step of a rule.

        Returns (True, result) on success. On failure the outcome is recorded
        against ``rule_id`` and (False, None) is returned.
        """
        result, outcome = self._capture(rule_id, subject, func, args, kwargs)
        if outcome is not None:
            self.sink.record(outcome)
            return False, None
        return True, result

    def record_all(self, rule_ids, subject, exc):
        """Record the outcome of ``exc`` against every rule in ``rule_ids``."""
        for rule_id in rule_ids:
            self.evaluate(rule_id, subject, _reraise, exc)


def _reraise(exc):
    raise exc
