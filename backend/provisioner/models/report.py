"""
Run and verification report models.

A ProvisionReport records what each step did to each object so a re-run can
be checked for idempotence: the second run should contain only skipped and
unchanged outcomes.
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field


class Step(str, Enum):
    """Provisioning steps, in execution order."""

    PRINCIPAL = "principal"
    COLLECTIONS = "collections"
    INDEXES = "indexes"
    SEED = "seed"


class Action(str, Enum):
    """What a step did to one object."""

    CREATED = "created"
    SKIPPED = "skipped"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


class StepOutcome(BaseModel):
    """Outcome of one step on one object (e.g. index ``users.email_1``)."""

    step: Step
    target: str
    action: Action


class ProvisionReport(BaseModel):
    """Result of a successful provisioning run."""

    database: str
    seed_policy: str
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None
    outcomes: list[StepOutcome] = Field(default_factory=list)

    def record(self, step: Step, target: str, action: Action) -> StepOutcome:
        outcome = StepOutcome(step=step, target=target, action=action)
        self.outcomes.append(outcome)
        return outcome

    def finish(self) -> None:
        self.finished_at = datetime.now(UTC)

    def count(self, action: Action, step: Step | None = None) -> int:
        return sum(
            1
            for outcome in self.outcomes
            if outcome.action == action and (step is None or outcome.step == step)
        )

    def for_step(self, step: Step) -> list[StepOutcome]:
        return [outcome for outcome in self.outcomes if outcome.step == step]

    @property
    def created(self) -> int:
        return self.count(Action.CREATED)

    @property
    def skipped(self) -> int:
        return self.count(Action.SKIPPED)

    @property
    def changed_anything(self) -> bool:
        """True if any object was created or updated during the run."""
        return any(
            outcome.action in (Action.CREATED, Action.UPDATED) for outcome in self.outcomes
        )

    @property
    def duration_seconds(self) -> float | None:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def summary(self) -> str:
        return (
            f"database={self.database} "
            f"created={self.created} "
            f"updated={self.count(Action.UPDATED)} "
            f"skipped={self.skipped} "
            f"unchanged={self.count(Action.UNCHANGED)}"
        )


class CollectionStatus(BaseModel):
    """Observed state of one declared collection."""

    name: str
    exists: bool
    document_count: int = 0
    index_names: list[str] = Field(default_factory=list)


class VerificationReport(BaseModel):
    """Read-only comparison of the database against a SeedSpec."""

    database: str
    collections: list[CollectionStatus] = Field(default_factory=list)
    problems: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.problems
