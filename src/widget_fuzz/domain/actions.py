"""Declarative actions guarded by named precondition and postcondition constraints.

An action's ``execute`` is the only mutator. Constraints are pure predicates over
``(previous_log, next_log, input)`` and are consulted two ways:

- at runtime by ``ActionCatalog.invoke`` to gate a real invocation;
- counterfactually by the fuzzer, which slices a fixed candidate instead of
  executing anything.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType

from widget_fuzz.domain.catalog import SchemaCatalog
from widget_fuzz.domain.schema import JSONValue, ObjectInstance, ObjectSchema

logger = logging.getLogger(__name__)

ActionInput = Mapping[str, tuple[ObjectInstance, ...]]
ConstraintPredicate = Callable[
    [Sequence["ActionLogEntry"], Sequence["ActionLogEntry"], ActionInput], bool
]
Executor = Callable[[ActionInput], Awaitable[object]]


class ConstraintKind(StrEnum):
    PRE = "pre"
    POST = "post"


class ActionCatalogError(ValueError):
    """Raised for duplicate actions, unknown names, or inputs that violate slot bounds."""


class PreconditionFailed(Exception):
    """Raised by runtime gating when an invocation is not licensed by the history."""

    def __init__(self, action: str, failed: Sequence[str]) -> None:
        self.action = action
        self.failed = tuple(failed)
        super().__init__(f"{action}: preconditions failed: {', '.join(self.failed)}")


@dataclass(frozen=True, slots=True)
class InputSlot:
    name: str
    schema: ObjectSchema
    min_count: int = 1
    max_count: int = 1
    unique_instance: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("InputSlot.name: must be a non-empty string")
        if self.min_count < 0:
            raise ValueError(f"InputSlot({self.name!r}).min_count: must be >= 0")
        if self.max_count < self.min_count:
            raise ValueError(f"InputSlot({self.name!r}).max_count: must be >= min_count")


@dataclass(frozen=True, slots=True)
class Constraint:
    name: str
    description: str
    validate: ConstraintPredicate = field(compare=False)


@dataclass(frozen=True, slots=True)
class ConstraintResult:
    name: str
    kind: ConstraintKind
    passed: bool


@dataclass(frozen=True, slots=True)
class ActionLogEntry:
    """Immutable record of one invocation: action name plus instances per slot."""

    action: str
    input: ActionInput = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        frozen = {slot: tuple(instances) for slot, instances in self.input.items()}
        object.__setattr__(self, "input", MappingProxyType(frozen))

    def instances(self, slot: str) -> tuple[ObjectInstance, ...]:
        return self.input.get(slot, ())

    def first(self, slot: str) -> ObjectInstance | None:
        found = self.input.get(slot, ())
        return found[0] if found else None

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "action": self.action,
            "input": {
                slot: [instance.to_dict() for instance in instances]
                for slot, instances in self.input.items()
            },
        }


@dataclass(frozen=True, slots=True)
class Action:
    name: str
    description: str
    execute: Executor = field(compare=False)
    input_definition: tuple[InputSlot, ...] = ()
    pre_conditions: tuple[Constraint, ...] = ()
    post_conditions: tuple[Constraint, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("Action.name: must be a non-empty string")
        object.__setattr__(self, "input_definition", tuple(self.input_definition))
        object.__setattr__(self, "pre_conditions", tuple(self.pre_conditions))
        object.__setattr__(self, "post_conditions", tuple(self.post_conditions))

    def validate_input(self, action_input: ActionInput) -> None:
        """Check slot membership, instance counts, schemas and uniqueness."""

        declared = {slot.name: slot for slot in self.input_definition}
        unknown = sorted(key for key in action_input if key not in declared)
        if unknown:
            raise ActionCatalogError(f"{self.name}: unexpected input slots: {unknown}")
        for slot in self.input_definition:
            instances = tuple(action_input.get(slot.name, ()))
            if not slot.min_count <= len(instances) <= slot.max_count:
                raise ActionCatalogError(
                    f"{self.name}.{slot.name}: expected between {slot.min_count} and "
                    f"{slot.max_count} instances, got {len(instances)}"
                )
            for instance in instances:
                if instance.schema.name != slot.schema.name:
                    raise ActionCatalogError(
                        f"{self.name}.{slot.name}: expected schema {slot.schema.name!r}, "
                        f"got {instance.schema.name!r}"
                    )
            if slot.unique_instance and len({instance.id for instance in instances}) != len(
                instances
            ):
                raise ActionCatalogError(f"{self.name}.{slot.name}: instances must be unique")


def check_preconditions(
    action: Action,
    previous_log: Sequence[ActionLogEntry],
    entry: ActionLogEntry,
) -> tuple[ConstraintResult, ...]:
    """Evaluate preconditions with ``previous_log`` as history and ``entry`` as proposal."""

    next_log = (*previous_log, entry)
    return tuple(
        ConstraintResult(
            name=constraint.name,
            kind=ConstraintKind.PRE,
            passed=bool(constraint.validate(previous_log, next_log, entry.input)),
        )
        for constraint in action.pre_conditions
    )


def check_postconditions(
    action: Action,
    previous_log: Sequence[ActionLogEntry],
    next_log: Sequence[ActionLogEntry],
    entry: ActionLogEntry,
) -> tuple[ConstraintResult, ...]:
    return tuple(
        ConstraintResult(
            name=constraint.name,
            kind=ConstraintKind.POST,
            passed=bool(constraint.validate(previous_log, next_log, entry.input)),
        )
        for constraint in action.post_conditions
    )


@dataclass(frozen=True, slots=True)
class InvocationOutcome:
    result: object
    entry: ActionLogEntry
    postconditions: tuple[ConstraintResult, ...]

    @property
    def failed_postconditions(self) -> tuple[str, ...]:
        return tuple(item.name for item in self.postconditions if not item.passed)


class ActionCatalog:
    """Ordered, name-unique collection of actions over one schema catalog."""

    __slots__ = ("_actions", "schemas")

    def __init__(self, actions: Iterable[Action], schemas: SchemaCatalog) -> None:
        ordered: dict[str, Action] = {}
        for action in actions:
            if action.name in ordered:
                raise ActionCatalogError(f"duplicate action name {action.name!r}")
            for slot in action.input_definition:
                if slot.schema.name not in schemas:
                    raise ActionCatalogError(
                        f"{action.name}.{slot.name}: schema {slot.schema.name!r} is not in catalog"
                    )
            ordered[action.name] = action
        self._actions = ordered
        self.schemas = schemas

    def __contains__(self, name: object) -> bool:
        return name in self._actions

    def __iter__(self) -> Iterator[Action]:
        return iter(self._actions.values())

    def __len__(self) -> int:
        return len(self._actions)

    def names(self) -> tuple[str, ...]:
        return tuple(self._actions)

    def get(self, name: str) -> Action:
        try:
            return self._actions[name]
        except KeyError as exc:
            raise ActionCatalogError(f"unknown action {name!r}") from exc

    def with_actions(self, actions: Iterable[Action]) -> ActionCatalog:
        """Return a catalog with the same schemas and ``actions`` replacing same-named entries."""

        replaced = dict(self._actions)
        for action in actions:
            if action.name not in replaced:
                raise ActionCatalogError(f"unknown action {action.name!r}")
            replaced[action.name] = action
        return ActionCatalog(replaced.values(), self.schemas)

    async def invoke(
        self,
        name: str,
        action_input: ActionInput,
        history: list[ActionLogEntry],
    ) -> InvocationOutcome:
        """Gate, execute and record one invocation against the real ``history``.

        Raises ``PreconditionFailed`` before executing when any precondition fails.
        Failed postconditions are logged and returned, never raised.
        """

        action = self.get(name)
        action.validate_input(action_input)
        entry = ActionLogEntry(action=name, input=action_input)

        previous = tuple(history)
        pre = check_preconditions(action, previous, entry)
        failed = [item.name for item in pre if not item.passed]
        if failed:
            raise PreconditionFailed(name, failed)

        result = await action.execute(entry.input)
        history.append(entry)

        post = check_postconditions(action, previous, tuple(history), entry)
        outcome = InvocationOutcome(result=result, entry=entry, postconditions=post)
        if outcome.failed_postconditions:
            logger.warning(
                "action %s violated postconditions: %s",
                name,
                ", ".join(outcome.failed_postconditions),
                extra={"action": name, "failed": list(outcome.failed_postconditions)},
            )
        return outcome


__all__ = [
    "Action",
    "ActionCatalog",
    "ActionCatalogError",
    "ActionInput",
    "ActionLogEntry",
    "Constraint",
    "ConstraintKind",
    "ConstraintPredicate",
    "ConstraintResult",
    "Executor",
    "InputSlot",
    "InvocationOutcome",
    "PreconditionFailed",
    "check_postconditions",
    "check_preconditions",
]
