"""Observer lists for run, entity and property lifecycle notifications."""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from scrubber.rules.models import EntitySpec, Record


@dataclass
class PropertyEvent:
    """Passed to ``before_property`` listeners just before a value is recorded.

    Listeners may replace ``anonymized_value`` or call ``skip_anonymization()``
    to leave the field untouched, e.g. to move an object in external storage
    before the URL pointing at it is overwritten.
    """

    entity: EntitySpec
    property_name: str
    column: str
    record: Record
    original_value: Any
    anonymized_value: Any
    dry_run: bool = False
    skipped: bool = field(default=False, init=False)

    def skip_anonymization(self) -> None:
        self.skipped = True


RunListener = Callable[..., None]
PropertyListener = Callable[[PropertyEvent], None]


class LifecycleHooks:
    """Synchronous callbacks invoked by the orchestrator and the pipeline.

    Listener signatures:
        before_run(specs, options), after_run(report),
        before_entity(spec, connection), after_entity(spec, stats),
        before_property(event).
    """

    def __init__(self) -> None:
        self._before_run: list[RunListener] = []
        self._after_run: list[RunListener] = []
        self._before_entity: list[RunListener] = []
        self._after_entity: list[RunListener] = []
        self._before_property: list[PropertyListener] = []

    def on_before_run(self, listener: RunListener) -> None:
        self._before_run.append(listener)

    def on_after_run(self, listener: RunListener) -> None:
        self._after_run.append(listener)

    def on_before_entity(self, listener: RunListener) -> None:
        self._before_entity.append(listener)

    def on_after_entity(self, listener: RunListener) -> None:
        self._after_entity.append(listener)

    def on_before_property(self, listener: PropertyListener) -> None:
        self._before_property.append(listener)

    @property
    def has_property_listeners(self) -> bool:
        return bool(self._before_property)

    def before_run(self, *args: Any) -> None:
        for listener in self._before_run:
            listener(*args)

    def after_run(self, *args: Any) -> None:
        for listener in self._after_run:
            listener(*args)

    def before_entity(self, *args: Any) -> None:
        for listener in self._before_entity:
            listener(*args)

    def after_entity(self, *args: Any) -> None:
        for listener in self._after_entity:
            listener(*args)

    def before_property(self, event: PropertyEvent) -> PropertyEvent:
        for listener in self._before_property:
            listener(event)
            if event.skipped:
                break
        return event
