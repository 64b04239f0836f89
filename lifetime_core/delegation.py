from __future__ import annotations

from enum import Enum
from typing import List, Optional, Union

from diagnostics.logging_setup import get_logger
from runtime_bus import topics

from .arena import Arena, Owner, StrongRef, WeakRef

logger = get_logger("delegation")


class Ownership(str, Enum):
    OWNING = "owning"
    NON_OWNING = "non_owning"


class Subscriber(Owner):
    """Delegate side: receives events from a publisher."""

    def __init__(self, label: str) -> None:
        super().__init__(label)
        self.received: List[str] = []

    def on_event(self, publisher: "Publisher", event: str) -> None:
        self.received.append(event)
        logger.info("%s: received %s from %s", self.label, event, publisher.label)


class Publisher(Owner):
    """Keeps tagged handles to its subscribers.

    Owning handles are stored as owned fields and keep the subscriber alive;
    non-owning handles are weak and are skipped once the subscriber is gone.
    """

    def __init__(self, label: str = "DataManager") -> None:
        super().__init__(label)
        self._subscribers: List[tuple[Ownership, Union[StrongRef, WeakRef]]] = []

    def add_subscriber(self, subscriber: StrongRef, ownership: Ownership | str) -> None:
        ownership = Ownership(ownership)
        if ownership is Ownership.OWNING:
            ref: Union[StrongRef, WeakRef] = subscriber.clone()
            self.hold(f"subscriber:{len(self._subscribers)}", ref)
        else:
            ref = subscriber.downgrade()
        self._subscribers.append((ownership, ref))

    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: str = topics.DATA_UPDATED) -> int:
        logger.info("%s: data updated", self.label)
        notified = 0
        for _ownership, ref in list(self._subscribers):
            target = ref.get()
            if target is None:
                continue
            target.on_event(self, event)
            notified += 1
        return notified

    def deinit(self) -> None:
        self._subscribers.clear()


class DelegateDemo:
    """A presented subscriber that owns a publisher which points back at it.

    ``teardown`` plays the presenter dismissing the subscriber. With a
    non-owning back-reference that is enough for the subscriber to go, and
    the publisher follows once the caller drops its own reference. With an
    owning back-reference the two keep each other alive.
    """

    def __init__(
        self,
        arena: Arena,
        subscriber: Optional[StrongRef] = None,
        *,
        publisher_label: str = "DataManager",
    ) -> None:
        self.arena = arena
        self._presenter = subscriber if subscriber is not None else arena.spawn(Subscriber("Subscriber"))
        self.subscriber: Subscriber = self._presenter.get()
        self.publisher: Optional[Publisher] = None
        self.publisher_label = publisher_label
        self.ownership: Optional[Ownership] = None

    def subscribe(self, ownership: Ownership | str) -> StrongRef:
        ownership = Ownership(ownership)
        if self._presenter.released:
            raise RuntimeError("subscriber already torn down")
        publisher_ref = self.arena.spawn(Publisher(self.publisher_label))
        publisher = publisher_ref.get()
        self.subscriber.hold("data_manager", publisher_ref.clone())
        publisher.add_subscriber(self._presenter, ownership)
        self.publisher = publisher
        self.ownership = ownership
        logger.info(
            "%s subscribed to %s with a %s back-reference",
            self.subscriber.label,
            publisher.label,
            ownership.value.replace("_", "-"),
        )
        return publisher_ref

    def publish_event(self, event: str = topics.DATA_UPDATED) -> int:
        if self.publisher is None or self.publisher.destroyed:
            return 0
        return self.publisher.publish(event)

    def teardown(self) -> bool:
        """Release the presenter's reference. Returns True if the subscriber was destroyed."""
        self._presenter.release()
        if self.subscriber.destroyed:
            return True
        logger.warning(
            "retain cycle: %s and %s keep each other alive after teardown",
            self.subscriber.label,
            self.publisher.label if self.publisher is not None else "publisher",
        )
        return False
