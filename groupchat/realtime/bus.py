"""Realtime fanout of group events to connected subscribers.

Every subscriber handle owns a bounded mailbox. ``publish`` only appends to
the mailboxes of the handles currently subscribed to a group and schedules a
drain task on a worker pool, so it never waits on delivery. When a mailbox is
full the oldest pending event is dropped. At most one worker drains a given
mailbox at a time, which keeps events in publish order per subscriber while a
slow or failing subscriber only holds up its own mailbox.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Protocol

from groupchat.core.constants import (
    DEFAULT_FANOUT_MAX_WORKERS,
    DEFAULT_FANOUT_QUEUE_SIZE,
    NEW_GROUP_MESSAGE_EVENT,
    group_channel,
)

logger = logging.getLogger(__name__)


class Subscriber(Protocol):
    """A connection that wants group events pushed to it."""

    user_id: str

    def deliver(self, event: str, payload: Any) -> None:
        """Push one event to the connection."""


class _Mailbox:
    def __init__(self, handle: Subscriber, maxlen: int) -> None:
        self.handle = handle
        self.pending: deque[tuple[str, str, Any]] = deque(maxlen=maxlen)
        self.scheduled = False
        self.dropped = 0


class FanoutBus:
    """Process-wide registry of group subscribers with non-blocking publish."""

    def __init__(
        self,
        queue_size: int = DEFAULT_FANOUT_QUEUE_SIZE,
        max_workers: int = DEFAULT_FANOUT_MAX_WORKERS,
    ) -> None:
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1")
        self.queue_size = queue_size
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._subscribers: dict[str, set[Subscriber]] = {}
        self._mailboxes: dict[Subscriber, _Mailbox] = {}
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="fanout"
        )
        self._stopped = False
        self._in_flight = 0

    def subscribe(self, group_id: str, handle: Subscriber) -> None:
        """Register a handle for a group's events."""
        with self._lock:
            self._subscribers.setdefault(str(group_id), set()).add(handle)
            if handle not in self._mailboxes:
                self._mailboxes[handle] = _Mailbox(handle, self.queue_size)
        logger.debug(f"{handle} subscribed to {group_channel(group_id)}")

    def unsubscribe(self, group_id: str, handle: Subscriber) -> None:
        """Stop delivering a group's events to a handle."""
        with self._lock:
            self._discard(str(group_id), handle)
            self._purge(handle, str(group_id))
            self._forget_if_unused(handle)

    def unsubscribe_all(self, handle: Subscriber) -> None:
        """Drop a handle from every group, discarding its pending events."""
        with self._lock:
            for group_id in list(self._subscribers):
                self._discard(group_id, handle)
            mailbox = self._mailboxes.pop(handle, None)
            if mailbox is not None:
                mailbox.pending.clear()

    def evict_user(self, group_id: str, user_id: str) -> int:
        """Unsubscribe every handle a user holds on a group and drop its queued events."""
        with self._lock:
            handles = [
                h
                for h in self._subscribers.get(str(group_id), set())
                if str(getattr(h, "user_id", None)) == str(user_id)
            ]
            for handle in handles:
                self._discard(str(group_id), handle)
                self._purge(handle, str(group_id))
                self._forget_if_unused(handle)
        if handles:
            logger.info(
                f"Evicted {len(handles)} connection(s) of {user_id} "
                f"from {group_channel(group_id)}"
            )
        return len(handles)

    def close_channel(self, group_id: str) -> None:
        """Drop every subscriber of a group."""
        with self._lock:
            handles = self._subscribers.pop(str(group_id), set())
            for handle in handles:
                self._purge(handle, str(group_id))
                self._forget_if_unused(handle)

    def subscribers(self, group_id: str) -> frozenset[Subscriber]:
        """Return a snapshot of the handles subscribed to a group."""
        with self._lock:
            return frozenset(self._subscribers.get(str(group_id), set()))

    def publish(
        self, group_id: str, payload: Any, event: str = NEW_GROUP_MESSAGE_EVENT
    ) -> int:
        """Queue an event for every current subscriber of a group.

        Returns the number of subscribers the event was queued for.
        """
        to_schedule = []
        with self._lock:
            if self._stopped:
                logger.warning(
                    f"Fanout bus stopped, dropping {event} for {group_channel(group_id)}"
                )
                return 0
            handles = self._subscribers.get(str(group_id), set())
            for handle in handles:
                mailbox = self._mailboxes[handle]
                if len(mailbox.pending) == mailbox.pending.maxlen:
                    mailbox.dropped += 1
                    logger.warning(
                        f"Mailbox full for {handle}, dropping oldest event "
                        f"({mailbox.dropped} dropped so far)"
                    )
                mailbox.pending.append((str(group_id), event, payload))
                if not mailbox.scheduled:
                    mailbox.scheduled = True
                    self._in_flight += 1
                    to_schedule.append(mailbox)
            queued = len(handles)

        for mailbox in to_schedule:
            try:
                self._executor.submit(self._drain, mailbox)
            except RuntimeError as e:
                logger.error(f"Could not schedule delivery to {mailbox.handle}: {e}")
                with self._lock:
                    mailbox.pending.clear()
                    mailbox.scheduled = False
                    self._in_flight -= 1
                    self._idle.notify_all()
        return queued

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until every mailbox has been drained."""
        with self._idle:
            return self._idle.wait_for(
                lambda: self._in_flight == 0,
                timeout=timeout,
            )

    def stop(self, wait: bool = True) -> None:
        """Stop accepting events and shut the worker pool down."""
        with self._lock:
            self._stopped = True
        self._executor.shutdown(wait=wait)

    def _drain(self, mailbox: _Mailbox) -> None:
        while True:
            with self._lock:
                if not mailbox.pending:
                    mailbox.scheduled = False
                    self._in_flight -= 1
                    self._idle.notify_all()
                    return
                _, event, payload = mailbox.pending.popleft()
            try:
                mailbox.handle.deliver(event, payload)
            except Exception as e:
                logger.warning(
                    f"Delivery of {event} to {mailbox.handle} failed: {e}",
                    exc_info=True,
                )

    def _discard(self, group_id: str, handle: Subscriber) -> None:
        handles = self._subscribers.get(group_id)
        if handles is None:
            return
        handles.discard(handle)
        if not handles:
            del self._subscribers[group_id]

    def _forget_if_unused(self, handle: Subscriber) -> None:
        if any(handle in handles for handles in self._subscribers.values()):
            return
        mailbox = self._mailboxes.pop(handle, None)
        if mailbox is not None:
            mailbox.pending.clear()

    def _purge(self, handle: Subscriber, group_id: str) -> None:
        """Drop a group's undelivered events from a handle's mailbox."""
        mailbox = self._mailboxes.get(handle)
        if mailbox is None:
            return
        kept = [entry for entry in mailbox.pending if entry[0] != group_id]
        if len(kept) != len(mailbox.pending):
            mailbox.pending.clear()
            mailbox.pending.extend(kept)
