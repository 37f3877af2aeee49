import threading


class SyncGate:
    """One-way latch that holds back notifications until the initial listing is done.

    Every scope replays the events that already exist as ADDED
    notifications when it starts. Acting on those would re-apply old
    scale signals after every restart, so nothing passes until `arm()`.
    Once armed the gate never closes again.
    """

    def __init__(self):
        self._armed = threading.Event()

    def arm(self):
        self._armed.set()

    def is_armed(self) -> bool:
        return self._armed.is_set()
