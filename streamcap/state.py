"""Process-wide runtime state shared by every site."""


class BusyCounter:
    """Count of outstanding units of work.

    ``acquire`` before the work starts, ``release`` exactly once after it and
    all of its side effects have finished.  Shutdown waits for zero.
    """

    def __init__(self, name):
        self.name = name
        self._value = 0

    @property
    def value(self):
        return self._value

    def acquire(self):
        self._value += 1

    def release(self):
        if self._value == 0:
            raise RuntimeError(f"{self.name} counter released more times than acquired")
        self._value -= 1

    def __repr__(self):
        return f"BusyCounter({self.name!r}, value={self._value})"


class RuntimeState:
    """Shutdown flag plus the busy counters shutdown waits on."""

    def __init__(self):
        self.exiting = False
        self.post_processing = BusyCounter("post-processing")
        self.spawning = BusyCounter("spawning")

    def begin_exit(self):
        """Set the shutdown flag.  Returns False if it was already set."""
        if self.exiting:
            return False
        self.exiting = True
        return True
