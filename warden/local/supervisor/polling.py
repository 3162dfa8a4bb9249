import threading


class PollTicker:
    """
    A fixed-interval ticker whose sleep can be cut short from another thread
    or from a signal handler.
    """

    def __init__(self, interval: float, stop_event: threading.Event = None):
        self.interval = interval
        self.stop_event = stop_event or threading.Event()

    def wait(self) -> bool:
        """
        Sleeps for one interval.

        :return: True if the interval elapsed, False if the ticker was cancelled.
        """
        return not self.stop_event.wait(self.interval)

    def cancel(self) -> None:
        self.stop_event.set()
