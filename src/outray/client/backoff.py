"""Exponential reconnect backoff."""


class Backoff:
    """
    Doubling reconnect delay between a floor and a ceiling.

    The delay never decreases across consecutive failures until reset()
    is called after a successful open.
    """

    def __init__(self, initial: float = 1.0, maximum: float = 30.0, factor: float = 2.0):
        if initial <= 0 or maximum < initial or factor < 1:
            raise ValueError(
                f"Invalid backoff parameters: initial={initial}, "
                f"maximum={maximum}, factor={factor}"
            )
        self.initial = initial
        self.maximum = maximum
        self.factor = factor
        self.current = initial
        self.attempts = 0

    def next_delay(self) -> float:
        """Return the delay to wait now and advance to the next one."""
        delay = self.current
        self.current = min(self.current * self.factor, self.maximum)
        self.attempts += 1
        return delay

    def reset(self) -> None:
        """Return to the floor delay."""
        self.current = self.initial
        self.attempts = 0
