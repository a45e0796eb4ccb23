from abc import ABC, abstractmethod


class Ui(ABC):
    """
    One-way output sink for human readable progress.
    The core never reads from it.
    """

    @abstractmethod
    def say(self, message: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def message(self, message: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def error(self, message: str) -> None:
        raise NotImplementedError
