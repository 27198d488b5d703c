from abc import ABC, abstractmethod


class LoggingPort(ABC):
    """Minimal logger used by the tracker, its managers and adapters.

    Messages use %-style arguments so formatting is skipped for disabled
    levels, e.g. ``logger.info("[job:submit] job created job_id=%s", job_id)``.
    """

    @abstractmethod
    def info(self, msg: str, *args):
        pass

    @abstractmethod
    def warning(self, msg: str, *args):
        pass

    @abstractmethod
    def error(self, msg: str, *args):
        pass

    @abstractmethod
    def debug(self, msg: str, *args):
        pass
