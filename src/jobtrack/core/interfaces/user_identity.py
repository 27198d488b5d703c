from abc import ABC, abstractmethod

class UserIdentityPort(ABC):
    @abstractmethod
    def get_user_id(self) -> str:
        """Return the stable client id, creating it on first use"""
        pass
