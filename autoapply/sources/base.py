from abc import ABC, abstractmethod

from autoapply.models import JobListing


class JobSearchBase(ABC):
    platform: str = "unknown"

    @abstractmethod
    def search(self, query: str, location: str, limit: int = 100) -> list[JobListing]:
        pass
