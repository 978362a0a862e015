"""Base collector for host-level gauges sampled at export time"""
import asyncio
from abc import ABC, abstractmethod
from typing import List
from concurrent.futures import ThreadPoolExecutor
from metrics.models import MetricValue


class BaseCollector(ABC):
    """Base class for all metric collectors"""

    def __init__(self, config=None, name: str = ""):
        self.config = config
        self._name = name
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"{name}_collector")

    @abstractmethod
    def collect(self) -> List[MetricValue]:
        """Collect metrics and return list of MetricValue objects"""
        pass

    async def collect_async(self) -> List[MetricValue]:
        """Run collect() off the event loop"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self.collect)

    @property
    def name(self) -> str:
        return self._name

    def cleanup(self):
        """Cleanup resources"""
        self._executor.shutdown(wait=False)
