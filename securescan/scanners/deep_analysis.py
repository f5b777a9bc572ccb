"""
Deep analysis stage.

Reserved for slower, whole-program analyzers. It is disabled by default and
currently reports nothing.
"""
from typing import List

from .base import BaseScanner, Finding


class DeepAnalysisScanner(BaseScanner):

    def __init__(self, timeout: int = 600):
        super().__init__(
            name="deep-analysis",
            description="Additional whole-repository analysis",
            timeout=timeout
        )

    def scan(self, repo_path: str) -> List[Finding]:
        self.logger.debug("No deep analysis tools configured")
        return []
