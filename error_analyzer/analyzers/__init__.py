from error_analyzer.analyzers.base import AiAnalyzer
from error_analyzer.analyzers.null import NullAnalyzer

__all__ = ["AiAnalyzer", "NullAnalyzer"]
