from error_analyzer.title_generators.base import IssueTitleGenerator
from error_analyzer.title_generators.null import NullIssueTitleGenerator

__all__ = ["IssueTitleGenerator", "NullIssueTitleGenerator"]
