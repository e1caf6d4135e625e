class RecommendationError(Exception):
    """Base class for failures inside the recommendation pipeline."""


class SourceError(RecommendationError):
    def __init__(self, source_name: str, message: str = ""):
        self.source_name = source_name
        super().__init__(f"{source_name}: {message}" if message else source_name)


class SourceTimeout(SourceError):
    def __init__(self, source_name: str, timeout: float):
        self.timeout = timeout
        super().__init__(source_name, f"timed out after {timeout}s")


class ContextUnavailable(RecommendationError):
    """The user has no profile, or the profile store could not be reached."""


class AllSourcesEmpty(RecommendationError):
    """Every candidate source returned nothing or failed."""


class CacheWriteFailure(RecommendationError):
    pass


class MetadataFetchFailure(RecommendationError):
    pass
