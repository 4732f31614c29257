"""Exceptions raised by FlowRAG"""


class FlowRAGError(Exception):
    """Base class for FlowRAG errors"""
    pass


class UnknownQueryModeError(FlowRAGError, ValueError):
    """Search was called with a mode outside naive/local/global/hybrid"""
    pass


class EntityNotFoundError(FlowRAGError, LookupError):
    """No entity matched by id, name or substring"""

    def __init__(self, query: str):
        super().__init__(f"Entity not found: {query}")
        self.query = query


class ExtractionParseError(FlowRAGError, ValueError):
    """LLM returned a response that is not valid extraction JSON"""
    pass


class OperationCancelledError(FlowRAGError):
    """An index or search call was cancelled or ran past its deadline"""
    pass
