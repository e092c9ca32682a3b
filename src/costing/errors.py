"""
Exceptions raised by the cost aggregation engine.
"""


class CostingError(Exception):
    """Base class for all estimation errors."""


class EstimateValidationError(CostingError, ValueError):
    """An input value makes the computation meaningless (e.g. quantity <= 0)."""


class CatalogReferenceError(CostingError, LookupError):
    """A line references a catalog entry that no longer exists."""

    def __init__(self, message: str, cost_item_id=None, estimate_line_item_id=None):
        super().__init__(message)
        self.cost_item_id = cost_item_id
        self.estimate_line_item_id = estimate_line_item_id


class ProjectNotFoundError(CostingError, LookupError):
    """The requested project does not exist."""

    def __init__(self, project_id):
        super().__init__(f"Project {project_id} not found")
        self.project_id = project_id
