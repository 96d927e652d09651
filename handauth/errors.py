"""Exception types for handauth

Configuration problems (a grid too fine for the image) are ``ValueError``
subclasses; calling an operation on a template in the wrong state is a
``RuntimeError`` subclass.
"""


class GridConfigError(ValueError):
    """Region geometry cannot be built for the requested rows/cols."""


class TemplateStateError(RuntimeError):
    """Template operation requires at least one extracted sample."""
