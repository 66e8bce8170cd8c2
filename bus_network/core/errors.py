"""
Error and Warning Types

Configuration problems abort a run before anything is scheduled;
an empty measurement is reported as a warning only.
"""


class ConfigurationError(ValueError):
    """Invalid traffic, attack or scenario parameters"""


class EmptyResultWarning(UserWarning):
    """No flow records matched the sink port; all metrics default to zero"""
