"""
Vigil - threshold alerting over heterogeneous data sources.

- vigil.datasources: uniform connect/test/query over SQL, HTTP and file backends
- vigil.alerting: rule evaluation with hysteresis and the alert manager
- vigil.notifications: email, webhook, Slack and DingTalk delivery
"""

__version__ = "0.1.0"

from vigil.core import *  # noqa
