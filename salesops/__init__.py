"""SalesOps automations: rule-driven follow-ups and appointment confirmation scheduling."""

__version__ = "1.0.0"
