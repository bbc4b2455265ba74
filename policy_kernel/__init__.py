"""
Policy Kernel - transaction policy core

Approval workflows and transaction monitoring for a compliance-oriented
financial backend:
- Declarative workflow triggers and monitoring rules
- Multi-step approval requests with quorum and escalation
- Typed alerts with review, escalation and SAR filing
- Swappable storage (in-memory or SQLAlchemy)
"""

__version__ = "0.1.0"
