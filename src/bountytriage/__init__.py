"""Bounty triage service: webhook intake, admission control and priority queueing."""

__version__ = "1.0.0"
