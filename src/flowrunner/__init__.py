"""
Flowrunner - Workflow automation runtime.

A workflow is a directed graph of typed nodes started by one trigger.
Inbound events walk the graph; each run is recorded in a bounded history.
"""

__version__ = "0.1.0"
