"""
FlowLens Shared Module
======================

Configuration, logging, console and finding models shared by the FlowLens
engine, its command shell and its report writers.
"""

from shared.config import FlowLensConfig, get_config

__all__ = ["FlowLensConfig", "get_config"]
