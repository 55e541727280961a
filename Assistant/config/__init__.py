"""
Configuration module for the agent orchestration service
"""
from .settings import Config, RetryPolicy, config

__all__ = ["Config", "RetryPolicy", "config"]
