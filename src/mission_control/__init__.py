"""Offline-first mutation pipeline for the Mission Control task tracker."""

__version__ = "0.4.0"
