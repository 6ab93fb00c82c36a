"""Distil network data points from Suricata EVE events and ship JSON to files, pipes and Elasticsearch."""

__version__ = "0.1.0"