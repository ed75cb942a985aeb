"""Workflows for the folder sync.

Workflow definitions for scheduled folder scans.
"""
