"""Deployment directory watching.

This module reconciles a plain drop-in directory of definition files
with the definition registry on a polling schedule.
"""
