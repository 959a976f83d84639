"""
HTTP trigger for the sync worker (Django).

One JSON endpoint that a scheduler or an operator calls to run a mode.
"""
