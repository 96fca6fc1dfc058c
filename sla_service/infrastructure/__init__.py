"""
Infrastructure Layer
=====================

Cross-context technical infrastructure (database engine and sessions).
"""
