"""
Growora engines - assessment state machines and progression bookkeeping.
"""
