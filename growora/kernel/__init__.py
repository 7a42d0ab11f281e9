"""
Kernel layer: persistence models and the audit event store shared by the
assessment and progression engines.
"""
