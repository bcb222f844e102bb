"""
Task API Services Package

Core Services:
- reference_sync: Keeps Task.assigned_user and User.pending_tasks consistent
  after writes to either side
"""
