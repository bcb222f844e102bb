from app.services.reference_sync import ReferenceSynchronizer


def get_reference_synchronizer() -> ReferenceSynchronizer:
    """Dependency providing the synchronizer used by the resource routes."""
    return ReferenceSynchronizer()
