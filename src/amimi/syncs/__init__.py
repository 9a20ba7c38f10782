from amimi.engine import SyncRegistry

from . import amimi, auth, pairing

ALL_SYNCS = [*auth.SYNCS, *amimi.SYNCS, *pairing.SYNCS]

def build_registry() -> SyncRegistry:
    '''Freeze every application sync into a registry.'''
    return SyncRegistry(ALL_SYNCS)
