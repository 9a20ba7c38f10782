from .config import Config
from .engine import Engine, Sync, SyncRegistry, Then, Var, When

__all__ = (
    'Config',
    'Engine',
    'Sync',
    'SyncRegistry',
    'Then',
    'Var',
    'When',
)
