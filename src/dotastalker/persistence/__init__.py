# Persistence Layer - SQLite save file for bindings, registrations and tracks

from .models import ClientIdentity, SaveData
from .store import SaveStore

__all__ = [
    "ClientIdentity",
    "SaveData",
    "SaveStore",
]
