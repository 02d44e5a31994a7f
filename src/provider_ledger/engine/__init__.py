from .indexed_set import IndexedSet
from .pairing_index import PairingIndex
from .state import LedgerState
from .accrual import AccrualEngine
from .service import EventTopic, LedgerService
from .invariants import InvariantViolation, check_invariants
from .snapshot import dump_state, load_state, save_snapshot, load_snapshot
