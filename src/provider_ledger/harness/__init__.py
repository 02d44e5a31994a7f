from .time_control import TimeController
from .event_bus import EventBus, LedgerEvent
from .stubs import LEDGER_ACCOUNT, AccessPolicy, RegisterKeyRegistry, TokenVault, Transfer, register_key
