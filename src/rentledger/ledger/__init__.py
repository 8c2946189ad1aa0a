# src/rentledger/ledger/__init__.py
"""
Ledger data model.

  - constants: currency units and protocol limits
  - account: the per-tenant Account record and the balance views returned to callers
  - migrations: versioned record encoding for persisted accounts and contract state
  - policy: BalancePolicy (byte footprint -> minimum balance)
  - state: AccountLedger (identifier -> Account over the host store)
"""
