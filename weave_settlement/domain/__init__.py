"""Pure settlement rules: fixed-point amounts, login challenge text,
session sliding windows, round input normalization and the withdrawal
message layout.

Nothing here touches the ledger, the chain or HTTP; callers pass the
current time in.
"""
