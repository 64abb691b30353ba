"""TCR events processor.

Turns ordered batches of decoded contract log events into aggregate state:
listings, challenges, polls, appeals, parameter proposals, token movements,
multisig owners, content revisions and governance audit records.
"""

__version__ = "0.4.0"
