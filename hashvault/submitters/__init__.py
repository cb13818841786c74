"""
Transaction submitters for the registry.
Each submitter commits registry mutations to one backend.
"""

from hashvault.submitters.base import Receipt, TransactionSubmitter
from hashvault.submitters.local import LocalSubmitter
from hashvault.submitters.ethereum import EthereumSubmitter

__all__ = [
    "Receipt",
    "TransactionSubmitter",
    "LocalSubmitter",
    "EthereumSubmitter",
]
