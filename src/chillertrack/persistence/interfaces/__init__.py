from chillertrack.persistence.interfaces.entries_repo import EntriesRepoProtocol
from chillertrack.persistence.interfaces.totals_repo import TotalsRepoProtocol

__all__ = ["EntriesRepoProtocol", "TotalsRepoProtocol"]
