"""
Local Record Store

In-memory mapping of domain names to the records served without asking an
upstream resolver. Readers always see an immutable snapshot; writers build a
new mapping and swap it in, so a lookup never observes a half-applied change.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .message import MAX_TTL, DNSRecordType

logger = logging.getLogger(__name__)

DEFAULT_TTL = 300


@dataclass(frozen=True)
class DNSRecord:
    """A single locally served record.

    ``record_type`` is kept as an upper-cased mnemonic. Any mnemonic is
    accepted; only A records can be put on the wire.
    """

    record_type: str
    value: str
    ttl: int = DEFAULT_TTL

    def __post_init__(self):
        if isinstance(self.record_type, DNSRecordType):
            object.__setattr__(self, "record_type", self.record_type.name)
        elif isinstance(self.record_type, str) and self.record_type.strip():
            object.__setattr__(self, "record_type", self.record_type.strip().upper())
        else:
            raise ValueError(f"Record type must be a mnemonic: {self.record_type!r}")

        if (
            not isinstance(self.ttl, int)
            or isinstance(self.ttl, bool)
            or not 0 <= self.ttl <= MAX_TTL
        ):
            raise ValueError(f"TTL must be an integer from 0 to {MAX_TTL}: {self.ttl}")

    def to_dict(self) -> Dict[str, Union[str, int]]:
        return {"type": self.record_type, "value": self.value, "ttl": self.ttl}


def normalize_domain(domain: str) -> str:
    """Case-fold a domain name and drop a single trailing dot"""
    domain = domain.strip().lower()
    if domain.endswith(".") and domain != ".":
        domain = domain[:-1]
    return domain


class RecordStore:
    """Domain -> record mapping with copy-on-write updates"""

    def __init__(self, records: Optional[Iterable[Tuple[str, DNSRecord]]] = None):
        self._write_lock = threading.Lock()
        self._records: Dict[str, DNSRecord] = {}
        if records:
            self._records = {
                normalize_domain(domain): record for domain, record in records
            }

    @classmethod
    def from_config(cls, records) -> "RecordStore":
        """Build a store from configured ``RecordConfig`` entries"""
        return cls(
            (
                entry.domain,
                DNSRecord(
                    record_type=entry.type,
                    value=entry.value,
                    ttl=entry.ttl,
                ),
            )
            for entry in records
        )

    def lookup(self, domain: str) -> Optional[DNSRecord]:
        """Exact, case-insensitive match; no wildcards, no CNAME chasing"""
        return self._records.get(normalize_domain(domain))

    def add(
        self,
        domain: str,
        record_type: Union[str, DNSRecordType],
        value: str,
        ttl: int = DEFAULT_TTL,
    ) -> DNSRecord:
        """Insert or overwrite the record for ``domain``.

        Any type mnemonic is stored, including ones the codec cannot encode.

        Raises:
            ValueError: for an empty record type or a TTL outside 0..2**32-1
        """
        key = normalize_domain(domain)
        record = DNSRecord(record_type=record_type, value=value, ttl=ttl)

        with self._write_lock:
            records = dict(self._records)
            records[key] = record
            self._records = records

        logger.info(
            f"Added DNS record: {key} -> {value} ({record.record_type}, TTL {ttl})"
        )
        return record

    def remove(self, domain: str) -> bool:
        """Remove the record for ``domain``; False if there was none"""
        key = normalize_domain(domain)

        with self._write_lock:
            if key not in self._records:
                return False
            records = dict(self._records)
            del records[key]
            self._records = records

        logger.info(f"Removed DNS record: {key}")
        return True

    def list(self) -> List[Tuple[str, DNSRecord]]:
        """Snapshot of all records"""
        return list(self._records.items())

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, domain: str) -> bool:
        return normalize_domain(domain) in self._records
