"""In-memory account directory."""
import yaml
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from app.services.directory.base import (
    AccountRecord,
    CustomerRecord,
    DirectoryError,
    DirectoryProvider,
)


def load_directory_file(path: Path) -> Dict[str, List[Dict[str, Any]]]:
    """Read a directory YAML file into raw ``accounts`` and ``customers`` lists."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise DirectoryError(f"Cannot load directory file {path}") from e
    return {
        "accounts": data.get("accounts", []) or [],
        "customers": data.get("customers", []) or [],
    }


class InMemoryDirectoryProvider(DirectoryProvider):
    """Directory provider using YAML configuration.

    Owned accounts of a customer are derived from the accounts' ``owner_ref``.
    """

    def __init__(self, directory_file: Optional[str] = None):
        """Initialize with optional directory file path."""
        if directory_file is None:
            directory_file = Path(__file__).parent / "data" / "directory.yaml"
        self.directory_file = Path(directory_file)
        self._accounts: Optional[List[AccountRecord]] = None
        self._customers: Optional[Dict[str, CustomerRecord]] = None

    async def _load(self) -> None:
        """Load records from the YAML file."""
        if self._accounts is not None:
            return
        data = load_directory_file(self.directory_file)
        try:
            accounts = [AccountRecord(**_stringify(a)) for a in data["accounts"]]
            customers = {}
            for raw in data["customers"]:
                customer = CustomerRecord(
                    **_stringify(raw),
                    account_refs=[
                        a.record_ref for a in accounts if a.owner_ref == str(raw["record_ref"])
                    ],
                )
                customers[customer.record_ref] = customer
        except (KeyError, TypeError, ValidationError) as e:
            raise DirectoryError(f"Malformed directory file {self.directory_file}") from e
        self._accounts = accounts
        self._customers = customers

    async def find_account_by_formatted_id(self, account_id: str) -> Optional[AccountRecord]:
        await self._load()
        for account in self._accounts:
            if account.account_id == account_id:
                return account
        return None

    async def find_customer_by_ref(self, record_ref: str) -> Optional[CustomerRecord]:
        await self._load()
        return self._customers.get(record_ref)

    async def find_accounts_by_refs(
        self, record_refs: Sequence[str], limit: int
    ) -> List[AccountRecord]:
        await self._load()
        wanted = set(record_refs)
        return [a for a in self._accounts if a.record_ref in wanted][:limit]


def _stringify(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Unquoted YAML numbers load as ints; refs, ids and PINs are always strings.

    PINs with leading zeros must be quoted in the file.
    """
    out = dict(raw)
    for field in ("record_ref", "account_id", "pin", "owner_ref"):
        if field in out and out[field] is not None:
            out[field] = str(out[field])
    out.pop("account_refs", None)
    return out
