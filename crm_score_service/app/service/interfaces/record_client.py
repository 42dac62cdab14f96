from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple


class AbstractRecordClient(ABC):
    @abstractmethod
    async def fetch_for_token(self, record_id: str) -> Tuple[Dict[str, Any], str]:
        """
        Reads the current state of an account together with its concurrency token.

        Args:
            record_id: The account identifier.

        Returns:
            A tuple of (account body, ETag).

        Raises:
            CrmApiError: on a non-success status, a transport fault, or a missing ETag.
        """
        pass

    @abstractmethod
    async def conditional_update(
        self,
        record_id: str,
        token: str,
        field_patch: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """
        Applies `field_patch` to the account's extensions, guarded by `token`.

        Raises:
            CrmApiError: kind CONFLICT if the account changed since the token
                was issued, otherwise HTTP_STATUS or REQUEST_FAILED.
        """
        pass
