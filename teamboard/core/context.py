from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RequestContext:
    """Identity of the caller, passed explicitly into every mutation"""

    user_id: int
    ip_address: Optional[str] = None
