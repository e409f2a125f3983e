"""
Uniform result envelope returned by every policy operation.
"""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class PolicyResult:
    """
    Result envelope.

    Successful results carry ``data``; failed results carry an HTTP-style
    ``code`` and a list of human readable ``errors``.
    """

    success: bool
    data: Any = None
    code: Optional[int] = None
    errors: list[str] = field(default_factory=list)

    @classmethod
    def ok(cls, data: Any) -> "PolicyResult":
        """Build a successful result."""
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code: int, message: str) -> "PolicyResult":
        """Build a failed result with a single error message."""
        return cls(success=False, code=code, errors=[message])

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire shape: {success, data} or {success, code, errors}."""
        if self.success:
            return {"success": True, "data": self.data}
        return {"success": False, "code": self.code, "errors": list(self.errors)}
