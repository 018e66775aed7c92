"""Directory profile types."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class DirectoryProfile(BaseModel):
    """The subset of a directory user that calendar sync relies on."""

    id: str = Field(description="Directory object id")
    user_principal_name: str = Field("", description="User principal name")
    display_name: str = Field("", description="Display name")
    on_premises_sync_enabled: Optional[bool] = Field(
        None, description="Set whenever the account is synced from on-premises"
    )

    @classmethod
    def from_graph(cls, data: Dict[str, Any]) -> "DirectoryProfile":
        """Parse a Graph ``user`` resource."""
        return cls(
            id=data.get("id", ""),
            user_principal_name=data.get("userPrincipalName") or "",
            display_name=data.get("displayName") or "",
            on_premises_sync_enabled=data.get("onPremisesSyncEnabled"),
        )
