"""EmailProvider protocol: services depend on this, not the concrete implementation.

Implementations raise errors.UpstreamError once delivery has failed for good.
"""

from typing import Optional, Protocol


class EmailProvider(Protocol):
    async def send_verification_email(
        self,
        email: str,
        user_name: Optional[str],
        otp_code: str,
        expiry_minutes: int,
    ) -> None: ...

    async def send_password_reset_email(
        self,
        email: str,
        user_name: Optional[str],
        otp_code: str,
        expiry_minutes: int,
    ) -> None: ...
