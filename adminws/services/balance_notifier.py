"""
Balance change notifications.

Called by the wallet/balance business logic whenever a member balance
changes. Every admin panel user (``user<id>`` identities) watches all
balances; a member only receives updates of its own balance.
"""

from adminws.logging import logger
from adminws.managers.websocket_connection_manager import ConnectionRegistry
from adminws.schemas.response import BalanceUpdate
from adminws.settings import app_settings


class BalanceNotifier:
    def __init__(self, registry: ConnectionRegistry) -> None:
        self.registry = registry

    @staticmethod
    def member_identity(member_id: int) -> str:
        return f"{app_settings.MEMBER_IDENTITY_PREFIX}{member_id}"

    async def broadcast_balance(
        self, member_id: int, currency_id: int, balance: float
    ) -> int:
        """
        Pushes a balance update to all admins and to the owning member.

        Args:
            member_id: Member whose balance changed.
            currency_id: Currency of the balance.
            balance: New balance.

        Returns:
            int: Number of connections the update was queued on.
        """
        update = BalanceUpdate(
            member_id=member_id, currency_id=currency_id, balance=balance
        )
        payload = update.envelope().to_payload()
        target_member = self.member_identity(member_id)

        def is_recipient(identity: str) -> bool:
            return (
                identity.startswith(app_settings.ADMIN_IDENTITY_PREFIX)
                or identity == target_member
            )

        sent = await self.registry.dispatch_to_matching(is_recipient, payload)
        logger.info(
            f"Balance update sent to {sent} connection(s) "
            f"(admins + {target_member})"
        )
        return sent
