import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

import config
from repositories.user import UserRepository

logger = logging.getLogger(__name__)


class ReferralService:

    @staticmethod
    async def credit_referral_bonus(referrer_id: int, session: AsyncSession | Session,
                                    amount: float | None = None) -> bool:
        """Credit the referral reward to the referrer's wallet balance. Callers guard against repeats."""
        amount = config.REFERRAL_REWARD_AMOUNT if amount is None else amount
        credited = await UserRepository.credit_balance(referrer_id, amount, session)
        if credited:
            logger.info(f"Referral bonus of {amount} credited to user {referrer_id}")
        else:
            logger.warning(f"Referral bonus skipped: referrer {referrer_id} not found")
        return credited
