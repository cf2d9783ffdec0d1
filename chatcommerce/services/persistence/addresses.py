"""Address persistence service."""
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from chatcommerce.db.models import Address


class AddressPersistenceService:
    """Service for persisting delivery addresses."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def create_address(
        self,
        consumer_id: str,
        street_address: str,
        city: str,
        latitude: float,
        longitude: float,
        landmark: Optional[str] = None,
        region: Optional[str] = None,
        formatted_address: Optional[str] = None,
        is_saved: bool = False,
    ) -> Address:
        """Create an address. Unsaved addresses do not show up in the address book."""
        address = Address(
            consumer_id=consumer_id,
            street_address=street_address,
            city=city,
            region=region,
            latitude=latitude,
            longitude=longitude,
            landmark=landmark,
            formatted_address=formatted_address,
            is_saved=is_saved,
        )
        async with self.session_factory() as session:
            session.add(address)
            await session.commit()
            await session.refresh(address)
        return address

    async def get_address(self, address_id: str, consumer_id: str) -> Optional[Address]:
        """Get one of the consumer's addresses."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Address).where(Address.id == address_id, Address.consumer_id == consumer_id)
            )
            return result.scalar_one_or_none()

    async def get_default_address(self, consumer_id: str) -> Optional[Address]:
        """Get the consumer's default saved address."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Address)
                .where(
                    Address.consumer_id == consumer_id,
                    Address.is_saved.is_(True),
                    Address.is_default.is_(True),
                )
                .limit(1)
            )
            return result.scalar_one_or_none()
