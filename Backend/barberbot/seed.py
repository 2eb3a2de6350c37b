from datetime import time

from sqlalchemy import select

from .core.config import get_settings
from .models import Barber, Service, Shop, WorkingHours


settings = get_settings()


async def seed_demo_data(session):
    result = await session.execute(select(Shop).where(Shop.wapi_instance_id == settings.demo_instance_id))
    shop = result.scalar_one_or_none()

    if not shop:
        shop = Shop(
            name=settings.demo_shop_name,
            wapi_instance_id=settings.demo_instance_id,
            wapi_token=settings.demo_token,
        )
        session.add(shop)
        await session.flush()

    # Seed services if missing
    result = await session.execute(select(Service).where(Service.shop_id == shop.id))
    services = result.scalars().all()
    if not services:
        session.add_all(
            [
                Service(shop_id=shop.id, name="Corte", duration_minutes=30, price_cents=3500),
                Service(shop_id=shop.id, name="Barba", duration_minutes=30, price_cents=2500),
                Service(shop_id=shop.id, name="Corte + Barba", duration_minutes=60, price_cents=5500),
            ]
        )

    result = await session.execute(select(Barber).where(Barber.shop_id == shop.id))
    barbers = result.scalars().all()
    if not barbers:
        barbers = [
            Barber(shop_id=shop.id, name="João", is_active=True),
            Barber(shop_id=shop.id, name="Pedro", is_active=True),
        ]
        session.add_all(barbers)
        await session.flush()

        # Monday to Saturday, 09:00-19:00
        session.add_all(
            [
                WorkingHours(
                    shop_id=shop.id,
                    barber_id=barber.id,
                    day_of_week=day,
                    start_time=time(9, 0),
                    end_time=time(19, 0),
                    is_active=True,
                )
                for barber in barbers
                for day in range(1, 7)
            ]
        )

    await session.commit()
