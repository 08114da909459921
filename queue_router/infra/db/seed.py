from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from queue_router.domain.enums import Department, OperatorPresence, OperatorProfile
from queue_router.infra.db.models import Operator

DEFAULT_OPERATORS: list[dict[str, str | bool]] = [
    {"display_name": "Ana Ribeiro", "department": "personal", "profile": "operator"},
    {"display_name": "Bruno Costa", "department": "personal", "profile": "operator"},
    {"display_name": "Carla Mendes", "department": "personal", "profile": "supervisor"},
    {"display_name": "Diego Alves", "department": "fiscal", "profile": "operator"},
    {"display_name": "Elisa Prado", "department": "fiscal", "profile": "supervisor"},
    {"display_name": "Fabio Nunes", "department": "accounting", "profile": "operator"},
    {"display_name": "Gabriela Reis", "department": "accounting", "profile": "supervisor"},
    {"display_name": "Heitor Lima", "department": "financial", "profile": "operator"},
    {"display_name": "Iara Souza", "department": "financial", "profile": "supervisor"},
    {
        "display_name": "Office Admin",
        "department": "personal",
        "profile": "admin",
        "is_listable": False,
    },
]


async def seed_default_operators(session: AsyncSession) -> None:
    existing_rows = await session.execute(select(Operator.display_name))
    existing_names = {name.strip().lower() for name in existing_rows.scalars().all()}

    inserts: list[Operator] = []
    for item in DEFAULT_OPERATORS:
        display_name = str(item["display_name"]).strip()
        if display_name.lower() in existing_names:
            continue

        inserts.append(
            Operator(
                display_name=display_name,
                department=Department(str(item["department"])),
                profile=OperatorProfile(str(item["profile"])),
                is_listable=bool(item.get("is_listable", True)),
                presence=OperatorPresence.OFFLINE,
            )
        )

    if inserts:
        session.add_all(inserts)
        await session.flush()
